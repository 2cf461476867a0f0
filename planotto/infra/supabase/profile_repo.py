import logging
from typing import Any, Optional

from planotto.infra.supabase import client
from planotto.infra.supabase.client import SupabaseError

logger = logging.getLogger(__name__)

BILLING_PROFILE_COLUMNS = "email,plan_tier,subscription_status,pro_expires_at,stripe_customer_id"
LEGACY_BILLING_PROFILE_COLUMNS = "email,plan_tier,subscription_status,pro_expires_at"


def _first_user_id(rows: list) -> Optional[str]:
    if not rows:
        return None
    return (str(rows[0].get("user_id") or "")).strip() or None


def find_user_id_by_customer_id(customer_id: str) -> Optional[str]:
    customer_id = (customer_id or "").strip()
    if not customer_id:
        return None
    rows = client.sb_get_json(
        client.sb_rest_url(client.PROFILES_TABLE),
        params={
            "select": "user_id",
            "stripe_customer_id": f"eq.{customer_id}",
            "limit": "1",
        },
    )
    return _first_user_id(rows)


def find_user_id_by_email(email: str) -> Optional[str]:
    email = (email or "").strip().lower()
    if not email:
        return None
    rows = client.sb_get_json(
        client.sb_rest_url(client.PROFILES_TABLE),
        params={
            "select": "user_id",
            "email": f"eq.{email}",
            "limit": "1",
        },
    )
    return _first_user_id(rows)


def upsert_profile_stub(user_id: str, email: str) -> None:
    """
    Create the profile row for user_id if it does not exist yet.
    An existing row is left untouched (ignore-duplicates on user_id).
    """
    user_id = (user_id or "").strip()
    email = (email or "").strip().lower()
    if not user_id or not email:
        return

    client.sb_post_json(
        client.sb_rest_url(client.PROFILES_TABLE),
        {"user_id": user_id, "email": email},
        prefer="resolution=ignore-duplicates,return=minimal",
        params={"on_conflict": "user_id"},
    )


def update_profile(user_id: str, patch: dict[str, Any]) -> None:
    """Raises SupabaseError when PostgREST rejects the update (e.g. unknown column)."""
    client.sb_patch_json(
        client.sb_rest_url(client.PROFILES_TABLE),
        patch,
        params={"user_id": f"eq.{user_id}"},
        prefer="return=minimal",
    )


def read_billing_profile(user_id: str) -> Optional[dict]:
    """
    Billing columns for user_id. Falls back to the pre-Stripe column set when
    the stripe_* columns are not migrated yet; the fallback row has no
    stripe_customer_id.
    """
    url = client.sb_rest_url(client.PROFILES_TABLE)
    try:
        rows = client.sb_get_json(
            url,
            params={"select": BILLING_PROFILE_COLUMNS, "user_id": f"eq.{user_id}", "limit": "1"},
        )
        return rows[0] if rows else None
    except SupabaseError as e:
        logger.warning("billing profile read failed, retrying legacy columns: %s", e)

    rows = client.sb_get_json(
        url,
        params={"select": LEGACY_BILLING_PROFILE_COLUMNS, "user_id": f"eq.{user_id}", "limit": "1"},
    )
    return rows[0] if rows else None


def read_stripe_customer_id(user_id: str) -> Optional[str]:
    try:
        rows = client.sb_get_json(
            client.sb_rest_url(client.PROFILES_TABLE),
            params={"select": "stripe_customer_id", "user_id": f"eq.{user_id}", "limit": "1"},
        )
    except SupabaseError as e:
        logger.warning("reading stripe_customer_id failed user_id=%s: %s", user_id, e)
        return None
    if not rows:
        return None
    return (str(rows[0].get("stripe_customer_id") or "")).strip() or None


def save_stripe_customer_id(user_id: str, customer_id: str) -> bool:
    try:
        update_profile(user_id, {"stripe_customer_id": customer_id})
    except SupabaseError as e:
        # unmigrated schema: checkout keeps working without the link
        logger.warning("saving stripe_customer_id failed user_id=%s: %s", user_id, e)
        return False
    return True
