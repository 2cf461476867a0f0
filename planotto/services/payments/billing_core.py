"""
Stripe subscription -> user_profiles billing columns.

Pure mapping helpers, no I/O. The reconciler feeds them subscription payloads
(plain dicts, as decoded from a webhook body or retrieved from the API).
"""
import math
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from planotto.domain.billing.plans import PlanTier

BillingStatus = Literal["inactive", "trial", "active", "past_due", "canceled"]

BILLING_STATUSES = ("inactive", "trial", "active", "past_due", "canceled")

_STRIPE_STATUS_TO_BILLING: dict[str, BillingStatus] = {
    "trialing": "trial",
    "active": "active",
    "past_due": "past_due",
    "canceled": "canceled",
    "unpaid": "canceled",
    "incomplete": "canceled",
    "incomplete_expired": "canceled",
    "paused": "canceled",
}

_ACCESS_STATUSES = frozenset({"active", "trialing", "past_due"})

# columns present before the stripe_* migration
REDUCED_PATCH_FIELDS = ("plan_tier", "subscription_status", "pro_expires_at")


@dataclass
class BillingProfilePatch:
    plan_tier: PlanTier
    subscription_status: BillingStatus
    pro_expires_at: Optional[str]
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    stripe_current_period_end: Optional[str] = None

    def as_row(self) -> dict[str, Any]:
        return asdict(self)

    def reduced(self) -> dict[str, Any]:
        row = self.as_row()
        return {key: row[key] for key in REDUCED_PATCH_FIELDS}


def safe_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _positive_unix(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(ts) or ts <= 0:
        return None
    return int(ts)


def unix_to_iso(value: Any) -> Optional[str]:
    ts = _positive_unix(value)
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def to_billing_status(stripe_status: str) -> BillingStatus:
    return _STRIPE_STATUS_TO_BILLING.get(safe_string(stripe_status).lower(), "inactive")


def has_pro_access(stripe_status: str, period_end_unix: Optional[int], now: Optional[float] = None) -> bool:
    """
    active / trialing / past_due always keep Pro. A canceled subscription keeps
    it until the already-paid period ends.
    """
    status = safe_string(stripe_status).lower()
    if status in _ACCESS_STATUSES:
        return True
    if status == "canceled" and period_end_unix:
        if now is None:
            now = time.time()
        return period_end_unix > math.floor(now)
    return False


def _first_item(subscription: dict) -> dict:
    items = subscription.get("items") or {}
    data = items.get("data") if isinstance(items, dict) else None
    if not data:
        return {}
    return data[0] or {}


def get_subscription_price_id(subscription: dict) -> Optional[str]:
    price = _first_item(subscription).get("price") or {}
    if isinstance(price, str):
        return safe_string(price) or None
    return safe_string(price.get("id")) or None


def get_subscription_period_end_unix(subscription: dict) -> Optional[int]:
    # newer API versions only carry current_period_end on the items
    for candidate in (
        _first_item(subscription).get("current_period_end"),
        subscription.get("cancel_at"),
        subscription.get("trial_end"),
    ):
        ts = _positive_unix(candidate)
        if ts is not None:
            return ts
    return None


def expandable_id(value: Any) -> str:
    """Stripe references are either an id string or the expanded object."""
    if isinstance(value, dict):
        return safe_string(value.get("id"))
    return safe_string(value)


def patch_from_subscription(
    subscription: dict,
    customer_id: Optional[str],
    force_canceled: bool = False,
    now: Optional[float] = None,
) -> BillingProfilePatch:
    stripe_status = "canceled" if force_canceled else safe_string(subscription.get("status")).lower()
    period_end_unix = get_subscription_period_end_unix(subscription)
    access = has_pro_access(stripe_status, period_end_unix, now=now)
    period_end_iso = unix_to_iso(period_end_unix)
    return BillingProfilePatch(
        plan_tier="pro" if access else "free",
        subscription_status=to_billing_status(stripe_status),
        pro_expires_at=period_end_iso,
        stripe_customer_id=customer_id or None,
        stripe_subscription_id=safe_string(subscription.get("id")) or None,
        stripe_price_id=get_subscription_price_id(subscription),
        stripe_current_period_end=period_end_iso,
    )


def checkout_fallback_patch(customer_id: Optional[str]) -> BillingProfilePatch:
    """Checkout paid but no subscription attached yet: Pro with no known expiry."""
    return BillingProfilePatch(
        plan_tier="pro",
        subscription_status="active",
        pro_expires_at=None,
        stripe_customer_id=customer_id or None,
    )


def normalize_billing_status(value: Any) -> BillingStatus:
    status = safe_string(value).lower()
    if status in BILLING_STATUSES:
        return status  # type: ignore[return-value]
    return "inactive"
