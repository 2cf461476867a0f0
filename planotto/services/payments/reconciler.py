import logging
from dataclasses import dataclass
from typing import Optional

import requests

from planotto.infra.stripe import client as stripe_client
from planotto.infra.supabase import profile_repo
from planotto.services.payments.billing_core import (
    BillingProfilePatch,
    checkout_fallback_patch,
    patch_from_subscription,
    safe_string,
)
from planotto.services.payments.errors import ProfileUpdateError
from planotto.services.payments.models import (
    BillingEvent,
    CheckoutCompletedEvent,
    SubscriptionDeletedEvent,
)
from planotto.services.payments.resolvers import (
    resolve_user_from_checkout_session,
    resolve_user_from_subscription,
)

logger = logging.getLogger(__name__)

# SupabaseError and missing-env errors are RuntimeErrors
_STORE_ERRORS = (RuntimeError, requests.RequestException)


@dataclass
class ReconcileOutcome:
    event_type: str
    user_id: Optional[str] = None
    patch: Optional[BillingProfilePatch] = None
    applied: bool = False
    degraded: bool = False


def ensure_profile_exists(user_id: str, email: Optional[str]) -> None:
    """
    PATCH on a missing row matches nothing and reports success, so create the
    row first. Needs an email (NOT NULL column); without one this is a no-op.
    """
    email = safe_string(email).lower()
    if not user_id or not email:
        return
    try:
        profile_repo.upsert_profile_stub(user_id, email)
    except _STORE_ERRORS as e:
        logger.warning("profile stub upsert failed user_id=%s: %s", user_id, e)


def apply_billing_patch(user_id: str, patch: BillingProfilePatch, email: Optional[str]) -> bool:
    """
    Write patch to user_profiles. Returns True when only the reduced
    (plan_tier, subscription_status, pro_expires_at) update went through.
    Raises ProfileUpdateError when the reduced update fails too.
    """
    user_id = safe_string(user_id)
    if not user_id:
        return False
    ensure_profile_exists(user_id, email)

    try:
        profile_repo.update_profile(user_id, patch.as_row())
        return False
    except _STORE_ERRORS as e:
        logger.warning("full billing patch rejected user_id=%s, retrying reduced patch: %s", user_id, e)

    try:
        profile_repo.update_profile(user_id, patch.reduced())
    except _STORE_ERRORS as e:
        logger.error("reduced billing patch rejected user_id=%s: %s", user_id, e)
        raise ProfileUpdateError(f"Failed to update billing profile: {e}") from e
    return True


def handle_checkout_completed(event: CheckoutCompletedEvent) -> ReconcileOutcome:
    session = event.session
    outcome = ReconcileOutcome(event_type=event.type)
    resolved = resolve_user_from_checkout_session(session)
    if not resolved.user_id:
        logger.info("checkout %s: no matching user, ignoring", session.id)
        return outcome

    subscription_id = session.subscription_id
    if subscription_id:
        subscription = stripe_client.retrieve_subscription(subscription_id)
        patch = patch_from_subscription(subscription, resolved.customer_id)
    else:
        patch = checkout_fallback_patch(resolved.customer_id)

    outcome.user_id = resolved.user_id
    outcome.patch = patch
    outcome.degraded = apply_billing_patch(resolved.user_id, patch, resolved.email)
    outcome.applied = True
    return outcome


def handle_subscription_event(event: BillingEvent, force_canceled: bool = False) -> ReconcileOutcome:
    subscription = event.subscription
    outcome = ReconcileOutcome(event_type=event.type)
    resolved = resolve_user_from_subscription(subscription)
    if not resolved.user_id:
        logger.info("%s %s: no matching user, ignoring", event.type, subscription.id)
        return outcome

    patch = patch_from_subscription(subscription.as_dict(), resolved.customer_id, force_canceled=force_canceled)
    outcome.user_id = resolved.user_id
    outcome.patch = patch
    outcome.degraded = apply_billing_patch(resolved.user_id, patch, resolved.email)
    outcome.applied = True
    return outcome


def reconcile_event(event: BillingEvent) -> ReconcileOutcome:
    if isinstance(event, CheckoutCompletedEvent):
        return handle_checkout_completed(event)
    if isinstance(event, SubscriptionDeletedEvent):
        # Stripe can still report "active" on the deleted payload
        return handle_subscription_event(event, force_canceled=True)
    return handle_subscription_event(event)
