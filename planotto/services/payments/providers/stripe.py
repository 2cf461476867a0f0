import logging
import os

import requests
import stripe
from pydantic import ValidationError

from planotto.api.schemas.billing import (
    BillingCheckoutIn,
    BillingPortalIn,
    BillingSessionOut,
    BillingStatusOut,
    BillingWebhookOut,
)
from planotto.domain.auth.models import Identity
from planotto.domain.billing.plans import (
    enabled_paid_features,
    normalize_plan_tier,
    resolve_plan_tier_from_metadata,
)
from planotto.infra.stripe import client as stripe_client
from planotto.infra.supabase import client as supabase_client
from planotto.infra.supabase import profile_repo, webhook_events_repo
from planotto.services.payments.billing_core import normalize_billing_status, safe_string
from planotto.services.payments.errors import (
    BillingError,
    BillingNotConfiguredError,
    MissingStripeCustomerError,
    WebhookSignatureError,
)
from planotto.services.payments.models import decode_event
from planotto.services.payments.provider import BillingProvider
from planotto.services.payments.reconciler import ensure_profile_exists, reconcile_event
from planotto.services.payments.redirects import normalize_relative_path

logger = logging.getLogger(__name__)

CHECKOUT_SUCCESS_PATH = "/auth?billing=success"
CHECKOUT_CANCEL_PATH = "/auth?billing=cancel"
PORTAL_RETURN_PATH = "/auth"


def _dedup_enabled() -> bool:
    return os.getenv("BILLING_WEBHOOK_DEDUP", "0").strip() == "1"


def _require_supabase():
    if not supabase_client.is_supabase_service_configured():
        raise BillingNotConfiguredError("Supabase service role is not configured.")


def _require_stripe():
    if not stripe_client.is_stripe_configured():
        raise BillingNotConfiguredError("Stripe is not configured.")


class StripeBillingProvider(BillingProvider):
    def _resolve_customer_id(self, identity: Identity, profile: dict) -> str:
        """Reuse the stored Stripe customer or create one tagged with the user id."""
        existing = safe_string(profile.get("stripe_customer_id"))
        if existing:
            return existing

        email = safe_string(profile.get("email")) or identity.email
        customer_id = stripe_client.create_customer(email=email, user_id=identity.user_id)
        if customer_id:
            profile_repo.save_stripe_customer_id(identity.user_id, customer_id)
        return customer_id

    async def checkout(self, identity: Identity, payload: BillingCheckoutIn, app_url: str) -> BillingSessionOut:
        _require_supabase()
        _require_stripe()

        ensure_profile_exists(identity.user_id, identity.email)
        profile = profile_repo.read_billing_profile(identity.user_id) or {}
        customer_id = self._resolve_customer_id(identity, profile)

        success_path = normalize_relative_path(payload.success_path, CHECKOUT_SUCCESS_PATH)
        cancel_path = normalize_relative_path(payload.cancel_path, CHECKOUT_CANCEL_PATH)

        session_params = {
            "mode": "subscription",
            "client_reference_id": identity.user_id,
            "metadata": {"supabase_user_id": identity.user_id},
            "line_items": [{"price": stripe_client.get_stripe_price_id_pro(), "quantity": 1}],
            "allow_promotion_codes": True,
            "success_url": f"{app_url}{success_path}",
            "cancel_url": f"{app_url}{cancel_path}",
        }
        if customer_id:
            session_params["customer"] = customer_id
        else:
            session_params["customer_email"] = identity.email

        session = stripe_client.create_checkout_session(**session_params)
        url = safe_string(session.get("url"))
        if not url:
            raise BillingError("Stripe checkout URL is missing.")
        logger.info("checkout session %s opened user_id=%s", session.get("id"), identity.user_id)
        return BillingSessionOut(url=url)

    async def portal(self, identity: Identity, payload: BillingPortalIn, app_url: str) -> BillingSessionOut:
        _require_supabase()
        _require_stripe()

        customer_id = safe_string(profile_repo.read_stripe_customer_id(identity.user_id))
        if not customer_id:
            raise MissingStripeCustomerError("Stripe customer is missing. Activate Pro first.")

        return_path = normalize_relative_path(payload.return_path, PORTAL_RETURN_PATH)
        session = stripe_client.create_portal_session(customer_id, f"{app_url}{return_path}")
        url = safe_string(session.get("url"))
        if not url:
            raise BillingError("Stripe portal URL is missing.")
        return BillingSessionOut(url=url)

    async def status(self, identity: Identity) -> BillingStatusOut:
        _require_supabase()

        try:
            profile = profile_repo.read_billing_profile(identity.user_id)
        except (RuntimeError, requests.RequestException) as e:
            logger.warning("billing status read failed user_id=%s: %s", identity.user_id, e)
            profile = None

        if profile is None:
            plan_tier = resolve_plan_tier_from_metadata(identity.user_metadata)
            return BillingStatusOut(
                plan_tier=plan_tier,
                billing_configured=stripe_client.is_stripe_configured(),
                paid_features=enabled_paid_features(plan_tier),
            )

        plan_tier = normalize_plan_tier(profile.get("plan_tier"))
        return BillingStatusOut(
            plan_tier=plan_tier,
            subscription_status=normalize_billing_status(profile.get("subscription_status")),
            pro_expires_at=safe_string(profile.get("pro_expires_at")),
            has_stripe_customer=bool(safe_string(profile.get("stripe_customer_id"))),
            billing_configured=stripe_client.is_stripe_configured(),
            paid_features=enabled_paid_features(plan_tier),
        )

    async def handle_webhook(self, payload: bytes, signature: str) -> BillingWebhookOut:
        """
        Stripe webhook.
        - signature checked against STRIPE_WEBHOOK_SECRET before anything is parsed
        - checkout.session.completed / customer.subscription.* update user_profiles
        - every other type, and a handled type with an invalid body, is acknowledged and ignored
        - events for users we cannot identify are acknowledged without writes
        """
        _require_supabase()
        if not stripe_client.has_stripe_webhook_secret():
            raise BillingNotConfiguredError("Stripe webhook is not configured.")

        signature = safe_string(signature)
        if not signature:
            raise WebhookSignatureError("Missing Stripe signature.")

        try:
            body = stripe_client.verify_webhook_payload(payload, signature)
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise WebhookSignatureError(str(e) or "Invalid Stripe webhook signature.") from e

        event_id = safe_string(body.get("id"))
        event_type = safe_string(body.get("type"))

        try:
            event = decode_event(body)
        except ValidationError as e:
            logger.warning("stripe event %s ignored, invalid %s payload: %s", event_id, event_type, e)
            return BillingWebhookOut(event=event_type, ignored=True)

        if event is None:
            logger.info("stripe event %s ignored type=%s", event_id, event_type)
            return BillingWebhookOut(event=event_type, ignored=True)

        dedup = _dedup_enabled()
        if dedup and webhook_events_repo.webhook_event_exists(event_id):
            logger.info("stripe event %s already processed", event_id)
            return BillingWebhookOut(event=event_type, duplicate=True)

        outcome = reconcile_event(event)

        if dedup and outcome.applied:
            webhook_events_repo.webhook_event_insert(event_id, event_type, user_id=outcome.user_id)

        return BillingWebhookOut(
            event=event_type,
            user_id=outcome.user_id,
            applied=outcome.applied,
            degraded=outcome.degraded,
        )
