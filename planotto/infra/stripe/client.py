import json
import os
from typing import Any

import stripe
from dotenv import load_dotenv

load_dotenv()


def get_stripe_env() -> dict[str, str]:
    return {
        "secret_key": os.getenv("STRIPE_SECRET_KEY", "").strip(),
        "price_id_pro": os.getenv("STRIPE_PRICE_ID_PRO", "").strip(),
        "webhook_secret": os.getenv("STRIPE_WEBHOOK_SECRET", "").strip(),
    }


def is_stripe_configured() -> bool:
    env = get_stripe_env()
    return bool(env["secret_key"] and env["price_id_pro"])


def has_stripe_webhook_secret() -> bool:
    env = get_stripe_env()
    return bool(env["secret_key"] and env["webhook_secret"])


def _must_env(name: str, value: str) -> str:
    if not value:
        raise RuntimeError(f"Missing required env: {name}")
    return value


def get_stripe_price_id_pro() -> str:
    return _must_env("STRIPE_PRICE_ID_PRO", get_stripe_env()["price_id_pro"])


def get_stripe_webhook_secret() -> str:
    return _must_env("STRIPE_WEBHOOK_SECRET", get_stripe_env()["webhook_secret"])


def _init_stripe():
    stripe.api_key = _must_env("STRIPE_SECRET_KEY", get_stripe_env()["secret_key"])


def to_plain(obj: Any) -> dict:
    """StripeObject -> plain dict (works whether or not StripeObject subclasses dict)."""
    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def verify_webhook_payload(payload: bytes, signature: str) -> dict:
    """
    Check the stripe-signature header against STRIPE_WEBHOOK_SECRET and return
    the decoded event body.

    Raises stripe.SignatureVerificationError on a bad or stale signature and
    ValueError when the verified body is not a JSON object.
    """
    secret = get_stripe_webhook_secret()
    text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
    stripe.WebhookSignature.verify_header(
        text,
        signature,
        secret,
        tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
    )
    event = json.loads(text)
    if not isinstance(event, dict):
        raise ValueError("Webhook payload is not a JSON object")
    return event


def retrieve_subscription(subscription_id: str) -> dict:
    _init_stripe()
    return to_plain(stripe.Subscription.retrieve(subscription_id))


def retrieve_customer(customer_id: str) -> dict:
    """Deleted customers come back as {"id": ..., "deleted": True} without an email."""
    _init_stripe()
    return to_plain(stripe.Customer.retrieve(customer_id))


def create_customer(email: str, user_id: str) -> str:
    _init_stripe()
    customer = stripe.Customer.create(
        email=email,
        metadata={"supabase_user_id": user_id},
    )
    return str(to_plain(customer).get("id") or "").strip()


def create_checkout_session(**params: Any) -> dict:
    _init_stripe()
    return to_plain(stripe.checkout.Session.create(**params))


def create_portal_session(customer_id: str, return_url: str) -> dict:
    _init_stripe()
    return to_plain(
        stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
    )
