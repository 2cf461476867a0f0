"""
Which Planotto user does a Stripe event belong to?

Each event shape has an ordered list of resolvers; the first one that yields a
user id wins. A resolver whose lookup fails is logged and skipped, the same as
one that finds nothing.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

import requests
import stripe

from planotto.infra.stripe import client as stripe_client
from planotto.infra.supabase import profile_repo
from planotto.services.payments.billing_core import safe_string
from planotto.services.payments.models import CheckoutSession, Subscription

logger = logging.getLogger(__name__)

UserIdResolver = Callable[[], Optional[str]]


@dataclass
class ResolvedUser:
    user_id: Optional[str]
    email: Optional[str]
    customer_id: Optional[str]


def resolve_first(resolvers: Iterable[tuple[str, UserIdResolver]]) -> Optional[str]:
    for name, resolver in resolvers:
        try:
            user_id = safe_string(resolver())
        except (RuntimeError, requests.RequestException) as e:
            logger.warning("user resolver %s failed: %s", name, e)
            continue
        if user_id:
            logger.debug("user resolved via %s", name)
            return user_id
    return None


def find_customer_email(customer_id: str) -> Optional[str]:
    """Best effort: any Stripe failure or a deleted customer yields None."""
    customer_id = safe_string(customer_id)
    if not customer_id:
        return None
    try:
        customer = stripe_client.retrieve_customer(customer_id)
    except (stripe.StripeError, RuntimeError, requests.RequestException) as e:
        logger.warning("stripe customer lookup failed customer_id=%s: %s", customer_id, e)
        return None
    if customer.get("deleted"):
        return None
    return safe_string(customer.get("email")).lower() or None


def _by_customer_id(customer_id: str) -> UserIdResolver:
    return lambda: profile_repo.find_user_id_by_customer_id(customer_id) if customer_id else None


def _by_email(email: Optional[str]) -> UserIdResolver:
    return lambda: profile_repo.find_user_id_by_email(email) if email else None


def resolve_user_from_checkout_session(session: CheckoutSession) -> ResolvedUser:
    customer_id = session.customer_id
    email = session.email.lower() or None

    user_id = resolve_first(
        [
            ("client_reference_id", lambda: session.client_reference_id),
            ("metadata", session.metadata_user_id),
            ("customer_id", _by_customer_id(customer_id)),
            ("email", _by_email(email)),
        ]
    )
    return ResolvedUser(user_id=user_id, email=email, customer_id=customer_id or None)


def resolve_user_from_subscription(subscription: Subscription) -> ResolvedUser:
    customer_id = subscription.customer_id
    # needed for the profile stub even when metadata already names the user
    email = find_customer_email(customer_id) if customer_id else None

    user_id = resolve_first(
        [
            ("metadata", subscription.metadata_user_id),
            ("customer_id", _by_customer_id(customer_id)),
            ("email", _by_email(email)),
        ]
    )
    return ResolvedUser(user_id=user_id, email=email, customer_id=customer_id or None)
