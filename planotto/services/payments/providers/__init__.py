import os

from planotto.services.payments.provider import BillingProvider
from planotto.services.payments.providers.stripe import StripeBillingProvider

_stripe_provider = StripeBillingProvider()


def get_billing_provider() -> BillingProvider:
    selected = os.getenv("BILLING_PROVIDER", "stripe").strip().lower() or "stripe"
    if selected == "stripe":
        return _stripe_provider
    raise ValueError(f"Unsupported billing provider: {selected}")
