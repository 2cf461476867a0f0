from planotto.services.payments.provider import BillingProvider
from planotto.services.payments.providers import get_billing_provider
from planotto.services.payments.providers.stripe import StripeBillingProvider

__all__ = [
    "BillingProvider",
    "StripeBillingProvider",
    "get_billing_provider",
]
