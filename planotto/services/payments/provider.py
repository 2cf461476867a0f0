from abc import ABC, abstractmethod

from planotto.api.schemas.billing import (
    BillingCheckoutIn,
    BillingPortalIn,
    BillingSessionOut,
    BillingStatusOut,
    BillingWebhookOut,
)
from planotto.domain.auth.models import Identity


class BillingProvider(ABC):
    """Payment provider interface used by the billing endpoints."""

    @abstractmethod
    async def checkout(self, identity: Identity, payload: BillingCheckoutIn, app_url: str) -> BillingSessionOut:
        """Open a subscription checkout for the user."""
        raise NotImplementedError

    @abstractmethod
    async def portal(self, identity: Identity, payload: BillingPortalIn, app_url: str) -> BillingSessionOut:
        """Open the self-service billing portal for the user."""
        raise NotImplementedError

    @abstractmethod
    async def status(self, identity: Identity) -> BillingStatusOut:
        """Current billing state of the user."""
        raise NotImplementedError

    @abstractmethod
    async def handle_webhook(self, payload: bytes, signature: str) -> BillingWebhookOut:
        """Verify and reconcile one provider event."""
        raise NotImplementedError
