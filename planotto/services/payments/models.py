from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from planotto.services.payments.billing_core import expandable_id, safe_string

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

HANDLED_EVENT_TYPES = frozenset(
    {CHECKOUT_SESSION_COMPLETED, SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED}
)


class StripePayload(BaseModel):
    # Stripe objects carry many more fields than we read; keep them around
    model_config = ConfigDict(extra="allow")

    metadata: Optional[dict[str, Any]] = None

    def metadata_user_id(self) -> str:
        return safe_string((self.metadata or {}).get("supabase_user_id"))


class CustomerDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None


class CheckoutSession(StripePayload):
    id: Optional[str] = None
    client_reference_id: Optional[str] = None
    customer: Optional[Union[str, dict[str, Any]]] = None
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    subscription: Optional[Union[str, dict[str, Any]]] = None

    @property
    def customer_id(self) -> str:
        return expandable_id(self.customer)

    @property
    def subscription_id(self) -> str:
        return expandable_id(self.subscription)

    @property
    def email(self) -> str:
        details_email = safe_string(self.customer_details.email if self.customer_details else None)
        return details_email or safe_string(self.customer_email)


class Subscription(StripePayload):
    id: Optional[str] = None
    status: Optional[str] = None
    customer: Optional[Union[str, dict[str, Any]]] = None
    items: Optional[dict[str, Any]] = None
    cancel_at: Optional[Any] = None
    trial_end: Optional[Any] = None

    @property
    def customer_id(self) -> str:
        return expandable_id(self.customer)

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump()


class _CheckoutData(BaseModel):
    object: CheckoutSession


class _SubscriptionData(BaseModel):
    object: Subscription


class CheckoutCompletedEvent(BaseModel):
    id: str = ""
    type: Literal["checkout.session.completed"]
    data: _CheckoutData

    @property
    def session(self) -> CheckoutSession:
        return self.data.object


class SubscriptionChangedEvent(BaseModel):
    id: str = ""
    type: Literal["customer.subscription.created", "customer.subscription.updated"]
    data: _SubscriptionData

    @property
    def subscription(self) -> Subscription:
        return self.data.object


class SubscriptionDeletedEvent(BaseModel):
    id: str = ""
    type: Literal["customer.subscription.deleted"]
    data: _SubscriptionData

    @property
    def subscription(self) -> Subscription:
        return self.data.object


BillingEvent = Annotated[
    Union[CheckoutCompletedEvent, SubscriptionChangedEvent, SubscriptionDeletedEvent],
    Field(discriminator="type"),
]

_billing_event_adapter: TypeAdapter = TypeAdapter(BillingEvent)


def decode_event(payload: dict[str, Any]) -> Optional[BillingEvent]:
    """
    Decode a verified Stripe event body.

    Returns None for event types we do not reconcile. Raises
    pydantic.ValidationError when a handled type has a malformed body.
    """
    if safe_string(payload.get("type")) not in HANDLED_EVENT_TYPES:
        return None
    return _billing_event_adapter.validate_python(payload)
