from typing import Literal, Optional

from pydantic import BaseModel, Field


class BillingCheckoutIn(BaseModel):
    """
    Body of POST /api/billing/checkout (all optional).
    Paths must be same-site absolute paths; anything else falls back to the defaults.
    """

    success_path: Optional[str] = Field(None, description="Redirect path after a successful payment")
    cancel_path: Optional[str] = Field(None, description="Redirect path when checkout is abandoned")


class BillingPortalIn(BaseModel):
    return_path: Optional[str] = Field(None, description="Path the billing portal links back to")


class BillingSessionOut(BaseModel):
    ok: bool = True
    error: Optional[str] = None
    url: Optional[str] = None


class BillingStatusOut(BaseModel):
    ok: bool = True
    error: Optional[str] = None
    plan_tier: Literal["free", "pro"] = "free"
    subscription_status: Literal["inactive", "trial", "active", "past_due", "canceled"] = "inactive"
    pro_expires_at: str = ""
    has_stripe_customer: bool = False
    billing_configured: bool = False
    paid_features: list[str] = Field(default_factory=list)


class BillingWebhookOut(BaseModel):
    ok: bool = True
    received: bool = True
    error: Optional[str] = None
    event: Optional[str] = None
    ignored: bool = False
    duplicate: bool = False
    user_id: Optional[str] = None
    applied: bool = False
    degraded: bool = False
