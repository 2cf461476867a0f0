from typing import Optional

from fastapi import APIRouter, Depends

from planotto.api.deps import app_url, billing_provider, require_identity
from planotto.api.responses import billing_error_response, unexpected_error_response
from planotto.api.schemas.billing import (
    BillingCheckoutIn,
    BillingPortalIn,
    BillingSessionOut,
    BillingStatusOut,
)
from planotto.domain.auth.models import Identity
from planotto.services.payments.errors import BillingError
from planotto.services.payments.provider import BillingProvider

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/checkout", response_model=BillingSessionOut)
async def api_billing_checkout(
    payload: Optional[BillingCheckoutIn] = None,
    identity: Identity = Depends(require_identity),
    base_url: str = Depends(app_url),
    provider: BillingProvider = Depends(billing_provider),
):
    try:
        return await provider.checkout(identity, payload or BillingCheckoutIn(), base_url)
    except BillingError as e:
        return billing_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Failed to create checkout session.")


@router.post("/portal", response_model=BillingSessionOut)
async def api_billing_portal(
    payload: Optional[BillingPortalIn] = None,
    identity: Identity = Depends(require_identity),
    base_url: str = Depends(app_url),
    provider: BillingProvider = Depends(billing_provider),
):
    try:
        return await provider.portal(identity, payload or BillingPortalIn(), base_url)
    except BillingError as e:
        return billing_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Failed to create billing portal session.")


@router.get("/status", response_model=BillingStatusOut)
async def api_billing_status(
    identity: Identity = Depends(require_identity),
    provider: BillingProvider = Depends(billing_provider),
):
    try:
        return await provider.status(identity)
    except BillingError as e:
        return billing_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Failed to load billing status.")
