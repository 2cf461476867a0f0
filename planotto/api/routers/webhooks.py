from fastapi import APIRouter, Depends, Request

from planotto.api.deps import billing_provider
from planotto.api.responses import billing_error_response, unexpected_error_response
from planotto.api.schemas.billing import BillingWebhookOut
from planotto.services.payments.errors import BillingError
from planotto.services.payments.provider import BillingProvider

router = APIRouter(tags=["billing"])


@router.post("/api/billing/webhook", response_model=BillingWebhookOut)
async def api_billing_webhook(request: Request, provider: BillingProvider = Depends(billing_provider)):
    """
    200 once the event is authenticated, whether or not a user matched.
    500 only when the profile write fails, so Stripe redelivers.
    """
    payload_bytes = await request.body()
    signature = request.headers.get("stripe-signature", "")

    try:
        return await provider.handle_webhook(payload_bytes, signature)
    except BillingError as e:
        return billing_error_response(e)
    except Exception as e:
        return unexpected_error_response(e, "Stripe webhook processing failed.")
