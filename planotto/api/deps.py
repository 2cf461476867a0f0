from fastapi import HTTPException, Request

from planotto.domain.auth import service as auth_service
from planotto.domain.auth.models import Identity
from planotto.infra.supabase import client as supabase_client
from planotto.services.payments import get_billing_provider
from planotto.services.payments.provider import BillingProvider
from planotto.services.payments.redirects import resolve_app_url


def require_identity(request: Request) -> Identity:
    if not supabase_client.is_supabase_service_configured():
        raise HTTPException(status_code=503, detail="Supabase service role is not configured.")

    identity = auth_service.resolve_request_identity(request)
    if identity is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return identity


def billing_provider() -> BillingProvider:
    return get_billing_provider()


def app_url(request: Request) -> str:
    return resolve_app_url(str(request.url))
