import logging
from typing import Optional

import requests
from fastapi import Request

from planotto.domain.auth.models import Identity
from planotto.infra.supabase import auth_repo

logger = logging.getLogger(__name__)


def get_bearer_token(request: Request) -> str | None:
    auth = (request.headers.get("authorization") or "").strip()
    if not auth:
        return None
    parts = auth.split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return None


def supabase_auth_get_user(access_token: str) -> dict | None:
    return auth_repo._supabase_auth_get_user(access_token)


def resolve_request_identity(request: Request) -> Optional[Identity]:
    """Identity for the bearer token, or None (no token, rejected token, no email)."""
    token = get_bearer_token(request)
    if not token:
        return None

    try:
        user = supabase_auth_get_user(token)
    except requests.RequestException as e:
        logger.warning("supabase auth lookup failed: %s", e)
        return None

    if not user:
        return None

    email = (user.get("email") or "").strip().lower()
    if not email:
        return None

    return Identity(
        user_id=user["id"],
        email=email,
        user_metadata=user.get("user_metadata") or {},
    )
