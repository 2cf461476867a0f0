import os
import re
from datetime import datetime, timezone
from typing import Any

import requests
from dotenv import load_dotenv

load_dotenv()

PROFILES_TABLE = "user_profiles"

_BODY_PREVIEW_CHARS = 800


class SupabaseError(RuntimeError):
    """PostgREST / Auth call answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _require_env(name: str, value: str):
    if not value:
        raise RuntimeError(f"Missing required env: {name}")


def supabase_url() -> str:
    return os.getenv("SUPABASE_URL", "").strip().rstrip("/")


def supabase_service_role_key() -> str:
    return os.getenv("SUPABASE_SERVICE_ROLE_KEY", "").strip()


def is_supabase_service_configured() -> bool:
    url = supabase_url()
    key = supabase_service_role_key()
    if not url or not key:
        return False
    if not re.match(r"^https?://", url, re.IGNORECASE):
        return False
    # real service-role keys are long JWTs; short values are placeholders
    if len(key) < 20:
        return False
    return True


def ensure_supabase_env_for_db():
    _require_env("SUPABASE_URL", supabase_url())
    _require_env("SUPABASE_SERVICE_ROLE_KEY", supabase_service_role_key())


def supabase_admin_headers():
    supabase_key = supabase_service_role_key()
    return {
        "apikey": supabase_key,
        "Authorization": f"Bearer {supabase_key}",
        "Content-Type": "application/json",
    }


def sb_rest_url(table: str) -> str:
    ensure_supabase_env_for_db()
    return f"{supabase_url()}/rest/v1/{table}"


def sb_auth_url(path: str) -> str:
    ensure_supabase_env_for_db()
    return f"{supabase_url()}/auth/v1/{path.lstrip('/')}"


def _body_preview(r: requests.Response) -> str:
    body = r.text or ""
    if len(body) > _BODY_PREVIEW_CHARS:
        body = body[:_BODY_PREVIEW_CHARS] + "...(truncated)"
    return body


def _raise_for_status(r: requests.Response, verb: str):
    if 200 <= r.status_code < 300:
        return
    ctype = (r.headers.get("content-type") or "").lower()
    body = _body_preview(r)
    raise SupabaseError(
        f"Supabase {verb} failed: {r.status_code} {r.reason} (content-type={ctype}) body={body}",
        status_code=r.status_code,
        body=body,
    )


def _json_or_empty(r: requests.Response, verb: str) -> Any:
    if r.status_code == 204 or not (r.content and r.content.strip()):
        return []

    ctype = (r.headers.get("content-type") or "").lower()
    if "application/json" not in ctype and not ctype.endswith("+json"):
        return []

    try:
        return r.json() or []
    except ValueError as e:
        raise SupabaseError(
            f"Supabase {verb} JSON decode failed: {e} (status={r.status_code}, content-type={ctype})",
            status_code=r.status_code,
            body=_body_preview(r),
        ) from e


def sb_get_json(url: str, params: dict) -> list:
    r = requests.get(url, headers=supabase_admin_headers(), params=params, timeout=15)
    _raise_for_status(r, "GET")
    return _json_or_empty(r, "GET")


def sb_post_json(
    url: str,
    payload: Any,
    prefer: str = "return=representation",
    params: dict | None = None,
) -> list:
    headers = supabase_admin_headers()
    headers["Prefer"] = prefer

    r = requests.post(url, headers=headers, params=params, json=payload, timeout=15)
    _raise_for_status(r, "POST")
    return _json_or_empty(r, "POST")


def sb_patch_json(url: str, payload: dict, params: dict, prefer: str | None = None):
    """
    PostgREST PATCH with the service role.

    PATCH against a filter that matches no row succeeds with an empty body, so
    callers that need the row to exist must create it first.
    """
    headers = supabase_admin_headers()
    if prefer:
        headers = {**headers, "Prefer": prefer}

    r = requests.patch(url, headers=headers, params=params, json=payload, timeout=15)
    _raise_for_status(r, "PATCH")
    return _json_or_empty(r, "PATCH")


def utc_now_iso():
    return datetime.now(timezone.utc).isoformat()
