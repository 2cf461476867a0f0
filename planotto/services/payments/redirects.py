import os
import re
from typing import Any
from urllib.parse import urlsplit

DEFAULT_APP_URL = "http://localhost:3000"

_APP_URL_ENV = ("APP_URL", "SITE_URL", "PUBLIC_APP_URL")


def normalize_url(value: str) -> str:
    raw = (value or "").strip()
    if not raw:
        return ""
    if re.match(r"^https?://", raw, re.IGNORECASE):
        return raw.rstrip("/")
    return f"https://{raw.rstrip('/')}"


def resolve_app_url(request_url: str = "") -> str:
    """Public origin for Stripe redirect URLs: env first, then the request origin."""
    for name in _APP_URL_ENV:
        explicit = normalize_url(os.getenv(name, ""))
        if explicit:
            return explicit

    parts = urlsplit(request_url or "")
    if parts.scheme and parts.netloc:
        return normalize_url(f"{parts.scheme}://{parts.netloc}")
    return DEFAULT_APP_URL


def normalize_relative_path(value: Any, fallback_path: str) -> str:
    """Only same-site absolute paths; anything else (full URLs, relative paths) -> fallback."""
    candidate = str(value or "").strip()
    if not candidate:
        return fallback_path
    if re.match(r"^https?://", candidate, re.IGNORECASE):
        return fallback_path
    if not candidate.startswith("/") or candidate.startswith("//"):
        return fallback_path
    return candidate
