import requests

from planotto.infra.supabase import client


def _supabase_auth_get_user(access_token: str) -> dict | None:
    """
    Resolve a Supabase access token to its auth user via /auth/v1/user.
    Returns None when the token is rejected.
    """
    url = client.sb_auth_url("user")
    key = client.supabase_service_role_key()
    headers = {
        "apikey": key,
        "Authorization": f"Bearer {access_token}",
    }
    r = requests.get(url, headers=headers, timeout=10)
    if r.status_code != 200:
        return None
    data = r.json() or {}
    user = data.get("user") or data
    if not isinstance(user, dict):
        return None
    uid = (user.get("id") or "").strip()
    if not uid:
        return None
    return {
        "id": uid,
        "email": user.get("email"),
        "user_metadata": user.get("user_metadata") or {},
    }
