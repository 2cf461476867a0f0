import logging

import requests

from planotto.infra.supabase import client
from planotto.infra.supabase.client import SupabaseError

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS_TABLE = "billing_webhook_events"

_LEDGER_ERRORS = (SupabaseError, requests.RequestException)


def webhook_event_exists(event_id: str) -> bool:
    """
    Check the ledger for event_id.
    A failing lookup counts as "not seen" so the event is still processed.
    """
    if not event_id:
        return False
    try:
        rows = client.sb_get_json(
            client.sb_rest_url(WEBHOOK_EVENTS_TABLE),
            params={"select": "event_id", "event_id": f"eq.{event_id}", "limit": "1"},
        )
    except _LEDGER_ERRORS as e:
        logger.warning("webhook dedup lookup failed event_id=%s: %s", event_id, e)
        return False
    return bool(rows)


def webhook_event_insert(event_id: str, event_type: str, user_id: str | None = None) -> None:
    """Record a processed event. Best effort: the profile is already written."""
    if not event_id:
        return
    try:
        client.sb_post_json(
            client.sb_rest_url(WEBHOOK_EVENTS_TABLE),
            {
                "event_id": event_id,
                "event_type": event_type or "",
                "user_id": user_id,
                "processed_at": client.utc_now_iso(),
            },
            prefer="resolution=ignore-duplicates,return=minimal",
            params={"on_conflict": "event_id"},
        )
    except _LEDGER_ERRORS as e:
        logger.warning("webhook dedup insert failed event_id=%s: %s", event_id, e)
