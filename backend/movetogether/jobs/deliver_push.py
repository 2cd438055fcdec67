from __future__ import annotations
import httpx
import structlog
from movetogether.config import settings

log = structlog.get_logger()

ONESIGNAL_URL = "https://api.onesignal.com/notifications"


def build_payload(message: dict) -> dict:
    return {
        "app_id": settings.onesignal_app_id,
        "include_aliases": {"external_id": list(message["recipient_ids"])},
        "target_channel": "push",
        "headings": {"en": message["title"]},
        "contents": {"en": message["body"]},
        "data": message.get("data") or {},
    }


def deliver_push(message: dict, client: httpx.Client | None = None) -> bool:
    """RQ job: push one message to its recipients through OneSignal. Returns False when skipped or rejected."""
    if not message.get("recipient_ids"):
        return False
    if not (settings.onesignal_app_id and settings.onesignal_rest_api_key):
        log.warning("push_skipped_unconfigured", type=(message.get("data") or {}).get("type"))
        return False

    own_client = client is None
    client = client or httpx.Client(timeout=10.0)
    try:
        r = client.post(
            ONESIGNAL_URL,
            json=build_payload(message),
            headers={"Authorization": f"Key {settings.onesignal_rest_api_key}"},
        )
    finally:
        if own_client:
            client.close()

    if r.status_code >= 400:
        log.error("push_delivery_failed", status=r.status_code, body=r.text[:500])
        return False
    log.info("push_delivered", recipients=len(message["recipient_ids"]), type=(message.get("data") or {}).get("type"))
    return True
