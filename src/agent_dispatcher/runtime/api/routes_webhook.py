"""Tracker webhook route registration for the runtime API."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from ..orchestrator.manager import Manager
from .schemas import ENQUEUE_EVENTS, WebhookEvent

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


def compute_signature(body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())


def register_webhook_routes(router: APIRouter, manager: Manager, *, secret: Optional[str] = None) -> None:
    """Register ``POST /webhook/task``, which feeds pushed tasks into the manager queue.

    Args:
        router (APIRouter): Router receiving the route.
        manager (Manager): Manager whose queue receives accepted tasks.
        secret (Optional[str]): Shared signing secret; when set, unsigned or
            mis-signed requests are rejected with 401.
    """

    @router.post("/webhook/task")
    async def webhook_task(request: Request) -> dict[str, Any]:
        body = await request.body()
        if secret and not verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
            logger.warning("[Webhook] Signature verification failed")
            raise HTTPException(status_code=401, detail="invalid signature")
        try:
            event = WebhookEvent.model_validate(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError, ValidationError) as exc:
            logger.warning("[Webhook] Rejected event body: %s", exc)
            raise HTTPException(status_code=400, detail="invalid webhook event")

        logger.info("[Webhook] Event %s for task %s", event.event, event.task_id)
        list_id = event.resolved_list_id()
        if not list_id or not event.task_id:
            logger.info("[Webhook] Event has no task or list id; ignored")
            return {"status": "ignored"}
        if event.event not in ENQUEUE_EVENTS:
            logger.info("[Webhook] Unhandled event type %s; ignored", event.event)
            return {"status": "ignored"}
        if not manager.enqueue_task(event.task_id, list_id):
            return {"status": "ignored"}
        return {"status": "queued", "task_id": event.task_id, "list_id": list_id}
