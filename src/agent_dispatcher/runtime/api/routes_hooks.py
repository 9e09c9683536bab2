"""Hook route registration for the runtime API."""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from ..hooks.payloads import PlanReadyPayload, SessionEndPayload, StopHookPayload, TaskCompletePayload
from ..hooks.router import HookEventRouter

logger = logging.getLogger(__name__)

P = TypeVar("P", bound=BaseModel)


async def _parse_payload(request: Request, model: type[P]) -> P:
    """Parse the raw request body into ``model``.

    Hook senders are shell pipelines, so malformed bodies are answered with a
    plain 400 rather than FastAPI's 422 validation report.

    Raises:
        HTTPException: 400 when the body is not valid JSON for ``model``.
    """
    raw = await request.body()
    try:
        data = json.loads(raw)
        return model.model_validate(data)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError, ValidationError) as exc:
        logger.warning("[Hook] Rejected %s body on %s: %s", model.__name__, request.url.path, exc)
        raise HTTPException(status_code=400, detail=f"invalid {model.__name__} payload")


def register_hook_routes(router: APIRouter, hook_router: HookEventRouter) -> None:
    """Register the four agent hook endpoints on ``router``."""

    @router.post("/hook/stop")
    async def hook_stop(request: Request) -> dict[str, Any]:
        payload = await _parse_payload(request, StopHookPayload)
        classification = await run_in_threadpool(hook_router.handle_stop, payload)
        return {"status": "ok", "outcome": classification.outcome.value}

    @router.post("/hook/session-end")
    async def hook_session_end(request: Request) -> dict[str, Any]:
        payload = await _parse_payload(request, SessionEndPayload)
        await run_in_threadpool(hook_router.handle_session_end, payload)
        return {"status": "ok"}

    @router.post("/hook/plan-ready")
    async def hook_plan_ready(request: Request) -> dict[str, Any]:
        payload = await _parse_payload(request, PlanReadyPayload)
        await run_in_threadpool(hook_router.handle_plan_ready, payload)
        return {"status": "ok"}

    @router.post("/hook/task-complete")
    async def hook_task_complete(request: Request) -> dict[str, Any]:
        """Complete the task of the worker whose ``src_path`` equals the payload cwd.

        Unknown paths still answer 200; the miss is only logged.
        """
        payload = await _parse_payload(request, TaskCompletePayload)
        await run_in_threadpool(hook_router.handle_task_complete, payload)
        return {"status": "ok"}
