"""Webhook route: any path, deploys on a POST that names a package."""
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from loguru import logger
from pydantic import ValidationError

from api.schemas import PackageReleased
from core.metrics import DEPLOYMENT_COUNTER
from core.orchestrator import DeploymentOrchestrator

router = APIRouter()

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

OK_BODY = "OK\n"
ILLEGAL_BODY = "ILLEGAL REQUEST\n"


def _parse_body(body: bytes) -> Any:
    """Decode a JSON body; anything unparseable counts as an empty body."""
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        return {}


def parse_notification(method: str, payload: Any) -> Optional[PackageReleased]:
    """Return the notification when the request should trigger a deployment."""
    if method != "POST" or not isinstance(payload, dict):
        return None
    try:
        return PackageReleased.model_validate(payload)
    except ValidationError:
        return None


@router.api_route("/{path:path}", methods=ALL_METHODS)
async def webhook(request: Request):
    payload = _parse_body(await request.body())
    notification = parse_notification(request.method, payload)

    if notification is None:
        logger.debug(f"illegal request received {request.method} {request.url.path} {payload}")
        return PlainTextResponse(ILLEGAL_BODY, status_code=400)

    logger.info(f"incoming webhook {request.method} {request.url.path} {payload}")
    DEPLOYMENT_COUNTER.inc()

    orchestrator: DeploymentOrchestrator = request.app.state.orchestrator
    outcome = await orchestrator.deploy(notification.to_request())
    if outcome.success:
        return PlainTextResponse(OK_BODY)
    return PlainTextResponse(f"ERROR\n{outcome.reason}", status_code=500)
