"""Webhook ingestion routes for guest messaging channels."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from butler.channels import get_adapter
from butler.config import Settings
from butler.container import Services
from butler.rate_limit import limiter, webhook_limit

from .deps import get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _adapter_config(channel: str, settings: Settings) -> dict[str, Any]:
    if channel == "whatsapp":
        return {"app_secret": settings.whatsapp_app_secret}
    if channel == "sms":
        return {"auth_token": settings.twilio_auth_token}
    return {}


def _decode_payload(body: bytes, content_type: str) -> dict[str, Any]:
    if not body:
        return {}
    if content_type.startswith("application/x-www-form-urlencoded"):
        try:
            return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True))
        except UnicodeDecodeError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid form payload: {exc}") from exc
    try:
        payload = json.loads(body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {exc}") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook payload must be an object")
    return payload


@router.post("/api/webhooks/{channel}")
@limiter.limit(webhook_limit)
async def ingest_webhook(
    channel: str,
    request: Request,
    services: Services = Depends(get_services),
) -> Response:
    body_bytes = await request.body()
    payload = _decode_payload(body_bytes, request.headers.get("content-type", ""))

    channel_name = channel.lower()
    try:
        adapter_cls = get_adapter(channel_name)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    adapter = adapter_cls(config=_adapter_config(channel_name, services.settings))
    if not adapter.verify_signature(body_bytes, request.headers, url=str(request.url)):
        logger.warning("Rejected webhook with invalid signature", extra={"channel": channel_name})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    inbound_messages = list(adapter.parse_incoming(payload, request.headers))
    if not inbound_messages:
        return Response(status_code=status.HTTP_202_ACCEPTED)

    responses = []
    for inbound in inbound_messages:
        outbound = await adapter.handle(services.processor, inbound)
        responses.append(adapter.build_outgoing_payload(outbound, inbound.channel_id))
    return Response(
        content=json.dumps(
            {"processed_messages": len(inbound_messages), "responses": responses},
            default=str,
        ),
        media_type="application/json",
    )
