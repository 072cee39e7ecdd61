from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request

from server.gbcite.config import Settings
from server.gbcite.core.rate_limit import enforce_rate_limit
from server.gbcite.formatting.service import format_references, validate_reference_text
from server.gbcite.llm.chat import ChatClient

router = APIRouter()


@router.post("/api/format")
def format_endpoint(request: Request, payload: Any = Body(None)):
    settings: Settings = request.app.state.settings
    enforce_rate_limit(
        request,
        settings=settings,
        key="format",
        limit=settings.rate_limit_format,
        window_seconds=settings.rate_limit_window_seconds,
    )

    text = validate_reference_text(payload.get("text") if isinstance(payload, dict) else None)
    client = ChatClient.from_settings(settings, session=getattr(request.app.state, "http_session", None))
    result = format_references(client, text)
    return result.to_dict()
