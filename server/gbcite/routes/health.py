from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from server.gbcite.config import Settings

router = APIRouter()


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.get("/readyz")
def readyz(request: Request):
    settings: Settings = request.app.state.settings

    if not settings.openai_api_key:
        raise HTTPException(status_code=503, detail="OPENAI_API_KEY missing")
    if not settings.openai_base_url.strip():
        raise HTTPException(status_code=503, detail="OPENAI_BASE_URL missing")
    return {"ok": True}
