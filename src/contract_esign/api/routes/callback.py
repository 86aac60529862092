"""Provider webhook endpoint.

Routes:
    GET  /api/callback/esign - Unauthenticated liveness acknowledgement
    POST /api/callback/esign - Signed status push from the provider

The POST handler reads the raw body itself; it must not be parsed by a
pydantic model before the signature over those exact bytes is checked.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from contract_esign.api.deps import get_callback_service
from contract_esign.logging_config import get_logger
from contract_esign.services.callback_service import CallbackService

router = APIRouter(prefix="/api/callback", tags=["Callback"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Esign-Signature"
TIMESTAMP_HEADER = "X-Esign-Timestamp"


@router.get("/esign", summary="Webhook liveness check")
async def callback_liveness() -> dict:
    """Used by the provider console to validate the callback URL."""
    return {"success": True, "message": "E-sign callback endpoint is reachable", "timestamp": int(time.time())}


@router.post("/esign", summary="Receive a signing-flow status push")
async def receive_callback(
    request: Request,
    service: CallbackService = Depends(get_callback_service),
) -> JSONResponse:
    raw_body = await request.body()
    result = await service.handle(
        raw_body,
        signature=request.headers.get(SIGNATURE_HEADER),
        timestamp=request.headers.get(TIMESTAMP_HEADER),
    )
    return JSONResponse(status_code=result.status_code, content=result.to_body())
