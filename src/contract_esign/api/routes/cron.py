"""Scheduled status sync endpoint.

Routes:
    GET|POST /api/cron/sync-status - Reconcile every contract awaiting signatures

Authorised by `Authorization: Bearer <cron_secret>` or `?secret=<cron_secret>`.
With no cron secret configured, requests are allowed and a warning is logged.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from contract_esign.api.deps import get_app_settings, get_sync_service
from contract_esign.config import Settings
from contract_esign.logging_config import get_logger
from contract_esign.schemas.contract import BatchSyncResponse, CronSyncRequest
from contract_esign.services.sync_service import SyncService

router = APIRouter(prefix="/api/cron", tags=["Cron"])
logger = get_logger(__name__)


def _is_authorized(request: Request, secret: str) -> bool:
    if not secret:
        logger.warning("cron.secret_not_configured")
        return True

    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer ") and hmac.compare_digest(auth[len("Bearer "):], secret):
        return True

    query_secret = request.query_params.get("secret", "")
    return bool(query_secret) and hmac.compare_digest(query_secret, secret)


async def _run(
    request: Request,
    sync: SyncService,
    settings: Settings,
    body: CronSyncRequest | None,
) -> JSONResponse | BatchSyncResponse:
    if not _is_authorized(request, settings.cron_secret):
        logger.warning("cron.unauthorized", client=request.client.host if request.client else None)
        return JSONResponse(status_code=401, content={"error": "UNAUTHORIZED", "message": "Unauthorized"})

    batch = await sync.sync_pending(body.contract_ids if body else None)
    return BatchSyncResponse(success=batch.failed == 0, **batch.to_dict())


@router.get("/sync-status", response_model=BatchSyncResponse, summary="Scheduled status sync")
async def sync_status_get(
    request: Request,
    sync: SyncService = Depends(get_sync_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse | BatchSyncResponse:
    return await _run(request, sync, settings, None)


@router.post("/sync-status", response_model=BatchSyncResponse, summary="Scheduled status sync")
async def sync_status_post(
    request: Request,
    body: CronSyncRequest | None = None,
    sync: SyncService = Depends(get_sync_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse | BatchSyncResponse:
    return await _run(request, sync, settings, body)
