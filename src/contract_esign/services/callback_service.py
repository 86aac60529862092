"""Callback Service - the inbound webhook pipeline.

    parse -> require fields -> authenticate -> check FlowStatus -> resolve contract -> reconcile

Each exit maps to an HTTP status:
    400  body is not a JSON object, or a required field is missing
    401  signature or freshness check failed (no state is touched)
    404  no contract is bound to the reported flow id
    200  any reconcile outcome, including rejected transitions
    500  unexpected failure

Reconcile attempts are audited by the reconciler. Every other exit is
audited here, so each delivery leaves exactly one audit record.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from contract_esign.domain.enums import AuditAction, SyncSource
from contract_esign.domain.status_mapping import signal_from_callback
from contract_esign.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
)
from contract_esign.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from contract_esign.esign.callback_auth import CallbackAuthenticator
    from contract_esign.services.reconciler import StatusReconciler

logger = get_logger(__name__)

ERROR_OUTCOME = "error"
_RAW_PREVIEW_BYTES = 4096


@dataclass(frozen=True)
class CallbackResponse:
    status_code: int
    success: bool
    outcome: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome,
            "message": self.message,
            "data": self.data,
        }


class CallbackService:
    """Authenticates a webhook delivery and feeds it to the reconciler."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        authenticator: CallbackAuthenticator,
        reconciler: StatusReconciler,
    ) -> None:
        self._session_factory = session_factory
        self._authenticator = authenticator
        self._reconciler = reconciler

    async def handle(
        self,
        raw_body: bytes,
        signature: str | None = None,
        timestamp: str | None = None,
    ) -> CallbackResponse:
        """Process one delivery.

        Args:
            raw_body: The request body exactly as received.
            signature: X-Esign-Signature header; falls back to the body's Sign.
            timestamp: X-Esign-Timestamp header; falls back to the body's Timestamp.
        """
        payload: dict[str, Any] | None = None
        try:
            try:
                parsed = json.loads(raw_body or b"")
            except ValueError:
                return await self._reject(400, "Invalid JSON body", raw_body)
            if not isinstance(parsed, dict):
                return await self._reject(400, "Callback body must be a JSON object", raw_body)
            payload = parsed

            signature_source = "header" if signature else "body"
            signature = signature or _as_str(payload.get("Sign"))
            timestamp = timestamp or _as_str(payload.get("Timestamp"))
            flow_id = _as_str(payload.get("FlowId"))
            present = {
                "FlowId": flow_id,
                "FlowStatus": _as_str(payload.get("FlowStatus")),
                "Sign": signature,
                "Timestamp": timestamp,
            }
            missing = [name for name, value in present.items() if not value]
            if missing:
                return await self._reject(
                    400, f"Missing required fields: {', '.join(missing)}", raw_body, payload
                )

            if not self._authenticator.verify(raw_body, signature, timestamp):
                message = "Signature verification failed"
                if signature_source == "body":
                    # the raw body carries Sign, so its HMAC covers the signature itself
                    message += ": Sign embedded in the signed body"
                return await self._reject(
                    401, message, raw_body, payload, signature_source=signature_source
                )

            try:
                int(payload["FlowStatus"])
            except (TypeError, ValueError):
                return await self._reject(400, "FlowStatus must be an integer", raw_body, payload)

            async with self._session_factory() as session:
                contract = await ContractRepository(session).get_by_flow_id(flow_id)
            if contract is None:
                return await self._reject(404, f"No contract for flow {flow_id}", raw_body, payload)

            signal = signal_from_callback(payload)
            logger.info(
                "callback.accepted",
                flow_id=flow_id,
                contract_id=str(contract.id),
                flow_status=signal.flow_status,
            )
        except Exception:
            logger.exception("callback.processing_error")
            return await self._reject(500, "Internal error processing callback", raw_body, payload)

        try:
            result = await self._reconciler.reconcile(contract.id, signal)
        except Exception:
            # already audited by the reconciler
            logger.exception("callback.reconcile_error", flow_id=flow_id)
            return CallbackResponse(
                status_code=500,
                success=False,
                outcome=ERROR_OUTCOME,
                message="Internal error processing callback",
                data={"flow_id": flow_id},
            )

        return CallbackResponse(
            status_code=200,
            success=result.success,
            outcome=result.outcome.value,
            message=result.message,
            data={
                "contract_id": result.contract_id,
                "flow_id": flow_id,
                "from_status": result.from_status.value if result.from_status else None,
                "to_status": result.to_status.value if result.to_status else None,
            },
        )

    async def _reject(
        self,
        status_code: int,
        message: str,
        raw_body: bytes,
        payload: dict[str, Any] | None = None,
        signature_source: str | None = None,
    ) -> CallbackResponse:
        flow_id = _as_str(payload.get("FlowId")) if payload else None
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "callback.rejected",
            status_code=status_code,
            reason=message,
            flow_id=flow_id,
            signature_source=signature_source,
        )

        details: dict[str, Any] = {"status_code": status_code}
        if signature_source is not None:
            details["signature_source"] = signature_source
        if payload is not None:
            details["payload"] = payload
        else:
            details["raw_body"] = (raw_body or b"")[:_RAW_PREVIEW_BYTES].decode("utf-8", errors="replace")

        try:
            async with self._session_factory() as session, session.begin():
                await AuditRepository(session).record(
                    action=AuditAction.ESIGN_CALLBACK,
                    source=SyncSource.CALLBACK,
                    success=False,
                    outcome=ERROR_OUTCOME,
                    flow_id=flow_id,
                    error=message,
                    details=details,
                )
        except Exception:
            logger.exception("callback.audit_failed", status_code=status_code, flow_id=flow_id)

        return CallbackResponse(
            status_code=status_code,
            success=False,
            outcome=ERROR_OUTCOME,
            message=message,
            data={"flow_id": flow_id} if flow_id else {},
        )


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
