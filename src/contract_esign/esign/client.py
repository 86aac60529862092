"""Signed transport to the e-signature provider.

Every call goes through the same pipeline:

    rate limiter -> RequestSigner.sign (fresh timestamp) -> HTTP POST
    of exactly SignedRequest.body -> parse {"Response": {...}} -> raise
    ProviderError / TransientProviderError on error

Transient failures (the provider's InternalError family, HTTP 5xx,
timeouts, connection errors) are retried by tenacity with capped
exponential backoff. Every attempt is re-signed so its X-TC-Timestamp is
the time of that attempt. Other provider errors surface immediately.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from contract_esign.domain.enums import ApproverType
from contract_esign.domain.exceptions import ProviderError, TransientProviderError
from contract_esign.logging_config import get_logger

if TYPE_CHECKING:
    from contract_esign.esign.rate_limiter import RateLimiter
    from contract_esign.esign.signer import RequestSigner

logger = get_logger(__name__)

API_VERSION = "2020-11-11"
RETRYABLE_CODES = ("InternalError",)

ERROR_MESSAGES: dict[str, str] = {
    "FailedOperation": "Operation failed, please retry later",
    "InvalidParameter": "Invalid parameter, please check the input",
    "InvalidParameter.CardNumber": "ID card number does not match the signer name",
    "ResourceNotFound": "Resource not found",
    "ResourceNotFound.Flow": "Signing flow not found",
    "ResourceNotFound.Template": "Template not found",
    "OperationDenied.NoPermissionFeature": "Feature not permitted, contact the administrator",
    "OperationDenied.ErrNoResourceAccess": "Organization has no access to this resource",
    "OperationDenied.Forbid": "Operation forbidden",
    "OperationDenied.NoIdentityVerify": "Signer has not completed identity verification",
    "OperationDenied.NoLogin": "Operator is not logged in",
    "UnauthorizedOperation.NoPermissionFeature": "Feature requires a higher service plan",
    "MissingParameter": "Missing required parameter",
    "InternalError": "Provider internal error, please retry later",
    "InternalError.Api": "Provider upstream API failure, please retry later",
}


def is_retryable_code(code: str) -> bool:
    """InternalError and every InternalError.* subcode are transient."""
    return any(code == c or code.startswith(c) for c in RETRYABLE_CODES)


def friendly_message(code: str) -> str:
    return ERROR_MESSAGES.get(code, f"Unknown provider error: {code}")


def _first_object(items: Any, action: str, field_name: str, request_id: str) -> dict[str, Any]:
    """Return items[0] when the provider sent a list of objects."""
    if not isinstance(items, list) or not isinstance(items[0], dict):
        raise ProviderError(
            "INVALID_RESPONSE",
            f"{action} returned a malformed {field_name}",
            request_id,
        )
    return items[0]


# ---------------------------------------------------------------------------
# Request / result value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowApprover:
    """One signer of a flow, as sent to CreateFlow."""

    approver_type: ApproverType
    name: str
    mobile: str
    organization_name: str = ""
    id_card_number: str = ""
    id_card_type: str = ""
    sign_order: int | None = None
    sign_components: tuple[str, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ApproverType": int(self.approver_type),
            "ApproverName": self.name,
            "ApproverMobile": self.mobile,
        }
        if self.organization_name:
            data["OrganizationName"] = self.organization_name
        if self.id_card_number:
            data["ApproverIdCardNumber"] = self.id_card_number
        if self.id_card_type:
            data["ApproverIdCardType"] = self.id_card_type
        if self.sign_components:
            data["SignComponents"] = list(self.sign_components)
        if self.sign_order is not None:
            data["SignOrder"] = self.sign_order
        return data


@dataclass(frozen=True)
class SignUrl:
    url: str
    expire_time: int


@dataclass(frozen=True)
class FileUrl:
    url: str
    expire_time: int


@dataclass
class ProviderClient:
    """Named provider actions over a signed, retried, rate-limited transport.

    Attributes:
        signer: Builds the signed request for every attempt.
        http_client: Shared httpx.AsyncClient (tests inject a MockTransport).
        rate_limiter: Optional outbound ceiling, acquired once per attempt.
        sleep: Backoff sleep; injectable so tests do not wait.
    """

    signer: RequestSigner
    http_client: httpx.AsyncClient
    rate_limiter: RateLimiter | None = None
    version: str = API_VERSION
    region: str = ""
    operator_id: str = ""
    max_attempts: int = 4
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    timeout_seconds: float = 15.0
    default_sign_url_ttl_seconds: int = 1800
    clock: Callable[[], float] = field(default=time.time)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def call(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Invoke `action` and return the provider's Response object.

        Raises:
            ConfigurationError: If the signer has no credentials.
            TransientProviderError: After the attempt ceiling is exhausted.
            ProviderError: Immediately for non-retryable provider errors.
        """
        self.signer.ensure_configured()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base_seconds, max=self.backoff_max_seconds),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=self._log_retry,
            sleep=self.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                data = await self._send_once(action, payload)
        return data

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "provider.retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    async def _send_once(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        signed = self.signer.sign(
            action,
            self.version,
            payload,
            timestamp=int(self.clock()),
            region=self.region or None,
        )

        try:
            response = await self.http_client.post(
                signed.url,
                content=signed.body_bytes,
                headers=signed.headers,
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise TransientProviderError("TIMEOUT", f"{action} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientProviderError("TRANSPORT_ERROR", f"{action} transport failure: {exc}") from exc

        if response.status_code >= 500:
            raise TransientProviderError(
                f"HTTP_{response.status_code}",
                f"{action} returned HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError(
                "INVALID_RESPONSE",
                f"{action} returned a non-JSON body (HTTP {response.status_code})",
            ) from exc

        data = body.get("Response") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ProviderError("INVALID_RESPONSE", f"{action} response has no Response object")

        request_id = str(data.get("RequestId") or "")
        error = data.get("Error")
        if error:
            if not isinstance(error, dict):
                raise ProviderError(
                    "INVALID_RESPONSE", f"{action} returned a malformed Error: {error!r}", request_id
                )
            code = str(error.get("Code") or "UnknownError")
            detail = str(error.get("Message") or "")
            message = friendly_message(code)
            if detail:
                message = f"{message} ({detail})"
            exc_class = TransientProviderError if is_retryable_code(code) else ProviderError
            logger.warning(
                "provider.error",
                action=action,
                code=code,
                request_id=request_id,
                retryable=exc_class.retryable,
            )
            raise exc_class(code, message, request_id)

        if response.status_code >= 400:
            raise ProviderError(
                f"HTTP_{response.status_code}",
                f"{action} returned HTTP {response.status_code}",
                request_id,
            )

        logger.info("provider.call_succeeded", action=action, request_id=request_id)
        return data

    def _operator(self) -> dict[str, str]:
        return {"UserId": self.operator_id}

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def create_flow(
        self,
        flow_name: str,
        approvers: list[FlowApprover],
        unordered: bool | None = None,
        flow_description: str = "",
        flow_type: str = "",
        deadline: int | None = None,
    ) -> str:
        """CreateFlow. Returns the new remote flow id."""
        payload: dict[str, Any] = {
            "Operator": self._operator(),
            "FlowName": flow_name,
            "Approvers": [a.to_payload() for a in approvers],
        }
        if unordered is not None:
            payload["Unordered"] = unordered
        if flow_description:
            payload["FlowDescription"] = flow_description
        if flow_type:
            payload["FlowType"] = flow_type
        if deadline:
            payload["Deadline"] = deadline

        data = await self.call("CreateFlow", payload)
        flow_id = data.get("FlowId")
        if not flow_id:
            raise ProviderError("FLOW_ID_MISSING", "CreateFlow returned no FlowId", str(data.get("RequestId") or ""))
        return str(flow_id)

    async def create_document(
        self,
        flow_id: str,
        template_id: str,
        form_fields: list[dict[str, str]] | None = None,
        file_names: list[str] | None = None,
    ) -> str:
        """CreateDocument from a template. Returns the document id."""
        payload: dict[str, Any] = {
            "Operator": self._operator(),
            "FlowId": flow_id,
            "TemplateId": template_id,
        }
        if file_names:
            payload["FileNames"] = file_names
        if form_fields:
            payload["FormFields"] = form_fields

        data = await self.call("CreateDocument", payload)
        return str(data.get("DocumentId") or "")

    async def start_flow(self, flow_id: str) -> str:
        data = await self.call("StartFlow", {"Operator": self._operator(), "FlowId": flow_id})
        return str(data.get("Status") or "")

    async def create_flow_sign_url(
        self,
        flow_id: str,
        approver: FlowApprover | None = None,
        jump_url: str = "",
        url_type: int | None = None,
    ) -> SignUrl:
        """CreateFlowSignUrl for the first listed approver.

        An absent, non-numeric or non-positive expiry defaults to now plus
        `default_sign_url_ttl_seconds`.
        """
        payload: dict[str, Any] = {"Operator": self._operator(), "FlowId": flow_id}
        if approver is not None:
            info = {
                "ApproverName": approver.name,
                "ApproverMobile": approver.mobile,
                "ApproverType": int(approver.approver_type),
            }
            if approver.organization_name:
                info["OrganizationName"] = approver.organization_name
            payload["FlowApproverInfos"] = [info]
        if jump_url:
            payload["JumpUrl"] = jump_url
        if url_type is not None:
            payload["UrlType"] = url_type

        data = await self.call("CreateFlowSignUrl", payload)
        infos = data.get("FlowApproverUrlInfos") or []
        if not infos:
            raise ProviderError(
                "SIGN_URL_NOT_FOUND",
                "No sign URL returned; check the approver details",
                str(data.get("RequestId") or ""),
            )

        first = _first_object(infos, "CreateFlowSignUrl", "FlowApproverUrlInfos", str(data.get("RequestId") or ""))
        try:
            expire_time = int(first.get("SignUrlExpireTime") or 0)
        except (TypeError, ValueError):
            expire_time = 0
        if expire_time <= 0:
            expire_time = int(self.clock()) + self.default_sign_url_ttl_seconds
            logger.info("provider.sign_url_default_expiry", flow_id=flow_id, expire_time=expire_time)

        return SignUrl(url=str(first.get("SignUrl") or ""), expire_time=expire_time)

    async def describe_flow_info(self, flow_id: str) -> dict[str, Any]:
        """DescribeFlowInfo. Returns the single FlowDetailInfos entry for `flow_id`."""
        data = await self.call(
            "DescribeFlowInfo", {"Operator": self._operator(), "FlowIds": [flow_id]}
        )
        request_id = str(data.get("RequestId") or "")
        details = data.get("FlowDetailInfos") or []
        if not details:
            raise ProviderError("FLOW_NOT_FOUND", f"No flow information for {flow_id}", request_id)
        return _first_object(details, "DescribeFlowInfo", "FlowDetailInfos", request_id)

    async def describe_file_urls(self, flow_id: str) -> FileUrl:
        """DescribeFileUrls for the signed PDF of a flow."""
        data = await self.call(
            "DescribeFileUrls",
            {
                "Operator": self._operator(),
                "BusinessType": "FLOW",
                "BusinessIds": [flow_id],
                "FileType": "PDF",
            },
        )
        request_id = str(data.get("RequestId") or "")
        urls = data.get("FileUrls") or []
        if not urls:
            raise ProviderError(
                "FILE_NOT_FOUND",
                "No contract file found; confirm the contract is fully signed",
                request_id,
            )
        first = _first_object(urls, "DescribeFileUrls", "FileUrls", request_id)
        try:
            expire_time = int(first.get("ExpiredTime") or 0)
        except (TypeError, ValueError):
            expire_time = 0
        return FileUrl(url=str(first.get("Url") or ""), expire_time=expire_time)
