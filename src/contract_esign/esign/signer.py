"""TC3-HMAC-SHA256 request signing for the e-signature provider API.

Signing is a four-stage chain, each stage consuming the previous output:

    1. canonical request   = method, URI, query, headers, signed headers,
                             sha256(body)                (newline-joined)
    2. string to sign      = algorithm, timestamp, credential scope,
                             sha256(canonical request)   (newline-joined)
    3. signing key         = HMAC("TC3" + secret_key, date)
                             -> HMAC(., service) -> HMAC(., "tc3_request")
                             (raw bytes at every step)
    4. signature           = hex(HMAC(signing key, string to sign))

The date is the UTC calendar day of the timestamp and is used in both the
credential scope and the key derivation; a request signed at 23:59:59 UTC
and one signed a second later carry different dates and different keys.

The body that is hashed is the exact string returned in SignedRequest.body;
callers must transmit it unchanged.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from contract_esign.domain.exceptions import ConfigurationError
from contract_esign.logging_config import get_logger

logger = get_logger(__name__)

ALGORITHM = "TC3-HMAC-SHA256"
CONTENT_TYPE = "application/json; charset=utf-8"
HTTP_METHOD = "POST"
CANONICAL_URI = "/"
CANONICAL_QUERY_STRING = ""
SIGNED_HEADERS = "content-type;host;x-tc-action"
TERMINATOR = "tc3_request"
KEY_PREFIX = "TC3"


@dataclass(frozen=True)
class SignedRequest:
    """A ready-to-send provider request. Not persisted; rebuilt per call."""

    method: str
    host: str
    canonical_uri: str
    body: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return f"https://{self.host}{self.canonical_uri}"

    @property
    def body_bytes(self) -> bytes:
        return self.body.encode("utf-8")


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def utc_date(timestamp: int) -> str:
    """Format a Unix timestamp as its UTC calendar date (YYYY-MM-DD)."""
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%d")


def serialize_payload(payload: dict[str, Any]) -> str:
    """Serialize a payload to the JSON text that is both hashed and sent."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


class RequestSigner:
    """Builds signed provider requests from injected credentials.

    Usage:
        signer = RequestSigner(secret_id="AKID...", secret_key="...")
        request = signer.sign("DescribeFlowInfo", "2020-11-11", {"FlowIds": ["x"]})
    """

    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        host: str = "ess.tencentcloudapi.com",
        service: str = "ess",
    ) -> None:
        self._secret_id = secret_id or ""
        self._secret_key = secret_key or ""
        self._host = host
        self._service = service

    @property
    def is_configured(self) -> bool:
        return bool(self._secret_id and self._secret_key)

    @property
    def host(self) -> str:
        return self._host

    def ensure_configured(self) -> None:
        """Raise ConfigurationError unless both secrets are set."""
        missing = [
            name
            for name, value in (("secret_id", self._secret_id), ("secret_key", self._secret_key))
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "E-signature API credentials are not configured "
                f"(missing: {', '.join(missing)}). "
                "Set TENCENT_SECRET_ID and TENCENT_SECRET_KEY."
            )

    # ------------------------------------------------------------------
    # Signing stages
    # ------------------------------------------------------------------

    def canonical_request(self, action: str, hashed_payload: str) -> str:
        canonical_headers = (
            f"content-type:{CONTENT_TYPE}\n"
            f"host:{self._host}\n"
            f"x-tc-action:{action.lower()}\n"
        )
        return "\n".join(
            [
                HTTP_METHOD,
                CANONICAL_URI,
                CANONICAL_QUERY_STRING,
                canonical_headers,
                SIGNED_HEADERS,
                hashed_payload,
            ]
        )

    def credential_scope(self, date: str) -> str:
        return f"{date}/{self._service}/{TERMINATOR}"

    def string_to_sign(self, timestamp: int, credential_scope: str, canonical_request: str) -> str:
        return "\n".join(
            [ALGORITHM, str(timestamp), credential_scope, sha256_hex(canonical_request)]
        )

    def signing_key(self, date: str) -> bytes:
        secret_date = hmac_sha256((KEY_PREFIX + self._secret_key).encode("utf-8"), date)
        secret_service = hmac_sha256(secret_date, self._service)
        return hmac_sha256(secret_service, TERMINATOR)

    def signature(self, date: str, string_to_sign: str) -> str:
        return hmac.new(
            self.signing_key(date), string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def sign(
        self,
        action: str,
        version: str,
        payload: dict[str, Any],
        timestamp: int | float | None = None,
        region: str | None = None,
    ) -> SignedRequest:
        """Produce a SignedRequest for `action`.

        Args:
            action: Provider action name, e.g. "CreateFlow".
            version: API version header value.
            payload: JSON-serializable request body.
            timestamp: Unix time; defaults to now. Truncated to whole seconds.
            region: Optional region; adds X-TC-Region when non-empty.

        Raises:
            ConfigurationError: If either secret is missing.
        """
        self.ensure_configured()

        ts = int(time.time()) if timestamp is None else int(timestamp)
        date = utc_date(ts)

        body = serialize_payload(payload)
        canonical = self.canonical_request(action, sha256_hex(body))
        scope = self.credential_scope(date)
        to_sign = self.string_to_sign(ts, scope, canonical)
        signature = self.signature(date, to_sign)

        authorization = (
            f"{ALGORITHM} Credential={self._secret_id}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        )

        headers = {
            "Content-Type": CONTENT_TYPE,
            "Host": self._host,
            "X-TC-Action": action,
            "X-TC-Version": version,
            "X-TC-Timestamp": str(ts),
            "Authorization": authorization,
        }
        if region:
            headers["X-TC-Region"] = region

        logger.debug("esign.request_signed", action=action, timestamp=ts, date=date)
        return SignedRequest(
            method=HTTP_METHOD,
            host=self._host,
            canonical_uri=CANONICAL_URI,
            body=body,
            headers=headers,
        )
