"""Webhook authenticity check.

A delivery is accepted when its claimed timestamp lies within the freshness
window and its signature equals

    hex(HMAC-SHA256(secret, f"{timestamp}\\n" + raw_body))

compared in constant time. The raw body is the exact byte sequence that
arrived on the wire, never a re-serialised copy.

The authenticator fails closed: a missing secret, an unparsable timestamp,
a non-hex signature or any unexpected error yields False.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from collections.abc import Callable

from contract_esign.logging_config import get_logger, redact

logger = get_logger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def compute_signature(secret: str, timestamp: int | str, raw_body: bytes) -> str:
    """Return the expected lowercase-hex signature for a delivery."""
    message = f"{timestamp}\n".encode() + raw_body
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class CallbackAuthenticator:
    """Verifies webhook deliveries against a shared secret.

    Usage:
        auth = CallbackAuthenticator(secret=settings.callback_secret)
        if not auth.verify(await request.body(), signature, timestamp):
            ...  # reject with 401
    """

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret or ""
        self._tolerance = tolerance_seconds
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def check(self, raw_body: bytes, signature: str | None, timestamp: int | str | None) -> str | None:
        """Return None when the delivery is authentic, otherwise the rejection reason."""
        if not self._secret:
            return "callback secret not configured"
        if not signature:
            return "missing signature"
        if timestamp is None or timestamp == "":
            return "missing timestamp"

        # signed as sent; digits only
        ts_text = str(timestamp)
        if not (ts_text.isascii() and ts_text.isdigit()):
            return "malformed timestamp"

        if abs(self._clock() - int(ts_text)) > self._tolerance:
            return "timestamp outside freshness window"

        if not isinstance(signature, str) or not set(signature) <= _HEX_DIGITS:
            return "malformed signature"

        if not isinstance(raw_body, bytes | bytearray):
            return "malformed body"

        expected = compute_signature(self._secret, ts_text, bytes(raw_body))
        # Exact match: case is part of the signature.
        if not hmac.compare_digest(expected, signature):
            return "signature mismatch"
        return None

    def verify(self, raw_body: bytes, signature: str | None, timestamp: int | str | None) -> bool:
        """Return True only for an authentic, fresh delivery."""
        try:
            reason = self.check(raw_body, signature, timestamp)
        except Exception:
            logger.exception("callback.verify_error")
            return False

        if reason is not None:
            logger.warning(
                "callback.signature_rejected",
                reason=reason,
                timestamp=timestamp,
                signature=redact(signature or ""),
            )
            return False
        return True
