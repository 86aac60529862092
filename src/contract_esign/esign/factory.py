"""Settings-driven construction of the provider integration objects.

The only place in this package that reads Settings. Signer, authenticator
and client are lazy module singletons, disposed by close_provider_client()
from the FastAPI lifespan.
"""

from __future__ import annotations

import httpx

from contract_esign.config import get_settings
from contract_esign.esign.callback_auth import CallbackAuthenticator
from contract_esign.esign.client import ProviderClient
from contract_esign.esign.rate_limiter import RateLimiter
from contract_esign.esign.signer import RequestSigner
from contract_esign.logging_config import get_logger

logger = get_logger(__name__)

_signer: RequestSigner | None = None
_client: ProviderClient | None = None


def get_request_signer() -> RequestSigner:
    global _signer
    if _signer is None:
        settings = get_settings()
        _signer = RequestSigner(
            secret_id=settings.tencent_secret_id,
            secret_key=settings.tencent_secret_key,
            host=settings.esign_host,
            service=settings.esign_service,
        )
    return _signer


def get_callback_authenticator() -> CallbackAuthenticator:
    settings = get_settings()
    return CallbackAuthenticator(
        secret=settings.callback_secret,
        tolerance_seconds=settings.esign_callback_tolerance_seconds,
    )


def get_provider_client() -> ProviderClient:
    """Get or create the provider client (lazy singleton)."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = ProviderClient(
            signer=get_request_signer(),
            http_client=httpx.AsyncClient(timeout=settings.esign_timeout_seconds),
            rate_limiter=RateLimiter(settings.esign_rate_limit_per_second),
            version=settings.esign_api_version,
            region=settings.esign_region,
            operator_id=settings.esign_operator_id,
            max_attempts=settings.esign_max_attempts,
            backoff_base_seconds=settings.esign_backoff_base_seconds,
            backoff_max_seconds=settings.esign_backoff_max_seconds,
            timeout_seconds=settings.esign_timeout_seconds,
            default_sign_url_ttl_seconds=settings.sign_url_default_ttl_seconds,
        )
        logger.info(
            "provider.client_created",
            host=settings.esign_host,
            region=settings.esign_region or None,
            rate_limit=settings.esign_rate_limit_per_second,
        )
    return _client


async def close_provider_client() -> None:
    """Close the shared HTTP client. Called during FastAPI's lifespan shutdown."""
    global _client, _signer
    if _client is not None:
        await _client.http_client.aclose()
        logger.info("provider.client_closed")
    _client = None
    _signer = None
