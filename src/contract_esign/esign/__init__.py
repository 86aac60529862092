"""E-signature provider integration: signing, webhook auth, transport."""

from contract_esign.esign.callback_auth import CallbackAuthenticator, compute_signature
from contract_esign.esign.client import FileUrl, FlowApprover, ProviderClient, SignUrl
from contract_esign.esign.rate_limiter import RateLimiter
from contract_esign.esign.signer import RequestSigner, SignedRequest

__all__ = [
    "CallbackAuthenticator",
    "compute_signature",
    "FileUrl",
    "FlowApprover",
    "ProviderClient",
    "SignUrl",
    "RateLimiter",
    "RequestSigner",
    "SignedRequest",
]
