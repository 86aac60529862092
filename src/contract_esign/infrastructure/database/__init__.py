"""Database infrastructure - engine, ORM models, and repositories."""

from contract_esign.infrastructure.database.engine import (
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
)
from contract_esign.infrastructure.database.orm_models import (
    AuditLog,
    Base,
    Contract,
    ContractStatusLog,
)
from contract_esign.infrastructure.database.repositories import (
    AuditRepository,
    ContractRepository,
    StatusLogRepository,
)

__all__ = [
    "Base",
    "AuditLog",
    "Contract",
    "ContractStatusLog",
    "AuditRepository",
    "ContractRepository",
    "StatusLogRepository",
    "get_async_session",
    "get_session_factory",
    "init_db",
    "close_db",
]
