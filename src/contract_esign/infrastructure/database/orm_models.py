"""SQLAlchemy 2.0 ORM models for the contract e-signature gateway.

Three tables:
    1. contracts             - The contract aggregate and its current status.
    2. contract_status_logs  - Append-only log of every committed transition.
    3. audit_logs            - Append-only record of every reconcile attempt,
                               webhook delivery and batch sync.

Design decisions:
    - UUIDs as primary keys.
    - flow_id is unique and, once set, never changes.
    - CHECK constraint on status to prevent invalid enum values at DB level.
    - JSON columns (JSONB on PostgreSQL) for form data and raw signals.
    - Contracts are never deleted; both log tables are append-only.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from contract_esign.domain.enums import ContractStatus

JSONType = JSON().with_variant(JSONB(), "postgresql")

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ContractStatus)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. contracts
# ---------------------------------------------------------------------------
class Contract(Base):
    """A contract between Party A (the organization) and Party B."""

    __tablename__ = "contracts"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_no: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Human-facing contract number",
    )

    # --- Remote flow ---
    flow_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        default=None,
        comment="Provider signing-flow id (set once when signing starts)",
    )
    sign_url: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    sign_url_expire_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    # --- Status (Enum-guarded) ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ContractStatus.DRAFT.value,
        comment="Current lifecycle state (guarded by ContractStateMachine)",
    )

    # --- Party B (denormalized) ---
    party_b_name: Mapped[str] = mapped_column(String(100), nullable=False)
    party_b_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    party_b_id_card: Mapped[str | None] = mapped_column(String(32), nullable=True)
    party_b_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="PERSONAL",
        comment="PERSONAL or ENTERPRISE",
    )
    party_b_org_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # --- Document ---
    template_id: Mapped[str] = mapped_column(String(64), nullable=False)
    form_data: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Template component name -> value",
    )

    # --- Timestamps ---
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_contract_valid_status"),
        CheckConstraint(
            "party_b_type IN ('PERSONAL', 'ENTERPRISE')",
            name="ck_contract_party_b_type",
        ),
        Index("idx_contract_status", "status"),
        Index("idx_contract_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Contract id={self.id} no={self.contract_no} status={self.status}>"


# ---------------------------------------------------------------------------
# 2. contract_status_logs (Append-Only)
# ---------------------------------------------------------------------------
class ContractStatusLog(Base):
    """One committed status transition. Written in the same transaction as the change."""

    __tablename__ = "contract_status_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id"),
        nullable=False,
    )
    from_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Status before the change (null for creation)",
    )
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="SyncSource value that triggered the change",
    )
    remark: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("idx_status_log_contract", "contract_id"),
        Index("idx_status_log_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ContractStatusLog {self.from_status} -> {self.to_status}>"


# ---------------------------------------------------------------------------
# 3. audit_logs (Append-Only)
# ---------------------------------------------------------------------------
class AuditLog(Base):
    """Record of one externally triggered attempt, whatever its outcome."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    action: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="AuditAction value (ESIGN_CALLBACK, MANUAL_SYNC, ...)",
    )
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    flow_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    contract_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    outcome: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="ReconcileOutcome value, or 'error' for pipeline failures",
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Raw signal / payload for forensic replay",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index("idx_audit_flow_id", "flow_id"),
        Index("idx_audit_contract", "contract_id"),
        Index("idx_audit_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog action={self.action} outcome={self.outcome} success={self.success}>"
