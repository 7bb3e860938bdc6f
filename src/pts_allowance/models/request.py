"""Allowance request, approval action, user and signature models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pts_allowance.models.base import Base, TimestampMixin, utcnow


class User(Base, TimestampMixin):
    """Application user linked to a citizen id."""

    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="USER")


class UserSignature(Base, TimestampMixin):
    """Stored signature image used on requests and approvals."""

    __tablename__ = "pts_user_signatures"

    signature_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    signature_image: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class PTSRequest(Base, TimestampMixin):
    """Allowance request travelling through the approval chain."""

    __tablename__ = "pts_requests"

    request_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_no: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.user_id"),
        nullable=False,
    )
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, index=True)
    personnel_type: Mapped[str] = mapped_column(String, nullable=False)
    request_type: Mapped[str] = mapped_column(String, nullable=False)
    position_number: Mapped[str | None] = mapped_column(String, nullable=True)
    department_group: Mapped[str | None] = mapped_column(String, nullable=True)
    main_duty: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_attributes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    applicant_signature_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("pts_user_signatures.signature_id", ondelete="SET NULL"),
        nullable=True,
    )
    requested_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    submission_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED', "
            "'CANCELLED', 'RETURNED')",
            name="request_status_check",
        ),
        CheckConstraint("current_step BETWEEN 1 AND 6", name="request_step_check"),
    )

    # Relationships
    actions: Mapped[list[RequestAction]] = relationship(
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="RequestAction.action_id",
    )


class RequestAction(Base):
    """Immutable audit row for one workflow transition."""

    __tablename__ = "pts_request_actions"

    action_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("pts_requests.request_id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    step_no: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    signature_snapshot: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    action_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "action IN ('SUBMIT', 'APPROVE', 'REJECT', 'RETURN')",
            name="request_action_check",
        ),
    )

    # Relationships
    request: Mapped[PTSRequest] = relationship(back_populates="actions")
