"""Payroll period, payout and payout item models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pts_allowance.models.base import Base, TimestampMixin


class PayrollPeriod(Base, TimestampMixin):
    """One payroll month with its approval status and aggregate totals."""

    __tablename__ = "pts_periods"

    period_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="OPEN")
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_headcount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("period_month", "period_year", name="period_month_year_unique"),
        CheckConstraint(
            "status IN ('OPEN', 'WAITING_HR', 'WAITING_DIRECTOR', 'CLOSED')",
            name="period_status_check",
        ),
        CheckConstraint("period_month BETWEEN 1 AND 12", name="period_month_check"),
    )

    # Relationships
    payouts: Mapped[list[Payout]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Payout(Base):
    """Computed allowance for one citizen in one period."""

    __tablename__ = "pts_payouts"

    payout_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("pts_periods.period_id", ondelete="CASCADE"),
        nullable=False,
    )
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False)
    master_rate_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pts_rate_snapshot: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    calculated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_payable: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    deducted_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    eligible_days: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("period_id", "citizen_id", name="payout_period_citizen_unique"),
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="payouts")
    items: Mapped[list[PayoutItem]] = relationship(
        back_populates="payout",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PayoutItem.item_id",
    )


class PayoutItem(Base):
    """Line explaining part of a payout (current month or retroactive)."""

    __tablename__ = "pts_payout_items"

    item_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payout_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("pts_payouts.payout_id", ondelete="CASCADE"),
        nullable=False,
    )
    reference_month: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_year: Mapped[int] = mapped_column(Integer, nullable=False)
    item_type: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "item_type IN ('CURRENT', 'RETROACTIVE_ADD', 'RETROACTIVE_DEDUCT')",
            name="payout_item_type_check",
        ),
        CheckConstraint("amount >= 0", name="payout_item_amount_check"),
    )

    # Relationships
    payout: Mapped[Payout] = relationship(back_populates="items")
