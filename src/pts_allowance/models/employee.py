"""Employee reference data: profiles, movements, licenses, leave and eligibility."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pts_allowance.models.base import Base, TimestampMixin


class EmployeeProfile(Base):
    """Synced HR profile for a citizen."""

    __tablename__ = "pts_employees"

    citizen_id: Mapped[str] = mapped_column(String(13), primary_key=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    position_name: Mapped[str | None] = mapped_column(String, nullable=True)
    specialist: Mapped[str | None] = mapped_column(String, nullable=True)
    expert: Mapped[str | None] = mapped_column(String, nullable=True)
    sub_department: Mapped[str | None] = mapped_column(String, nullable=True)


class MasterRate(Base):
    """Catalog entry defining a fixed monthly amount for a profession group."""

    __tablename__ = "pts_master_rates"

    rate_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profession_code: Mapped[str] = mapped_column(String, nullable=False)
    group_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    item_no: Mapped[str | None] = mapped_column(String, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RateEligibility(Base, TimestampMixin):
    """Interval during which a master rate applies to a citizen."""

    __tablename__ = "pts_employee_eligibility"

    eligibility_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, index=True)
    master_rate_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("pts_master_rates.rate_id"),
        nullable=False,
    )
    request_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("pts_requests.request_id", ondelete="SET NULL"),
        nullable=True,
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    master_rate: Mapped[MasterRate] = relationship(lazy="joined")


class EmploymentMovement(Base, TimestampMixin):
    """Append-only employment event (entry, exit, study leave)."""

    __tablename__ = "pts_employee_movements"

    movement_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, index=True)
    movement_type: Mapped[str] = mapped_column(String, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "movement_type IN ('ENTRY', 'RESIGN', 'RETIRE', 'DEATH', "
            "'TRANSFER_OUT', 'STUDY')",
            name="movement_type_check",
        ),
    )


class License(Base):
    """Professional license validity window."""

    __tablename__ = "pts_employee_licenses"

    license_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, index=True)
    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="ACTIVE")
    license_name: Mapped[str | None] = mapped_column(String, nullable=True)
    license_type: Mapped[str | None] = mapped_column(String, nullable=True)
    occupation_name: Mapped[str | None] = mapped_column(String, nullable=True)


class LeaveRequest(Base):
    """Leave taken by a citizen, synced from the HR system."""

    __tablename__ = "pts_leave_requests"

    leave_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ref_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False, index=True)
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_days: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="leave_dates_check"),
    )


class LeaveQuota(Base):
    """Vacation allowance per citizen per fiscal year."""

    __tablename__ = "pts_leave_quotas"

    quota_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    citizen_id: Mapped[str] = mapped_column(String(13), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    quota_vacation: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("citizen_id", "fiscal_year", name="leave_quota_unique"),
    )


class Holiday(Base):
    """Public holiday calendar."""

    __tablename__ = "pts_holidays"

    holiday_date: Mapped[date] = mapped_column(Date, primary_key=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
