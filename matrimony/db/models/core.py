"""SQLAlchemy models for entitlements and contact usage.

Users live in the external identity provider, so rows are keyed by its
opaque ``user_id`` string. All DATETIME columns hold naive UTC.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from matrimony.db.base import Base


class PackageMirror(Base):
    """Read-only copy of the in-code catalog for other tooling."""

    __tablename__ = "packages"
    __table_args__ = (UniqueConstraint("code", name="uq_packages_code"),)

    code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    validity_months: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_contact_cap: Mapped[int] = mapped_column(Integer, nullable=False)
    total_contact_cap: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="INR", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("user_id", name="uq_subscriptions_user_id"),)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    package_id: Mapped[str | None] = mapped_column(String(32))
    start_date: Mapped[datetime | None] = mapped_column(DateTime)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("active", "expired", "cancelled", name="subscription_status"),
        default="active",
        nullable=False,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class ContactUsage(Base):
    __tablename__ = "contact_usage"
    __table_args__ = (UniqueConstraint("user_id", name="uq_contact_usage_user_id"),)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    weekly_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weekly_reset_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contacted_profile_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class PlanPurchase(Base):
    """Append-only purchase history; rows are never updated."""

    __tablename__ = "plan_purchases"

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    package_id: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payment_id: Mapped[str | None] = mapped_column(String(128))
    activated_by: Mapped[str] = mapped_column(
        Enum("payment", "admin", "system", name="activation_source"),
        default="system",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    target_user_id: Mapped[str | None] = mapped_column(String(128))
    payload_json: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


__all__ = [
    "PackageMirror",
    "Subscription",
    "ContactUsage",
    "PlanPurchase",
    "AuditLog",
]
