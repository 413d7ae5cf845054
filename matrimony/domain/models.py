"""Pydantic models shared across services and storage adapters."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ReasonCode = Literal[
    "missing_ids",
    "no_active_package",
    "package_expired",
    "package_inactive",
    "invalid_package",
    "weekly_limit_reached",
    "total_limit_reached",
    "no_subscription",
    "invalid_duration",
    "store_unavailable",
    "internal_error",
]

SubscriptionStatus = Literal["active", "expired", "cancelled"]
ActivationSource = Literal["payment", "admin", "system"]


class Package(BaseModel):
    """Purchasable entitlement tier."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    validity_months: int = Field(ge=1)
    weekly_contact_cap: int = Field(ge=0)
    total_contact_cap: int = Field(ge=0)
    price: Decimal = Field(ge=0)
    currency: str = "INR"


class SubscriptionState(BaseModel):
    package_id: str | None = None
    start_date: datetime | None = None
    expiry_date: datetime | None = None
    is_active: bool = True
    status: SubscriptionStatus = "active"
    cancelled_at: datetime | None = None


class ContactUsageState(BaseModel):
    """Per-user contact counters.

    ``contacted_profile_ids`` holds every profile ever counted, so its length
    always equals ``total_count``.
    """

    weekly_count: int = Field(default=0, ge=0)
    weekly_reset_at: datetime
    total_count: int = Field(default=0, ge=0)
    contacted_profile_ids: list[str] = Field(default_factory=list)

    @classmethod
    def fresh(cls, weekly_reset_at: datetime) -> "ContactUsageState":
        return cls(weekly_count=0, weekly_reset_at=weekly_reset_at, total_count=0)

    def has_contacted(self, profile_id: str) -> bool:
        return profile_id in self.contacted_profile_ids


class PurchaseRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    package_id: str
    price: Decimal
    start_date: datetime
    expiry_date: datetime
    payment_id: str | None = None
    activated_by: ActivationSource = "system"
    created_at: datetime


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    actor_id: str
    action: str
    target_user_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ContactDecision(BaseModel):
    allowed: bool
    reason: str | None = None
    reason_code: ReasonCode | None = None
    weekly_used: int | None = None
    weekly_limit: int | None = None
    total_used: int | None = None
    total_limit: int | None = None
    already_contacted: bool | None = None
    is_expired: bool | None = None
    retryable: bool = False


class ContactResult(BaseModel):
    success: bool
    already_contacted: bool | None = None
    error: str | None = None
    error_code: ReasonCode | None = None
    weekly_used: int | None = None
    weekly_limit: int | None = None
    total_used: int | None = None
    total_limit: int | None = None
    retryable: bool = False


class OperationResult(BaseModel):
    success: bool
    error: str | None = None
    error_code: ReasonCode | None = None
    subscription: SubscriptionState | None = None


class CatalogSyncResult(BaseModel):
    success: bool
    count: int = 0
    error: str | None = None


__all__ = [
    "ReasonCode",
    "SubscriptionStatus",
    "ActivationSource",
    "Package",
    "SubscriptionState",
    "ContactUsageState",
    "PurchaseRecord",
    "AuditEntry",
    "ContactDecision",
    "ContactResult",
    "OperationResult",
    "CatalogSyncResult",
]
