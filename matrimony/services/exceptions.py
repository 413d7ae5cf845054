"""Domain-specific exceptions.

Services raise these inside store transactions to abort them; the public
service methods translate them into result models.
"""

from __future__ import annotations


class ServiceError(Exception):
    code = "internal_error"


class EntitlementError(ServiceError):
    pass


class NoActivePackage(EntitlementError):
    code = "no_active_package"


class PackageExpired(EntitlementError):
    code = "package_expired"


class PackageInactive(EntitlementError):
    code = "package_inactive"


class InvalidPackage(EntitlementError):
    code = "invalid_package"


class QuotaExceeded(ServiceError):
    def __init__(
        self,
        message: str,
        *,
        weekly_used: int,
        weekly_limit: int,
        total_used: int,
        total_limit: int,
    ) -> None:
        super().__init__(message)
        self.weekly_used = weekly_used
        self.weekly_limit = weekly_limit
        self.total_used = total_used
        self.total_limit = total_limit


class WeeklyLimitReached(QuotaExceeded):
    code = "weekly_limit_reached"


class TotalLimitReached(QuotaExceeded):
    code = "total_limit_reached"


class SubscriptionError(ServiceError):
    code = "no_subscription"


class StoreError(ServiceError):
    code = "store_unavailable"


class StoreUnavailable(StoreError):
    pass


class TransactionConflict(StoreError):
    pass


__all__ = [
    "ServiceError",
    "EntitlementError",
    "NoActivePackage",
    "PackageExpired",
    "PackageInactive",
    "InvalidPackage",
    "QuotaExceeded",
    "WeeklyLimitReached",
    "TotalLimitReached",
    "SubscriptionError",
    "StoreError",
    "StoreUnavailable",
    "TransactionConflict",
]
