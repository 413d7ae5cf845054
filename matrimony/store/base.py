"""Storage contract consumed by the quota services.

A :class:`QuotaStore` owns one subscription document and one contact-usage
document per user plus append-only purchase and audit collections. The only
write path for per-user documents is :meth:`QuotaStore.run_transaction`,
which must serialize concurrent transactions on the same ``user_id``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Iterable, TypeVar

from matrimony.domain.models import (
    AuditEntry,
    ContactUsageState,
    Package,
    PurchaseRecord,
    SubscriptionState,
)

T = TypeVar("T")


class UserTransaction(ABC):
    """Per-user read/write handle valid for a single transaction.

    Writes are applied only when the transaction callable returns; raising
    from it discards them all.
    """

    user_id: str

    @abstractmethod
    async def get_subscription(self) -> SubscriptionState | None: ...

    @abstractmethod
    async def get_usage(self) -> ContactUsageState | None: ...

    @abstractmethod
    async def save_subscription(self, state: SubscriptionState) -> None: ...

    @abstractmethod
    async def save_usage(self, state: ContactUsageState) -> None: ...

    @abstractmethod
    async def add_purchase(self, record: PurchaseRecord) -> None: ...

    @abstractmethod
    async def add_audit(self, entry: AuditEntry) -> None: ...


TransactionFn = Callable[[UserTransaction], Awaitable[T]]


class QuotaStore(ABC):
    @abstractmethod
    async def run_transaction(self, user_id: str, fn: TransactionFn[T]) -> T:
        """Run ``fn`` atomically against ``user_id``'s documents.

        Implementations raise ``TransactionConflict`` when a concurrent writer
        won and ``StoreUnavailable`` for connectivity faults; both are safe to
        retry.
        """

    @abstractmethod
    async def get_subscription(self, user_id: str) -> SubscriptionState | None: ...

    @abstractmethod
    async def get_usage(self, user_id: str) -> ContactUsageState | None: ...

    @abstractmethod
    async def list_purchases(self, user_id: str) -> list[PurchaseRecord]:
        """Return the user's purchase history, newest first."""

    @abstractmethod
    async def upsert_packages(self, packages: Iterable[Package]) -> int: ...

    @abstractmethod
    async def list_packages(self) -> list[Package]: ...


__all__ = ["QuotaStore", "TransactionFn", "UserTransaction"]
