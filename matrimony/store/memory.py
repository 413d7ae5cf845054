"""In-process store guarded by one ``asyncio.Lock`` per user."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Iterable

from matrimony.domain.models import (
    AuditEntry,
    ContactUsageState,
    Package,
    PurchaseRecord,
    SubscriptionState,
)
from matrimony.store.base import QuotaStore, T, TransactionFn, UserTransaction


class _MemoryTransaction(UserTransaction):
    def __init__(self, store: "InMemoryQuotaStore", user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self.subscription: SubscriptionState | None = None
        self.usage: ContactUsageState | None = None
        self.purchases: list[PurchaseRecord] = []
        self.audits: list[AuditEntry] = []

    async def get_subscription(self) -> SubscriptionState | None:
        if self.subscription is not None:
            return self.subscription.model_copy(deep=True)
        return await self._store.get_subscription(self.user_id)

    async def get_usage(self) -> ContactUsageState | None:
        if self.usage is not None:
            return self.usage.model_copy(deep=True)
        return await self._store.get_usage(self.user_id)

    async def save_subscription(self, state: SubscriptionState) -> None:
        self.subscription = state.model_copy(deep=True)

    async def save_usage(self, state: ContactUsageState) -> None:
        self.usage = state.model_copy(deep=True)

    async def add_purchase(self, record: PurchaseRecord) -> None:
        self.purchases.append(record)

    async def add_audit(self, entry: AuditEntry) -> None:
        self.audits.append(entry)


class InMemoryQuotaStore(QuotaStore):
    """Store for tests and single-process deployments.

    ``latency`` adds an ``asyncio.sleep`` to every read so concurrent callers
    actually interleave.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self.latency = latency
        self.subscriptions: dict[str, SubscriptionState] = {}
        self.usage: dict[str, ContactUsageState] = {}
        self.purchases: list[PurchaseRecord] = []
        self.audit_log: list[AuditEntry] = []
        self.packages: dict[str, Package] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def run_transaction(self, user_id: str, fn: TransactionFn[T]) -> T:
        async with self._locks[user_id]:
            tx = _MemoryTransaction(self, user_id)
            result = await fn(tx)
            if tx.subscription is not None:
                self.subscriptions[user_id] = tx.subscription
            if tx.usage is not None:
                self.usage[user_id] = tx.usage
            self.purchases.extend(tx.purchases)
            self.audit_log.extend(tx.audits)
            return result

    async def get_subscription(self, user_id: str) -> SubscriptionState | None:
        await asyncio.sleep(self.latency)
        state = self.subscriptions.get(user_id)
        return state.model_copy(deep=True) if state else None

    async def get_usage(self, user_id: str) -> ContactUsageState | None:
        await asyncio.sleep(self.latency)
        state = self.usage.get(user_id)
        return state.model_copy(deep=True) if state else None

    async def list_purchases(self, user_id: str) -> list[PurchaseRecord]:
        records = [record for record in self.purchases if record.user_id == user_id]
        # Later appends win ties, matching the id ordering of the SQL store.
        return sorted(reversed(records), key=lambda record: record.created_at, reverse=True)

    async def upsert_packages(self, packages: Iterable[Package]) -> int:
        count = 0
        for package in packages:
            self.packages[package.id] = package
            count += 1
        return count

    async def list_packages(self) -> list[Package]:
        return list(self.packages.values())


__all__ = ["InMemoryQuotaStore"]
