"""SQLAlchemy-backed store.

Per-user rows are read with ``SELECT ... FOR UPDATE`` and carry a version
column, so a concurrent writer either blocks on the row lock (MySQL/InnoDB) or
fails the version check at flush time. Both conflict shapes surface as
:class:`TransactionConflict` so callers can retry.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from matrimony.db.models.core import AuditLog, ContactUsage, PackageMirror, PlanPurchase, Subscription
from matrimony.db.session import Database
from matrimony.domain.models import (
    AuditEntry,
    ContactUsageState,
    Package,
    PurchaseRecord,
    SubscriptionState,
)
from matrimony.logging import logger
from matrimony.services.exceptions import StoreUnavailable, TransactionConflict
from matrimony.store.base import QuotaStore, T, TransactionFn, UserTransaction
from matrimony.utils.datetime import ensure_utc, to_storage, utc_now

_UNLOADED: Any = object()


def _subscription_state(row: Subscription) -> SubscriptionState:
    return SubscriptionState(
        package_id=row.package_id,
        start_date=ensure_utc(row.start_date),
        expiry_date=ensure_utc(row.expiry_date),
        is_active=row.is_active,
        status=row.status,
        cancelled_at=ensure_utc(row.cancelled_at),
    )


def _usage_state(row: ContactUsage) -> ContactUsageState:
    return ContactUsageState(
        weekly_count=row.weekly_count,
        weekly_reset_at=ensure_utc(row.weekly_reset_at),
        total_count=row.total_count,
        contacted_profile_ids=list(row.contacted_profile_ids or []),
    )


def _purchase_record(row: PlanPurchase) -> PurchaseRecord:
    return PurchaseRecord(
        user_id=row.user_id,
        package_id=row.package_id,
        price=row.price,
        start_date=ensure_utc(row.start_date),
        expiry_date=ensure_utc(row.expiry_date),
        payment_id=row.payment_id,
        activated_by=row.activated_by,
        created_at=ensure_utc(row.created_at),
    )


class _SqlTransaction(UserTransaction):
    def __init__(self, session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self._subscription_row: Subscription | None = _UNLOADED
        self._usage_row: ContactUsage | None = _UNLOADED

    async def _load_subscription(self) -> Subscription | None:
        if self._subscription_row is _UNLOADED:
            stmt = (
                select(Subscription)
                .where(Subscription.user_id == self.user_id)
                .with_for_update()
            )
            result = await self.session.execute(stmt)
            self._subscription_row = result.scalar_one_or_none()
        return self._subscription_row

    async def _load_usage(self) -> ContactUsage | None:
        if self._usage_row is _UNLOADED:
            stmt = (
                select(ContactUsage)
                .where(ContactUsage.user_id == self.user_id)
                .with_for_update()
            )
            result = await self.session.execute(stmt)
            self._usage_row = result.scalar_one_or_none()
        return self._usage_row

    async def get_subscription(self) -> SubscriptionState | None:
        row = await self._load_subscription()
        return _subscription_state(row) if row is not None else None

    async def get_usage(self) -> ContactUsageState | None:
        row = await self._load_usage()
        return _usage_state(row) if row is not None else None

    async def save_subscription(self, state: SubscriptionState) -> None:
        row = await self._load_subscription()
        if row is None:
            row = Subscription(user_id=self.user_id)
            self.session.add(row)
            self._subscription_row = row
        row.package_id = state.package_id
        row.start_date = to_storage(state.start_date)
        row.expiry_date = to_storage(state.expiry_date)
        row.is_active = state.is_active
        row.status = state.status
        row.cancelled_at = to_storage(state.cancelled_at)

    async def save_usage(self, state: ContactUsageState) -> None:
        row = await self._load_usage()
        if row is None:
            row = ContactUsage(user_id=self.user_id)
            self.session.add(row)
            self._usage_row = row
        row.weekly_count = state.weekly_count
        row.weekly_reset_at = to_storage(state.weekly_reset_at)
        row.total_count = state.total_count
        row.contacted_profile_ids = list(state.contacted_profile_ids)

    async def add_purchase(self, record: PurchaseRecord) -> None:
        self.session.add(
            PlanPurchase(
                user_id=record.user_id,
                package_id=record.package_id,
                price=record.price,
                start_date=to_storage(record.start_date),
                expiry_date=to_storage(record.expiry_date),
                payment_id=record.payment_id,
                activated_by=record.activated_by,
                created_at=to_storage(record.created_at),
            )
        )

    async def add_audit(self, entry: AuditEntry) -> None:
        self.session.add(
            AuditLog(
                actor_id=entry.actor_id,
                action_type=entry.action,
                target_user_id=entry.target_user_id,
                payload_json=dict(entry.metadata) or None,
                created_at=to_storage(entry.created_at),
            )
        )


class SqlQuotaStore(QuotaStore):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def run_transaction(self, user_id: str, fn: TransactionFn[T]) -> T:
        try:
            async with self.database.session() as session:
                tx = _SqlTransaction(session, user_id)
                result = await fn(tx)
                await session.flush()
                await session.commit()
                return result
        except (StaleDataError, IntegrityError) as exc:
            logger.warning("store_transaction_conflict", user_id=user_id, error=str(exc))
            raise TransactionConflict(str(exc)) from exc
        except SQLAlchemyError as exc:
            logger.warning("store_unavailable", user_id=user_id, error=str(exc))
            raise StoreUnavailable(str(exc)) from exc

    async def get_subscription(self, user_id: str) -> SubscriptionState | None:
        stmt = select(Subscription).where(Subscription.user_id == user_id)
        row = await self._scalar(stmt)
        return _subscription_state(row) if row is not None else None

    async def get_usage(self, user_id: str) -> ContactUsageState | None:
        stmt = select(ContactUsage).where(ContactUsage.user_id == user_id)
        row = await self._scalar(stmt)
        return _usage_state(row) if row is not None else None

    async def list_purchases(self, user_id: str) -> list[PurchaseRecord]:
        stmt = (
            select(PlanPurchase)
            .where(PlanPurchase.user_id == user_id)
            .order_by(PlanPurchase.created_at.desc(), PlanPurchase.id.desc())
        )
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return [_purchase_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    async def upsert_packages(self, packages: Iterable[Package]) -> int:
        now = to_storage(utc_now())
        count = 0
        try:
            async with self.database.session() as session:
                for package in packages:
                    stmt = select(PackageMirror).where(PackageMirror.code == package.id)
                    result = await session.execute(stmt)
                    row = result.scalar_one_or_none()
                    if row is None:
                        row = PackageMirror(code=package.id)
                        session.add(row)
                    row.name = package.name
                    row.validity_months = package.validity_months
                    row.weekly_contact_cap = package.weekly_contact_cap
                    row.total_contact_cap = package.total_contact_cap
                    row.price = package.price
                    row.currency = package.currency
                    row.updated_at = now
                    count += 1
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return count

    async def list_packages(self) -> list[Package]:
        stmt = select(PackageMirror).order_by(PackageMirror.id)
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc
        return [
            Package(
                id=row.code,
                name=row.name,
                validity_months=row.validity_months,
                weekly_contact_cap=row.weekly_contact_cap,
                total_contact_cap=row.total_contact_cap,
                price=row.price,
                currency=row.currency,
            )
            for row in rows
        ]

    async def _scalar(self, stmt):
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc


__all__ = ["SqlQuotaStore"]
