"""Package activation and admin subscription management."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from matrimony.config import Settings, get_settings
from matrimony.domain.models import (
    ActivationSource,
    AuditEntry,
    ContactUsageState,
    OperationResult,
    PurchaseRecord,
    SubscriptionState,
)
from matrimony.i18n import I18nService
from matrimony.logging import logger
from matrimony.services.catalog import PackageCatalog
from matrimony.services.exceptions import StoreError, SubscriptionError
from matrimony.store.base import QuotaStore, UserTransaction
from matrimony.utils.datetime import add_months, next_weekly_boundary, utc_now
from matrimony.utils.retry import retry_async

ADMIN_ACTIONS = {
    "activate": "activate_premium",
    "extend": "extend_premium",
    "expire": "expire_premium",
    "cancel": "cancel_premium",
}


class SubscriptionService:
    def __init__(
        self,
        store: QuotaStore,
        catalog: PackageCatalog,
        settings: Settings | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        i18n: I18nService | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.clock = clock
        self.i18n = i18n or I18nService(default_locale=self.settings.default_language)

    async def activate(
        self,
        user_id: str,
        package_id: str,
        custom_duration_months: int | None = None,
        *,
        payment_id: str | None = None,
        actor_id: str | None = None,
        locale: str | None = None,
    ) -> OperationResult:
        """Start a fresh package period and reset contact usage.

        Every call is a new purchase: counters are zeroed and a purchase
        record is appended even when the package is unchanged.
        """

        package = self.catalog.get(package_id)
        if package is None:
            return self._failure("invalid_package", locale, package_id=package_id)
        months = package.validity_months if custom_duration_months is None else custom_duration_months
        if months < 1:
            return self._failure("invalid_duration", locale)

        if payment_id:
            source: ActivationSource = "payment"
        elif actor_id:
            source = "admin"
        else:
            source = "system"

        async def _apply(tx: UserTransaction) -> SubscriptionState:
            now = self.clock()
            subscription = SubscriptionState(
                package_id=package.id,
                start_date=now,
                expiry_date=add_months(now, months),
                is_active=True,
                status="active",
            )
            await tx.save_subscription(subscription)
            await tx.save_usage(
                ContactUsageState.fresh(next_weekly_boundary(now, self.settings.timezone))
            )
            await tx.add_purchase(
                PurchaseRecord(
                    user_id=user_id,
                    package_id=package.id,
                    price=package.price,
                    start_date=subscription.start_date,
                    expiry_date=subscription.expiry_date,
                    payment_id=payment_id,
                    activated_by=source,
                    created_at=now,
                )
            )
            await self._audit(tx, actor_id, "activate", now, package_id=package.id, months=months)
            return subscription

        result = await self._run(user_id, "activate", _apply, locale)
        if result.success:
            logger.info(
                "subscription_activated",
                user_id=user_id,
                package_id=package.id,
                months=months,
                activated_by=source,
                expiry_date=result.subscription.expiry_date,
            )
        return result

    async def extend(
        self,
        user_id: str,
        additional_months: int,
        *,
        actor_id: str | None = None,
        locale: str | None = None,
    ) -> OperationResult:
        """Push the expiry forward from the current expiry; usage is kept."""

        if additional_months < 1:
            return self._failure("invalid_duration", locale)

        async def _apply(tx: UserTransaction) -> SubscriptionState:
            now = self.clock()
            current = await self._require_subscription(tx)
            base = current.expiry_date or now
            updated = current.model_copy(
                update={
                    "expiry_date": add_months(base, additional_months),
                    "is_active": True,
                    "status": "active",
                    "cancelled_at": None,
                }
            )
            await tx.save_subscription(updated)
            await self._audit(tx, actor_id, "extend", now, additional_months=additional_months)
            return updated

        result = await self._run(user_id, "extend", _apply, locale)
        if result.success:
            logger.info(
                "subscription_extended",
                user_id=user_id,
                additional_months=additional_months,
                expiry_date=result.subscription.expiry_date,
            )
        return result

    async def expire(
        self, user_id: str, *, actor_id: str | None = None, locale: str | None = None
    ) -> OperationResult:
        return await self._deactivate(user_id, "expire", "expired", actor_id, locale)

    async def cancel(
        self, user_id: str, *, actor_id: str | None = None, locale: str | None = None
    ) -> OperationResult:
        return await self._deactivate(user_id, "cancel", "cancelled", actor_id, locale)

    async def get_subscription(self, user_id: str) -> SubscriptionState | None:
        try:
            return await self.store.get_subscription(user_id)
        except StoreError as exc:
            logger.warning("get_subscription_store_error", user_id=user_id, error=str(exc))
            return None

    async def get_purchase_history(self, user_id: str) -> list[PurchaseRecord]:
        """Newest first; empty when the store cannot be reached."""

        try:
            return await self.store.list_purchases(user_id)
        except StoreError as exc:
            logger.warning("purchase_history_store_error", user_id=user_id, error=str(exc))
            return []

    # Internal helpers -------------------------------------------------

    async def _deactivate(
        self,
        user_id: str,
        operation: str,
        status: str,
        actor_id: str | None,
        locale: str | None = None,
    ) -> OperationResult:
        async def _apply(tx: UserTransaction) -> SubscriptionState:
            now = self.clock()
            current = await self._require_subscription(tx)
            updated = current.model_copy(
                update={
                    "is_active": False,
                    "status": status,
                    "cancelled_at": now if status == "cancelled" else current.cancelled_at,
                }
            )
            await tx.save_subscription(updated)
            await self._audit(tx, actor_id, operation, now)
            return updated

        result = await self._run(user_id, operation, _apply, locale)
        if result.success:
            logger.info("subscription_deactivated", user_id=user_id, status=status)
        return result

    @staticmethod
    async def _require_subscription(tx: UserTransaction) -> SubscriptionState:
        current = await tx.get_subscription()
        if current is None:
            raise SubscriptionError(f"No subscription for user {tx.user_id}.")
        return current

    @staticmethod
    async def _audit(
        tx: UserTransaction,
        actor_id: str | None,
        operation: str,
        now: datetime,
        **metadata: Any,
    ) -> None:
        if not actor_id:
            return
        await tx.add_audit(
            AuditEntry(
                actor_id=actor_id,
                action=ADMIN_ACTIONS[operation],
                target_user_id=tx.user_id,
                metadata=metadata,
                created_at=now,
            )
        )

    async def _run(
        self, user_id: str, operation: str, fn, locale: str | None = None
    ) -> OperationResult:
        if not user_id:
            return self._failure("no_subscription", locale)
        quota_cfg = self.settings.quota
        try:
            subscription = await retry_async(
                lambda: self.store.run_transaction(user_id, fn),
                max_attempts=quota_cfg.max_transaction_attempts,
                base_delay=quota_cfg.retry_base_delay_seconds,
                retry_on=(StoreError,),
                logger=logger,
                operation_name=f"subscription_{operation}",
            )
        except SubscriptionError:
            return self._failure("no_subscription", locale)
        except StoreError as exc:
            logger.error("subscription_store_error", user_id=user_id, operation=operation, error=str(exc))
            return self._failure("store_unavailable", locale)
        except Exception:
            logger.exception("subscription_operation_failed", user_id=user_id, operation=operation)
            return self._failure("internal_error", locale)
        return OperationResult(success=True, subscription=subscription)

    def _failure(self, code: str, locale: str | None = None, **kwargs: Any) -> OperationResult:
        return OperationResult(
            success=False,
            error=self.i18n.gettext(f"subscription.{code}", locale=locale, **kwargs),
            error_code=code,
        )


__all__ = ["ADMIN_ACTIONS", "SubscriptionService"]
