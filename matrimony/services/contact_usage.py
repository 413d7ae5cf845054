"""Contact quota engine.

A "contact" (viewing a mobile number, sending interest, opening a full
profile) is counted once per distinct target profile for the lifetime of a
package activation, bounded by the package's weekly and total caps. The weekly
counter rolls over at the next Monday 00:00 in the configured zone.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from matrimony.config import Settings, get_settings
from matrimony.domain.models import (
    ContactDecision,
    ContactResult,
    ContactUsageState,
    Package,
    SubscriptionState,
)
from matrimony.i18n import I18nService
from matrimony.logging import logger
from matrimony.services.catalog import PackageCatalog
from matrimony.services.exceptions import (
    EntitlementError,
    InvalidPackage,
    NoActivePackage,
    PackageExpired,
    PackageInactive,
    QuotaExceeded,
    StoreError,
    TotalLimitReached,
    WeeklyLimitReached,
)
from matrimony.store.base import QuotaStore, UserTransaction
from matrimony.utils.datetime import next_weekly_boundary, utc_now
from matrimony.utils.retry import retry_async


class ContactUsageService:
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

    async def check_can_contact(
        self, user_id: str, target_profile_id: str, *, locale: str | None = None
    ) -> ContactDecision:
        """Advisory check for UI gating; never writes.

        The answer can be stale by the time :meth:`record_contact` runs, which
        re-validates everything inside its own transaction.
        """

        if not user_id or not target_profile_id:
            return ContactDecision(
                allowed=False,
                reason=self._text("missing_ids", locale),
                reason_code="missing_ids",
            )

        try:
            now = self.clock()
            subscription = await self.store.get_subscription(user_id)
            package = self._resolve_entitlement(user_id, subscription, now)
            usage = await self.store.get_usage(user_id) or self._fresh_usage(now)
            weekly_used = self._effective_weekly_count(usage, now)
            if usage.has_contacted(target_profile_id):
                return ContactDecision(
                    allowed=True,
                    already_contacted=True,
                    **self._numbers(weekly_used, usage.total_count, package),
                )
            self._enforce_caps(weekly_used, usage.total_count, package)
        except EntitlementError as exc:
            return ContactDecision(
                allowed=False,
                reason=self._text(exc.code, locale),
                reason_code=exc.code,
                is_expired=True if isinstance(exc, PackageExpired) else None,
            )
        except QuotaExceeded as exc:
            return ContactDecision(
                allowed=False,
                reason=self._text(exc.code, locale, weekly_limit=exc.weekly_limit, total_limit=exc.total_limit),
                reason_code=exc.code,
                **self._numbers_from(exc),
            )
        except StoreError as exc:
            logger.warning("check_can_contact_store_error", user_id=user_id, error=str(exc))
            return ContactDecision(
                allowed=False,
                reason=self._text("store_unavailable", locale),
                reason_code="store_unavailable",
                retryable=True,
            )
        except Exception:
            logger.exception("check_can_contact_failed", user_id=user_id, profile_id=target_profile_id)
            return ContactDecision(
                allowed=False,
                reason=self._text("internal_error", locale),
                reason_code="internal_error",
            )

        return ContactDecision(
            allowed=True,
            already_contacted=False,
            **self._numbers(weekly_used, usage.total_count, package),
        )

    async def record_contact(
        self, user_id: str, target_profile_id: str, *, locale: str | None = None
    ) -> ContactResult:
        """Atomically count ``target_profile_id`` against the user's quota.

        Re-contacting an already counted profile succeeds without consuming
        quota, so a timed-out call is always safe to repeat.
        """

        if not user_id or not target_profile_id:
            return ContactResult(
                success=False,
                error=self._text("missing_ids", locale),
                error_code="missing_ids",
            )

        async def _apply(tx: UserTransaction) -> ContactResult:
            now = self.clock()
            subscription = await tx.get_subscription()
            package = self._resolve_entitlement(user_id, subscription, now)
            usage = await tx.get_usage() or self._fresh_usage(now)

            if usage.has_contacted(target_profile_id):
                return ContactResult(
                    success=True,
                    already_contacted=True,
                    **self._numbers(
                        self._effective_weekly_count(usage, now), usage.total_count, package
                    ),
                )

            usage = self._roll_weekly_window(usage, now)
            self._enforce_caps(usage.weekly_count, usage.total_count, package)

            updated = usage.model_copy(
                update={
                    "weekly_count": usage.weekly_count + 1,
                    "total_count": usage.total_count + 1,
                    "contacted_profile_ids": [*usage.contacted_profile_ids, target_profile_id],
                }
            )
            await tx.save_usage(updated)
            return ContactResult(
                success=True,
                already_contacted=False,
                **self._numbers(updated.weekly_count, updated.total_count, package),
            )

        quota_cfg = self.settings.quota
        try:
            result = await retry_async(
                lambda: self.store.run_transaction(user_id, _apply),
                max_attempts=quota_cfg.max_transaction_attempts,
                base_delay=quota_cfg.retry_base_delay_seconds,
                retry_on=(StoreError,),
                logger=logger,
                operation_name="record_contact",
            )
        except EntitlementError as exc:
            return ContactResult(
                success=False,
                error=self._text(exc.code, locale),
                error_code=exc.code,
            )
        except QuotaExceeded as exc:
            logger.info(
                "contact_limit_reached",
                user_id=user_id,
                reason=exc.code,
                weekly_used=exc.weekly_used,
                total_used=exc.total_used,
            )
            return ContactResult(
                success=False,
                error=self._text(exc.code, locale, weekly_limit=exc.weekly_limit, total_limit=exc.total_limit),
                error_code=exc.code,
                **self._numbers_from(exc),
            )
        except StoreError as exc:
            logger.error("record_contact_store_error", user_id=user_id, error=str(exc))
            return ContactResult(
                success=False,
                error=self._text("store_unavailable", locale),
                error_code="store_unavailable",
                retryable=True,
            )
        except Exception:
            logger.exception("record_contact_failed", user_id=user_id, profile_id=target_profile_id)
            return ContactResult(
                success=False,
                error=self._text("internal_error", locale),
                error_code="internal_error",
            )

        if not result.already_contacted:
            logger.info(
                "contact_recorded",
                user_id=user_id,
                profile_id=target_profile_id,
                weekly_used=result.weekly_used,
                total_used=result.total_used,
            )
        return result

    async def get_usage(self, user_id: str) -> ContactUsageState | None:
        """Current counters with any due weekly roll-over applied to the view."""

        try:
            usage = await self.store.get_usage(user_id)
        except StoreError as exc:
            logger.warning("get_usage_store_error", user_id=user_id, error=str(exc))
            return None
        if usage is None:
            return None
        return self._roll_weekly_window(usage, self.clock())

    # Internal helpers -------------------------------------------------

    def _resolve_entitlement(
        self, user_id: str, subscription: SubscriptionState | None, now: datetime
    ) -> Package:
        if subscription is None or not subscription.package_id:
            raise NoActivePackage("No active package.")
        if subscription.expiry_date is not None and subscription.expiry_date <= now:
            raise PackageExpired("Package expired.")
        if not subscription.is_active:
            raise PackageInactive("Package inactive.")
        package = self.catalog.get(subscription.package_id)
        if package is None:
            logger.error(
                "package_integrity_fault",
                user_id=user_id,
                package_id=subscription.package_id,
            )
            raise InvalidPackage(f"Unknown package id: {subscription.package_id}")
        return package

    def _fresh_usage(self, now: datetime) -> ContactUsageState:
        return ContactUsageState.fresh(next_weekly_boundary(now, self.settings.timezone))

    @staticmethod
    def _effective_weekly_count(usage: ContactUsageState, now: datetime) -> int:
        return 0 if now >= usage.weekly_reset_at else usage.weekly_count

    def _roll_weekly_window(self, usage: ContactUsageState, now: datetime) -> ContactUsageState:
        if now < usage.weekly_reset_at:
            return usage
        return usage.model_copy(
            update={
                "weekly_count": 0,
                "weekly_reset_at": next_weekly_boundary(now, self.settings.timezone),
            }
        )

    @staticmethod
    def _enforce_caps(weekly_used: int, total_used: int, package: Package) -> None:
        numbers = ContactUsageService._numbers(weekly_used, total_used, package)
        if weekly_used >= package.weekly_contact_cap:
            raise WeeklyLimitReached("Weekly contact limit reached.", **numbers)
        if total_used >= package.total_contact_cap:
            raise TotalLimitReached("Total contact limit reached.", **numbers)

    @staticmethod
    def _numbers(weekly_used: int, total_used: int, package: Package) -> dict[str, int]:
        return {
            "weekly_used": weekly_used,
            "weekly_limit": package.weekly_contact_cap,
            "total_used": total_used,
            "total_limit": package.total_contact_cap,
        }

    @staticmethod
    def _numbers_from(exc: QuotaExceeded) -> dict[str, int]:
        return {
            "weekly_used": exc.weekly_used,
            "weekly_limit": exc.weekly_limit,
            "total_used": exc.total_used,
            "total_limit": exc.total_limit,
        }

    def _text(self, code: str, locale: str | None, **kwargs) -> str:
        return self.i18n.gettext(f"contact.{code}", locale=locale, **kwargs)


__all__ = ["ContactUsageService"]
