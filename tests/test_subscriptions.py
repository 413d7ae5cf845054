"""Tests for package activation, extension and deactivation."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from matrimony.services.contact_usage import ContactUsageService
from matrimony.services.subscriptions import SubscriptionService


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_activate_creates_subscription_usage_and_purchase(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)

    result = await service.activate("u1", "gold", payment_id="pay_123")

    assert result.success is True
    subscription = memory_store.subscriptions["u1"]
    assert subscription.package_id == "gold"
    assert subscription.start_date == _utc(2024, 1, 1, 9, 0)
    assert subscription.expiry_date == _utc(2025, 1, 1, 9, 0)
    assert subscription.is_active is True
    assert result.subscription == subscription

    usage = memory_store.usage["u1"]
    assert usage.weekly_count == 0
    assert usage.total_count == 0
    assert usage.contacted_profile_ids == []
    assert usage.weekly_reset_at == _utc(2024, 1, 8)

    [purchase] = memory_store.purchases
    assert purchase.package_id == "gold"
    assert purchase.price == Decimal("3600")
    assert purchase.payment_id == "pay_123"
    assert purchase.activated_by == "payment"
    assert memory_store.audit_log == []


@pytest.mark.asyncio
async def test_activate_resets_usage_every_time(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)
    contacts = ContactUsageService(memory_store, catalog, settings, clock=clock)
    await service.activate("u1", "platinum")
    await contacts.record_contact("u1", "p1")
    await contacts.record_contact("u1", "p2")

    clock.set(2024, 1, 3, 12, 0)
    await service.activate("u1", "platinum")

    usage = memory_store.usage["u1"]
    assert usage.total_count == 0
    assert usage.contacted_profile_ids == []
    assert len(memory_store.purchases) == 2
    history = await service.get_purchase_history("u1")
    assert [record.created_at for record in history] == [
        _utc(2024, 1, 3, 12, 0),
        _utc(2024, 1, 1, 9, 0),
    ]


@pytest.mark.asyncio
async def test_activate_with_custom_duration_and_admin_actor(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)
    clock.set(2024, 1, 31, 10, 0)

    result = await service.activate("u1", "nri", 1, actor_id="admin-7")

    assert result.success
    assert memory_store.subscriptions["u1"].expiry_date == _utc(2024, 2, 29, 10, 0)
    assert memory_store.purchases[0].activated_by == "admin"
    [entry] = memory_store.audit_log
    assert entry.actor_id == "admin-7"
    assert entry.action == "activate_premium"
    assert entry.target_user_id == "u1"
    assert entry.metadata == {"package_id": "nri", "months": 1}


@pytest.mark.asyncio
async def test_activate_rejects_unknown_package_and_bad_duration(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)

    unknown = await service.activate("u1", "diamond")
    zero = await service.activate("u1", "gold", 0)

    assert unknown.success is False
    assert unknown.error_code == "invalid_package"
    assert "diamond" in unknown.error
    assert zero.error_code == "invalid_duration"
    assert memory_store.subscriptions == {}
    assert memory_store.purchases == []


@pytest.mark.asyncio
async def test_extend_adds_months_from_current_expiry_and_keeps_usage(
    memory_store, catalog, settings, clock
):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)
    contacts = ContactUsageService(memory_store, catalog, settings, clock=clock)
    await service.activate("u1", "platinum")
    await contacts.record_contact("u1", "p1")
    usage_before = memory_store.usage["u1"].model_dump_json()
    await service.expire("u1")

    clock.set(2024, 3, 1, 0, 0)
    result = await service.extend("u1", 2, actor_id="admin-1")

    assert result.success is True
    subscription = memory_store.subscriptions["u1"]
    assert subscription.expiry_date == _utc(2024, 9, 1, 9, 0)
    assert subscription.start_date == _utc(2024, 1, 1, 9, 0)
    assert subscription.is_active is True
    assert subscription.status == "active"
    assert memory_store.usage["u1"].model_dump_json() == usage_before
    assert len(memory_store.purchases) == 1
    assert memory_store.audit_log[-1].action == "extend_premium"


@pytest.mark.asyncio
async def test_extend_requires_existing_subscription(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)

    missing = await service.extend("u1", 1)
    invalid = await service.extend("u1", 0)

    assert missing.success is False
    assert missing.error_code == "no_subscription"
    assert invalid.error_code == "invalid_duration"


@pytest.mark.asyncio
async def test_expire_and_cancel_keep_usage(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)
    contacts = ContactUsageService(memory_store, catalog, settings, clock=clock)
    await service.activate("u1", "gold")
    await contacts.record_contact("u1", "p1")
    usage_before = memory_store.usage["u1"].model_copy(deep=True)

    expired = await service.expire("u1")
    assert expired.success
    assert memory_store.subscriptions["u1"].status == "expired"
    assert memory_store.subscriptions["u1"].is_active is False
    assert memory_store.subscriptions["u1"].cancelled_at is None

    clock.advance(hours=1)
    cancelled = await service.cancel("u1", actor_id="admin-2")
    assert cancelled.success
    subscription = await service.get_subscription("u1")
    assert subscription.status == "cancelled"
    assert subscription.cancelled_at == _utc(2024, 1, 1, 10, 0)
    assert memory_store.usage["u1"] == usage_before
    assert memory_store.audit_log[-1].action == "cancel_premium"


@pytest.mark.asyncio
async def test_cancel_without_subscription_fails(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)

    result = await service.cancel("nobody")

    assert result.success is False
    assert result.error_code == "no_subscription"
    assert memory_store.subscriptions == {}


@pytest.mark.asyncio
async def test_history_orders_same_instant_purchases_latest_first(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)
    await service.activate("u1", "gold")
    await service.activate("u1", "platinum")

    history = await service.get_purchase_history("u1")

    assert [record.package_id for record in history] == ["platinum", "gold"]


@pytest.mark.asyncio
async def test_failures_are_localized(memory_store, catalog, settings, clock):
    service = SubscriptionService(memory_store, catalog, settings, clock=clock)

    english = await service.cancel("nobody")
    hindi = await service.cancel("nobody", locale="hi")
    unknown = await service.activate("u1", "diamond", locale="hi")

    assert hindi.error_code == english.error_code == "no_subscription"
    assert hindi.error != english.error
    assert unknown.error_code == "invalid_package"
    assert "diamond" in unknown.error
    assert unknown.error != "Unknown package: diamond."
