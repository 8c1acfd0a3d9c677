"""Tests for shopping session management."""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.core.config import Settings
from storefront.core.session import SessionManager
from storefront.models import ProductRef


@pytest.fixture
def manager(inventory, orders, processor, settings):
    return SessionManager(inventory, orders, processor, settings)


def test_sessions_are_independent(manager):
    first = manager.create_session()
    second = manager.create_session()

    first.cart.add(ProductRef(id="p1", price=Decimal("100")))

    assert second.cart.is_empty
    assert first.checkout.cart is first.cart
    assert manager.get_session(first.session_id) is first


def test_get_or_create(manager):
    session = manager.create_session()

    assert manager.get_or_create_session(session.session_id) is session
    assert manager.get_or_create_session("unknown") is not session
    assert len(manager.sessions) == 2


def test_cart_changes_retarget_availability(manager):
    session = manager.create_session()

    session.cart.add(ProductRef(id="p1", price=Decimal("100")))

    assert session.reconciler.subjects == {"p1"}


@pytest.mark.asyncio
async def test_polling_starts_and_stops_with_the_session(inventory, orders, processor):
    manager = SessionManager(inventory, orders, processor, Settings(availability_polling=True))
    session = manager.create_session()

    assert session.reconciler.running

    assert await manager.delete_session(session.session_id) is True
    assert not session.reconciler.running
    assert await manager.delete_session(session.session_id) is False


@pytest.mark.asyncio
async def test_cleanup_old_sessions(manager):
    stale = manager.create_session()
    fresh = manager.create_session()
    stale.updated_at = datetime.now(timezone.utc) - timedelta(hours=25)

    removed = await manager.cleanup_old_sessions()

    assert removed == 1
    assert list(manager.sessions) == [fresh.session_id]


@pytest.mark.asyncio
async def test_close_stops_every_session(manager):
    manager.create_session()
    manager.create_session()

    await manager.close()

    assert manager.sessions == {}


@pytest.mark.asyncio
async def test_idle_sessions_are_cleaned_up_periodically(manager):
    stale = manager.create_session()
    fresh = manager.create_session()
    stale.updated_at = datetime.now(timezone.utc) - timedelta(hours=25)

    cleanup = asyncio.create_task(manager.cleanup_periodically(interval=0.01))
    try:
        await asyncio.sleep(0.05)
    finally:
        cleanup.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cleanup

    assert list(manager.sessions) == [fresh.session_id]


@pytest.mark.asyncio
async def test_sessions_with_polling_close_promptly(inventory, orders, processor):
    manager = SessionManager(inventory, orders, processor, Settings(availability_polling=True))
    first = manager.create_session()
    second = manager.create_session()
    await asyncio.sleep(0.01)

    first.cart.add(ProductRef(id="p1", price=Decimal("100")))
    await asyncio.wait_for(manager.close(), timeout=1)

    assert not first.reconciler.running
    assert not second.badges.running
