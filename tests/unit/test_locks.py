"""
Unit tests for the per-key lock registry.
"""

import asyncio

import pytest

from conftest import make_entry, make_slot
from src.errors import NotFoundError
from src.stores.locks import KeyedLock


class TestKeyedLock:
    """Locks exist only while a task holds or waits for them."""

    @pytest.mark.asyncio
    async def test_lock_dropped_after_use(self):
        locks = KeyedLock()
        async with locks("slot-1") as lock:
            assert lock.locked()
            assert len(locks) == 1
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_same_key_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks("entry-1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_dropped_after_error(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks("entry-1"):
                raise RuntimeError("boom")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_unknown_ids_leave_no_locks(self, service):
        """Requests for ids that do not exist do not grow the registry."""
        slot = await service.publish_slot(make_slot())
        for _ in range(5):
            with pytest.raises(NotFoundError):
                await service.book(make_entry().id, slot.id)
        assert len(service.store.lock) == 0
        assert len(service.catalog.lock) == 0
