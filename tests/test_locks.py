"""Tests for per-key locking."""

import asyncio

import pytest

from market import KeyedLock

@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold(1):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]

@pytest.mark.asyncio
async def test_different_keys_run_concurrently():
    locks = KeyedLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with locks.hold(1):
            inside.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await inside.wait()

    async with locks.hold(2):
        assert locks.locked(1)
        assert not locks.locked(3)

    release.set()
    await task

@pytest.mark.asyncio
async def test_locks_are_dropped_when_unused():
    locks = KeyedLock()

    async with locks.hold("a"):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.locked("a")

@pytest.mark.asyncio
async def test_lock_released_on_error():
    locks = KeyedLock()

    with pytest.raises(ValueError):
        async with locks.hold(1):
            raise ValueError("boom")

    assert len(locks) == 0
