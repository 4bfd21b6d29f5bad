"""Tests for UserLockRegistry."""

from __future__ import annotations

import asyncio

from reddays.services.locks import UserLockRegistry


def test_same_user_gets_same_lock() -> None:
    locks = UserLockRegistry()
    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")
    assert len(locks) == 2


async def test_same_user_sections_do_not_interleave() -> None:
    locks = UserLockRegistry()
    trace: list[str] = []

    async def section(name: str) -> None:
        async with locks.lock_for("user"):
            trace.append(f"{name}:enter")
            await asyncio.sleep(0)
            trace.append(f"{name}:exit")

    await asyncio.gather(section("first"), section("second"))
    assert trace == ["first:enter", "first:exit", "second:enter", "second:exit"]


async def test_different_users_do_not_block() -> None:
    locks = UserLockRegistry()
    async with locks.lock_for("a"):
        await asyncio.wait_for(locks.lock_for("b").acquire(), timeout=1)
        locks.lock_for("b").release()
