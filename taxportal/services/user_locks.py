"""Per-user serialization of checklist mutations.

Checklist regeneration, upload reconciliation, not-applicable toggles,
document deletion and personal-return creation for the same user must not
interleave, otherwise an upload can link to an item that a concurrent
regeneration is about to delete. Every such mutation runs inside
``checklist_lock``, which holds two locks for the full read-modify-commit
sequence:

- an ``asyncio.Lock`` per user, for coroutines in this process
- ``SELECT ... FOR UPDATE`` on the user's row, for other worker processes

The row lock lasts until the session's transaction ends, so callers commit
(or roll back) before leaving the block.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxportal.models.db_models import User

logger = logging.getLogger(__name__)

# Locks disappear once no coroutine holds or waits on them
_user_locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()


def get_user_lock(user_id: Hashable) -> asyncio.Lock:
    """Get or create the in-process lock guarding a user's checklist."""
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


def active_lock_count() -> int:
    return len(_user_locks)


async def lock_user_row(db: AsyncSession, user_id: UUID) -> None:
    """Row-lock the owner so other processes serialize too (no-op on SQLite)."""
    await db.execute(select(User.id).where(User.id == user_id).with_for_update())


@asynccontextmanager
async def checklist_lock(db: AsyncSession, user_id: UUID) -> AsyncIterator[None]:
    """
    Hold the user's checklist locks for the duration of the block.

    An exception inside the block rolls the session back, releasing the row
    lock before the in-process lock is handed to the next waiter.
    """
    lock = get_user_lock(user_id)
    if lock.locked():
        logger.debug(f"Waiting for checklist lock of user {user_id}")
    async with lock:
        await lock_user_row(db, user_id)
        try:
            yield
        except BaseException:
            await db.rollback()
            raise


def clear_user_locks() -> None:
    """Drop all registered locks (tests and shutdown)."""
    _user_locks.clear()
