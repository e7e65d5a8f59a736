"""Concurrency control for service wallet accounts.

Sign-and-broadcast for one chain account must be serialized so two
executions never race on the same nonce.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# (chain_id, address) -> asyncio.Lock, kept only while a holder or waiter references it
_account_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_account_lock(chain_id: str, address: str) -> asyncio.Lock:
    """Get or create the lock for a chain account.

    Lookup and insert happen without an await, so no registry lock is needed.
    """
    key = (chain_id, address.lower())
    lock = _account_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _account_locks[key] = lock
    return lock


@asynccontextmanager
async def account_lock(
    chain_id: str,
    address: str,
    timeout: Optional[float] = 60.0,
    operation: str = "sign_and_broadcast",
):
    """Exclusive access to a chain account.

    Example:
        async with account_lock("eip155:1", sender, operation="thorchain"):
            nonce = await rpc.get_nonce(sender)
            ...
    """
    lock = get_account_lock(chain_id, address)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for {chain_id}:{address}: {operation}")
        raise LockTimeoutError(
            f"Could not acquire lock for {chain_id}:{address} within {timeout}s"
        )

    logger.debug(f"Lock acquired for {chain_id}:{address}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for {chain_id}:{address}: {operation}")


def clear_account_locks() -> None:
    """Clear all account locks (useful for testing)."""
    _account_locks.clear()
