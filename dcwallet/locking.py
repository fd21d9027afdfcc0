"""Database-backed run locks and address lookups."""

import logging
import time
from contextlib import contextmanager

from .db_core import (
    create_app_lock,
    get_app_lock,
    select_address_keys_by_address,
    update_app_lock,
)

log = logging.getLogger(__name__)

LOCK_TIMEOUT = 60 * 30


def get_lock(conn, key):
    """Try to take the lock ``key``; returns True if it was taken.

    A lock held for longer than half an hour is considered stale and retaken.
    """
    now = int(time.time())
    lock_row = get_app_lock(conn, ["create_time"], key)
    if lock_row is None or now - int(lock_row["create_time"]) > LOCK_TIMEOUT:
        create_app_lock(conn, {"k": key, "v": 1, "create_time": now})
        return True
    return False


def release_lock(conn, key):
    """Release the lock ``key``."""
    update_app_lock(conn, {"k": key, "v": 0, "create_time": int(time.time())})


@contextmanager
def held_lock(conn, name):
    """Hold the lock ``name`` for the block; yields whether it was taken.

    Failure to take or release the lock is logged, not raised.
    """
    try:
        acquired = get_lock(conn, name)
    except Exception as err:
        log.warning("GetLock err: [%s] %s", type(err).__name__, err)
        acquired = False
    try:
        yield acquired
    finally:
        if acquired:
            try:
                release_lock(conn, name)
            except Exception as err:
                log.warning("ReleaseLock err: [%s] %s", type(err).__name__, err)


def lock_wrap(conn, name, func):
    """Run ``func`` while holding the lock ``name``; returns whether it ran."""
    with held_lock(conn, name) as acquired:
        if not acquired:
            return False
        func()
        return True


def get_address_key_map(conn, cols, addresses):
    """Return address rows keyed by address."""
    cols = list(cols)
    if "address" not in cols:
        cols.append("address")
    rows = select_address_keys_by_address(conn, cols, addresses)
    return {row["address"]: row for row in rows}