"""Cross-process guard so only one sync run writes at a time."""

from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


def advisory_lock_key(name: str) -> int:
    """Deterministic signed 64-bit key for a lock name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


@contextmanager
def sync_run_lock(
    engine: Engine,
    name: str,
    *,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 1.0,
) -> Generator[None, None, None]:
    """
    Hold a PostgreSQL session advisory lock named `name` for the block.

    On other backends (SQLite in development) there is nothing to lock
    against and the block simply runs.

    Raises:
        TimeoutError: If another process holds the lock past the timeout
    """
    if engine.dialect.name != "postgresql":
        logger.debug("No advisory locks on %s; running unlocked", engine.dialect.name)
        yield
        return

    key = advisory_lock_key(name)
    connection = engine.connect()
    acquired = False
    try:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while not acquired:
            acquired = bool(
                connection.execute(text("SELECT pg_try_advisory_lock(:key)"), {"key": key}).scalar()
            )
            if acquired or time.monotonic() >= deadline:
                break
            time.sleep(max(poll_interval_seconds, 0.05))

        if not acquired:
            raise TimeoutError(f"Sync lock '{name}' is held by another run")

        yield
    finally:
        if acquired:
            connection.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": key})
        connection.close()
