"""In-process state store."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace

from ..exceptions import LockContentionError
from ..models import StateRecord
from .base import (
    DEFAULT_LOCK_SCOPE,
    DEFAULT_POLL_INTERVAL,
    LockInfo,
    StateMetadata,
    check_identifier,
    new_lineage,
    new_lock,
    wait_intervals,
)

logger = logging.getLogger(__name__)


class MemoryStateStore:
    """
    State store kept in memory.

    Useful for tests and dry runs; state is lost when the process exits.
    Thread-safe: records and locks are guarded by a ``threading.Lock``.
    """

    def __init__(self, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self._records: dict[str, StateRecord] = {}
        self._locks: dict[str, LockInfo] = {}
        self._lineage: str | None = None
        self._serial = 0
        self._mutex = threading.Lock()
        self._poll_interval = poll_interval

    @property
    def location(self) -> str:
        return "memory"

    def read(self, address: str) -> StateRecord | None:
        with self._mutex:
            return self._records.get(address)

    def write(self, record: StateRecord) -> StateRecord:
        with self._mutex:
            existing = self._records.get(record.address)
            check_identifier(existing, record)
            stored = replace(record, serial=(existing.serial if existing else 0) + 1)
            self._records[record.address] = stored
            self._bump()
            return stored

    def delete(self, address: str) -> None:
        with self._mutex:
            if self._records.pop(address, None) is not None:
                self._bump()

    def list(self) -> list[StateRecord]:
        with self._mutex:
            return list(self._records.values())

    def metadata(self) -> StateMetadata:
        with self._mutex:
            return StateMetadata(lineage=self._lineage, serial=self._serial)

    def _bump(self) -> None:
        if self._lineage is None:
            self._lineage = new_lineage()
        self._serial += 1

    @contextmanager
    def lock(
        self,
        scope: str = DEFAULT_LOCK_SCOPE,
        timeout: float = 30.0,
        ttl: float = 3600.0,
    ) -> Iterator[LockInfo]:
        start = time.monotonic()
        info = new_lock(scope, ttl)
        holder: LockInfo | None = None
        for _ in wait_intervals(timeout, self._poll_interval):
            with self._mutex:
                holder = self._locks.get(scope)
                if holder is None or holder.is_expired():
                    if holder is not None:
                        logger.warning("Taking over expired lock %s held by %s", scope, holder.owner)
                    self._locks[scope] = info
                    holder = None
                    break
        else:
            raise LockContentionError(
                scope, holder.owner if holder else None, time.monotonic() - start
            )

        logger.debug("Acquired state lock %s as %s", scope, info.owner)
        try:
            yield info
        finally:
            with self._mutex:
                if self._locks.get(scope) == info:
                    del self._locks[scope]
            logger.debug("Released state lock %s", scope)
