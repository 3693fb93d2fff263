"""State store protocol and helpers shared by the backends.

A state store persists one :class:`~stratum.models.StateRecord` per
resource address, plus metadata (schema version, lineage, global serial).
Sessions serialize on a scoped lock that always carries an expiry, so a
crashed session cannot block the state forever.
"""

from __future__ import annotations

import os
import socket
import time
import uuid
from collections.abc import Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..exceptions import ImmutableIdentifierError, StateCorruptionError
from ..models import StateRecord
from ..version import STATE_SCHEMA_VERSION, check_state_compatibility

DEFAULT_LOCK_SCOPE = "session"
DEFAULT_POLL_INTERVAL = 0.25


@dataclass(frozen=True)
class StateMetadata:
    """
    Identity and version of a state.

    Attributes:
        lineage: Random id assigned on first write (None for empty state)
        serial: Incremented on every record write or delete
        schema_version: Persisted layout version
    """

    lineage: str | None = None
    serial: int = 0
    schema_version: str = STATE_SCHEMA_VERSION

    @property
    def fingerprint(self) -> str:
        return f"{self.lineage or '<empty>'}@{self.serial}"


@dataclass(frozen=True)
class LockInfo:
    """Holder of a state lock."""

    scope: str
    owner: str
    acquired_at: float
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "owner": self.owner,
            "acquired_at": self.acquired_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LockInfo:
        return cls(
            scope=str(d["scope"]),
            owner=str(d["owner"]),
            acquired_at=float(d["acquired_at"]),
            expires_at=float(d["expires_at"]),
        )


def new_lock_owner() -> str:
    """Describe this process as a lock holder (host, pid and a unique suffix)."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def new_lineage() -> str:
    return str(uuid.uuid4())


def new_lock(scope: str, ttl: float) -> LockInfo:
    now = time.time()
    return LockInfo(scope=scope, owner=new_lock_owner(), acquired_at=now, expires_at=now + ttl)


def check_schema_version(location: str, version: Any) -> None:
    """
    Raise if persisted state was written with an incompatible schema.

    Raises:
        StateCorruptionError: If the version is missing, invalid or incompatible
    """
    if not isinstance(version, str):
        raise StateCorruptionError(location, f"missing schema_version (got {version!r})")
    result = check_state_compatibility(version)
    if not result.is_compatible:
        raise StateCorruptionError(location, result.message)


def decode_record(location: str, data: Any) -> StateRecord:
    """
    Decode a persisted record, mapping any layout problem to StateCorruptionError.
    """
    if not isinstance(data, dict):
        raise StateCorruptionError(location, f"record must be a mapping, got {type(data).__name__}")
    try:
        return StateRecord.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StateCorruptionError(location, f"invalid record: {e!r}") from e


def check_identifier(existing: StateRecord | None, record: StateRecord) -> None:
    """
    Enforce that provider ids never change for a live instance.

    Raises:
        ImmutableIdentifierError: If ``record`` would change ``existing``'s id
    """
    if existing is not None and existing.provider_id != record.provider_id:
        raise ImmutableIdentifierError(record.address, existing.provider_id, record.provider_id)


@runtime_checkable
class StateStore(Protocol):
    """
    Protocol for state backends.

    - **read/write/delete/list**: per-record access; writes are atomic per
      record and return the stored record with its bumped serial
    - **metadata**: lineage and global serial, used to detect stale plans
    - **lock**: scoped, expiring lock serializing plan/apply sessions
    """

    @property
    def location(self) -> str:
        """Human-readable location of the state (path, table name)."""
        ...

    def read(self, address: str) -> StateRecord | None:
        """Return the record for ``address``, or None if absent."""
        ...

    def write(self, record: StateRecord) -> StateRecord:
        """Persist ``record`` and return it with its new serial."""
        ...

    def delete(self, address: str) -> None:
        """Remove the record for ``address`` (no-op if absent)."""
        ...

    def list(self) -> list[StateRecord]:
        """Return every record."""
        ...

    def metadata(self) -> StateMetadata:
        ...

    def lock(
        self,
        scope: str = DEFAULT_LOCK_SCOPE,
        timeout: float = 30.0,
        ttl: float = 3600.0,
    ) -> AbstractContextManager[LockInfo]:
        """
        Acquire the lock for ``scope``, waiting at most ``timeout`` seconds.

        The lock is released when the context exits, on every path.

        Raises:
            LockContentionError: If the lock is not acquired in time
        """
        ...


def wait_intervals(timeout: float, poll_interval: float) -> Iterator[float]:
    """
    Yield elapsed times while a bounded wait is still allowed to retry.

    The first attempt always happens; subsequent attempts are spaced by
    ``poll_interval`` until ``timeout`` is exceeded.
    """
    start = time.monotonic()
    while True:
        yield time.monotonic() - start
        if time.monotonic() - start + poll_interval > timeout:
            return
        time.sleep(poll_interval)
