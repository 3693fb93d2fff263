"""JSON file state store.

Layout::

    {
      "schema_version": "1.0.0",
      "lineage": "5c0e...",
      "serial": 7,
      "resources": {"aws_iam_role.lambda_exec": {...record...}}
    }

Writes go to a temporary file in the same directory followed by
``os.replace``, so readers never observe a half-written file. The lock is a
sibling ``<file>.<scope>.lock`` published with ``os.link`` from a complete
temporary file, so it either does not exist or holds a whole record.
Checking and taking over an expired lock happens under a ``filelock``
guard (``<file>.<scope>.lock.guard``).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from ..exceptions import LockContentionError, StateCorruptionError
from ..models import StateRecord
from ..version import STATE_SCHEMA_VERSION
from .base import (
    DEFAULT_LOCK_SCOPE,
    DEFAULT_POLL_INTERVAL,
    LockInfo,
    StateMetadata,
    check_identifier,
    check_schema_version,
    decode_record,
    new_lineage,
    new_lock,
    wait_intervals,
)

logger = logging.getLogger(__name__)


class LocalStateStore:
    """State store backed by a single JSON file."""

    def __init__(self, path: str | Path, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.path = Path(path)
        self._poll_interval = poll_interval
        self._mutex = threading.Lock()

    @property
    def location(self) -> str:
        return str(self.path)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {
                "schema_version": STATE_SCHEMA_VERSION,
                "lineage": None,
                "serial": 0,
                "resources": {},
            }
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StateCorruptionError(self.location, f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise StateCorruptionError(self.location, "state file must contain a JSON object")
        check_schema_version(self.location, data.get("schema_version"))
        if not isinstance(data.get("resources"), dict):
            raise StateCorruptionError(self.location, "'resources' must be a mapping")
        if not isinstance(data.get("serial"), int):
            raise StateCorruptionError(self.location, "'serial' must be an integer")
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _decode(self, address: str, data: Any) -> StateRecord:
        return decode_record(f"{self.location}#{address}", data)

    @staticmethod
    def _bump(data: dict[str, Any]) -> None:
        if not data.get("lineage"):
            data["lineage"] = new_lineage()
        data["serial"] += 1
        data["schema_version"] = STATE_SCHEMA_VERSION

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def read(self, address: str) -> StateRecord | None:
        with self._mutex:
            raw = self._load()["resources"].get(address)
        return self._decode(address, raw) if raw is not None else None

    def write(self, record: StateRecord) -> StateRecord:
        with self._mutex:
            data = self._load()
            raw = data["resources"].get(record.address)
            existing = self._decode(record.address, raw) if raw is not None else None
            check_identifier(existing, record)
            stored = replace(record, serial=(existing.serial if existing else 0) + 1)
            data["resources"][record.address] = stored.to_dict()
            self._bump(data)
            self._save(data)
        logger.debug("Wrote state for %s (serial %d)", record.address, stored.serial)
        return stored

    def delete(self, address: str) -> None:
        with self._mutex:
            data = self._load()
            if data["resources"].pop(address, None) is None:
                return
            self._bump(data)
            self._save(data)
        logger.debug("Deleted state for %s", address)

    def list(self) -> list[StateRecord]:
        with self._mutex:
            resources = self._load()["resources"]
        return [self._decode(address, raw) for address, raw in resources.items()]

    def metadata(self) -> StateMetadata:
        with self._mutex:
            data = self._load()
        return StateMetadata(
            lineage=data.get("lineage"),
            serial=data["serial"],
            schema_version=data["schema_version"],
        )

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock_path(self, scope: str = DEFAULT_LOCK_SCOPE) -> Path:
        return self.path.with_name(f"{self.path.name}.{scope}.lock")

    def _guard(self, path: Path, timeout: float) -> FileLock:
        return FileLock(str(path.with_name(f"{path.name}.guard")), timeout=timeout)

    def _read_lock(self, path: Path, ttl: float) -> LockInfo | None:
        try:
            return LockInfo.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            # Unreadable content: held until the file is older than the TTL
            try:
                modified = path.stat().st_mtime
            except FileNotFoundError:
                return None
            return LockInfo(
                scope="?", owner="<unreadable>", acquired_at=modified, expires_at=modified + ttl
            )

    def _try_create_lock(self, path: Path, info: LockInfo) -> bool:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(info.to_dict(), f)
            os.link(tmp_name, path)
        except FileExistsError:
            return False
        finally:
            Path(tmp_name).unlink(missing_ok=True)
        return True

    def _acquire(
        self, path: Path, info: LockInfo, ttl: float, timeout: float
    ) -> tuple[bool, LockInfo | None]:
        """One attempt; returns whether the lock was taken and the holder otherwise."""
        with self._guard(path, timeout):
            if self._try_create_lock(path, info):
                return True, None
            holder = self._read_lock(path, ttl)
            if holder is not None and not holder.is_expired():
                return False, holder
            if holder is not None:
                logger.warning("Removing expired lock %s held by %s", path, holder.owner)
                path.unlink(missing_ok=True)
            return self._try_create_lock(path, info), holder

    @contextmanager
    def lock(
        self,
        scope: str = DEFAULT_LOCK_SCOPE,
        timeout: float = 30.0,
        ttl: float = 3600.0,
    ) -> Iterator[LockInfo]:
        path = self.lock_path(scope)
        path.parent.mkdir(parents=True, exist_ok=True)
        start = time.monotonic()
        info = new_lock(scope, ttl)
        holder: LockInfo | None = None

        try:
            for _ in wait_intervals(timeout, self._poll_interval):
                acquired, holder = self._acquire(
                    path, info, ttl, max(timeout, self._poll_interval)
                )
                if acquired:
                    break
            else:
                raise LockContentionError(
                    scope, holder.owner if holder else None, time.monotonic() - start
                )
        except Timeout as e:
            raise LockContentionError(scope, None, time.monotonic() - start) from e

        logger.debug("Acquired state lock %s as %s", path, info.owner)
        try:
            yield info
        finally:
            with self._guard(path, max(timeout, 1.0)):
                current = self._read_lock(path, ttl)
                if current is not None and current.owner == info.owner:
                    path.unlink(missing_ok=True)
                    logger.debug("Released state lock %s", path)
                else:
                    logger.warning("State lock %s was taken over before release", path)
