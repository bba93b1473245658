"""
Per-key mutual exclusion for the scheduling and check-in critical sections.

Keys look like ``vehicle:<company>:<id>`` or ``checkin:<route>:<passenger>:<type>``.
Several keys are always acquired in sorted order so two requests touching
the same pair of resources cannot deadlock.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from config import config

logger = logging.getLogger(__name__)


class LockTimeoutError(RuntimeError):
    """Raised when a keyed lock cannot be acquired in time."""


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLocks:
    """Thread-safe registry of locks created on demand and dropped when idle."""

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()
        self._timeout = config.LOCK_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.holders += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[List[str]]:
        """
        Hold every lock in ``keys`` for the duration of the block.

        Raises:
            LockTimeoutError: if any lock is not acquired within the timeout
        """
        ordered = sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                entry = self._checkout(key)
                if not entry.lock.acquire(timeout=self._timeout):
                    self._checkin(key, entry)
                    logger.error(f"[Locks] Timed out after {self._timeout}s waiting for {key}")
                    raise LockTimeoutError(f"Timed out waiting for lock {key}")
                acquired.append((key, entry))
            yield ordered
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)

    def active_keys(self) -> List[str]:
        with self._guard:
            return sorted(self._entries.keys())


def vehicle_key(company_id: str, vehicle_id: str) -> str:
    return f"vehicle:{company_id}:{vehicle_id}"


def driver_key(company_id: str, driver_id: str) -> str:
    return f"driver:{company_id}:{driver_id}"


def checkin_key(route_id: str, passenger_id: str, checkin_type: str) -> str:
    return f"checkin:{route_id}:{passenger_id}:{checkin_type}"


# Process-wide registry shared by the services
keyed_locks = KeyedLocks()
