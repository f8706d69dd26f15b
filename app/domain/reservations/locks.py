"""
Per-key admission locks.

Admission for one {service_code, date} is serialized; different keys never
wait on each other. Inside a process a reference-counted threading.Lock per key
does the work; on PostgreSQL a transaction-scoped advisory lock on the same key
extends the boundary across worker processes.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session

from ...shared.errors import AdmissionTimeoutError

logger = logging.getLogger(__name__)


def admission_key(service_code: str, target_date: date) -> str:
    return f"admission:{service_code}:{target_date.isoformat()}"


class AdmissionLockRegistry:
    """Reference-counted lock per admission key; idle keys are dropped"""

    def __init__(self):
        self._guard = threading.Lock()
        # Format: {key: [lock, holders]}
        self._locks: dict[str, list] = {}

    @contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        acquired = entry[0].acquire(timeout=timeout)
        try:
            if not acquired:
                logger.warning(f"⏱️ Admission lock timeout after {timeout}s for {key}")
                raise AdmissionTimeoutError(key=key)
            yield
        finally:
            if acquired:
                entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def active_keys(self) -> list[str]:
        with self._guard:
            return list(self._locks)


# Shared by every admission in this process
admission_locks = AdmissionLockRegistry()


def acquire_store_lock(db: Session, key: str) -> None:
    """Take the cross-process advisory lock for key, released at commit/rollback"""
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
