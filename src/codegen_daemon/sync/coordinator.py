"""Per-key guard against overlapping sync runs.

Each key ("all" or a source id) moves through
idle -> running -> done | failed | timed_out. Only a running key rejects new
runs; every other state accepts one. There is no queue of waiters.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config.logging import get_logger
from ..server.exceptions import SyncInProgressError, SyncTimeoutError

logger = get_logger(__name__)

T = TypeVar("T")

ALL_SOURCES_KEY = "all"


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class SyncRecord:
    """Last known state of one sync key."""

    key: str
    state: SyncState = SyncState.IDLE
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "state": self.state.value,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "error": self.error,
        }


class SyncCoordinator:
    """Runs sync work under a per-key state machine with a time ceiling."""

    def __init__(self, timeout_seconds: float = 300.0):
        self.timeout_seconds = timeout_seconds
        self._records: Dict[str, SyncRecord] = {}

    def get_record(self, key: str) -> SyncRecord:
        return self._records.get(key) or SyncRecord(key=key)

    def is_running(self, key: str) -> bool:
        return self.get_record(key).state is SyncState.RUNNING

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {key: record.to_dict() for key, record in self._records.items()}

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work`` unless a run for ``key`` is already in flight.

        Args:
            key: Sync target, a source id or ``all``
            work: Coroutine factory performing the sync

        Returns:
            The result of ``work``

        Raises:
            SyncInProgressError: If the key is already running
            SyncTimeoutError: If the work exceeds the time ceiling
        """
        if self.is_running(key):
            logger.warning("Sync already in progress", key=key)
            raise SyncInProgressError(key)

        record = SyncRecord(key=key, state=SyncState.RUNNING, started_at=time.time())
        self._records[key] = record
        logger.info("Starting sync", key=key)

        try:
            result = await asyncio.wait_for(work(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            self._finish(record, SyncState.TIMED_OUT, "timed out")
            logger.error("Sync timed out", key=key, timeout_seconds=self.timeout_seconds)
            raise SyncTimeoutError(key, self.timeout_seconds) from None
        except asyncio.CancelledError:
            self._finish(record, SyncState.FAILED, "cancelled")
            raise
        except Exception as e:
            self._finish(record, SyncState.FAILED, str(e))
            logger.error("Sync failed", key=key, error=str(e))
            raise

        self._finish(record, SyncState.DONE, None)
        logger.info(
            "Sync completed",
            key=key,
            duration_ms=(record.finished_at - record.started_at) * 1000,
        )
        return result

    @staticmethod
    def _finish(record: SyncRecord, state: SyncState, error: Optional[str]) -> None:
        record.state = state
        record.error = error
        record.finished_at = time.time()
