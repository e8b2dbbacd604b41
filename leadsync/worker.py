"""Background worker that runs the Meta sync on a fixed interval."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import settings
from .sync.sync_engine import SyncRunner, sync_runner

logger = logging.getLogger(__name__)


class SyncWorker:
    """Periodically runs campaign + lead sync."""

    def __init__(
        self,
        runner: SyncRunner | None = None,
        interval_seconds: float | None = None,
        run_on_start: bool | None = None,
        start_delay_seconds: float | None = None,
    ) -> None:
        self._runner = runner or sync_runner
        self._interval = interval_seconds if interval_seconds is not None else settings.sync_interval_seconds
        self._run_on_start = settings.sync_run_on_start if run_on_start is None else run_on_start
        self._start_delay = (
            start_delay_seconds if start_delay_seconds is not None else settings.sync_start_delay_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def started(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="meta-sync-worker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def run_once(self, reason: str) -> None:
        try:
            await self._runner.run(reason)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Meta sync failed (%s)", reason)

    async def _run_loop(self) -> None:
        if self._run_on_start:
            if await self._wait(self._start_delay):
                return
            await self.run_once("startup")

        while not self._stop_event.is_set():
            if await self._wait(self._interval):
                return
            await self.run_once("schedule")


sync_worker = SyncWorker()
