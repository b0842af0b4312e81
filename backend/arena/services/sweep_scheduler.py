"""
Background loop that runs the auto-finalize sweep on a fixed interval.

The sweep itself is synchronous database work, so each pass runs in a worker thread with its
own Session. A failing pass is logged and the loop keeps going.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from arena.services.match_lifecycle import auto_finalize_expired_matches

logger = logging.getLogger(__name__)


class AutoFinalizeScheduler:
    def __init__(self, engine: Engine, interval_seconds: int):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Dict[str, Any]:
        with Session(self.engine) as session:
            return auto_finalize_expired_matches(session)

    async def _loop(self) -> None:
        while True:
            try:
                summary = await asyncio.to_thread(self.run_once)
                if summary["total"]:
                    logger.info("Auto-finalize pass: %s", summary)
            except Exception:
                logger.exception("Auto-finalize pass failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Auto-finalize scheduler started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Auto-finalize scheduler stopped")
