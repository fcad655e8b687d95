# planner/services/sweeper.py
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime
from typing import Callable, List, Optional

from core.errors import PlannerError
from core.logs import get_logger
from core.settings import AUTO_COMPLETE
from models.schedule import Schedule
from services.context import PlannerContext
from services.schedules import ScheduleService


class OverdueSweeper:
    """Periodically completes schedules whose end time has passed.

    The first pass runs immediately on :meth:`start`, then every
    ``interval_sec`` until :meth:`stop`. A missed pass is harmless: the
    day view runs the same reconciliation whenever it loads.
    """

    def __init__(
        self,
        schedules: ScheduleService,
        context: Callable[[], PlannerContext],
        *,
        interval_sec: float = AUTO_COMPLETE.interval_sec,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.schedules = schedules
        self.context = context
        self.interval_sec = interval_sec
        self.clock = clock
        self.logger = get_logger("sweeper")
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> List[Schedule]:
        ctx = self.context()
        if not ctx.is_authenticated:
            return []
        try:
            done = self.schedules.reconcile_overdue(ctx, self.clock())
        except PlannerError as exc:
            self.logger.warning("Overdue sweep failed: %s", exc)
            return []
        finally:
            self.runs += 1
        if done:
            self.logger.debug("Sweep completed %d schedule(s)", len(done))
        return done

    def _safe_run(self) -> None:
        try:
            self.run_once()
        except Exception:
            self.logger.exception("Overdue sweep crashed; retrying next interval")

    async def _loop(self) -> None:
        self._safe_run()
        while True:
            await asyncio.sleep(self.interval_sec)
            self._safe_run()

    def start(self) -> None:
        """Schedule the loop on the running event loop; a second call is a no-op."""
        if not AUTO_COMPLETE.enabled or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["OverdueSweeper"]
