# netprobe/engine/controller.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from netprobe.engine.state import CancelToken, RunState
from netprobe.reporting import Report

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Operation = Callable[[CancelToken], Awaitable[Any]]


class RunController:
    """
    Owns the one active run. Starting a run while another is active first
    cancels the old one and waits until it has fully unwound (sockets
    closed, ping children reaped) before the new one enters RUNNING.
    """

    def __init__(self, report: Report):
        self.report = report
        self._state = RunState.IDLE
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancelToken] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> RunState:
        return self._state

    async def start(self, operation: Operation, name: str = "run") -> None:
        async with self._lock:
            await self._stop_current()
            token = CancelToken()
            self._token = token
            self._state = RunState.RUNNING
            self._task = asyncio.create_task(self._execute(operation, token, name), name=f"netprobe:{name}")

    async def cancel(self) -> None:
        """Request cooperative cancellation and wait until the run is COMPLETED."""
        async with self._lock:
            await self._stop_current()

    async def wait(self) -> None:
        """Wait for the current run (if any) to finish on its own."""
        task = self._task
        if task is not None:
            await asyncio.wait([task])

    async def _stop_current(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        self._state = RunState.CANCELLING
        self._token.cancel()
        # asyncio.wait does not propagate our own cancellation into the run
        await asyncio.wait([task])

    async def _execute(self, operation: Operation, token: CancelToken, name: str) -> None:
        logger.info("run %s started", name)
        try:
            await operation(token)
        except asyncio.CancelledError:
            logger.info("run %s cancelled by the event loop", name)
            raise
        except Exception as e:
            # unexpected fault: surface it once, the controller stays usable
            logger.exception("run %s failed", name)
            self.report(f"Error: {e}")
        finally:
            if token.cancelled:
                logger.info("run %s stopped", name)
            else:
                logger.info("run %s completed", name)
            if self._token is token:
                self._task = None
                self._token = None
                self._state = RunState.COMPLETED
