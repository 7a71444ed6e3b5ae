# netprobe/engine/state.py
import asyncio
import enum


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"
    COMPLETED = "completed"


class CancelToken:
    """
    Cooperative cancellation flag handed to every orchestration call.
    Loops check `cancelled` at batch boundaries and iterations; pacing
    delays go through `sleep` so a cancel cuts them short.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, delay: float) -> bool:
        """Sleep up to `delay` seconds. Returns False if cancelled before or during the wait."""
        if self.cancelled:
            return False
        if delay <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), delay)
        except TimeoutError:
            return True
        return False
