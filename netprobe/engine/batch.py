# netprobe/engine/batch.py
import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Iterable, Iterator, List, Optional

from netprobe.engine.state import CancelToken
from netprobe.schemas import Identity, ProbeResult

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

ProbeFn = Callable[[Identity], Awaitable[ProbeResult]]
BatchHook = Callable[[int, List[Identity]], None]


def _unique(identities: Iterable[Identity]) -> Iterator[Identity]:
    seen = set()
    for ident in identities:
        if ident in seen:
            continue
        seen.add(ident)
        yield ident


def chunked(identities: Iterable[Identity], limit: int) -> Iterator[List[Identity]]:
    """Contiguous batches of at most `limit` items: 254 items, limit 50 -> 50,50,50,50,50,4."""
    if limit < 1:
        raise ValueError("concurrency limit must be >= 1")
    batch: List[Identity] = []
    for ident in identities:
        batch.append(ident)
        if len(batch) == limit:
            yield batch
            batch = []
    if batch:
        yield batch


class BatchRunner:
    """
    Runs independent probes batch by batch. Probes inside a batch run
    concurrently and are joined before anything is reported; the next batch
    is only launched once the previous one has been reported. Peak
    concurrency (sockets, child processes) is therefore the batch size.
    """

    def __init__(self, pause: float = 0.0):
        self.pause = pause  # seconds between batches

    @staticmethod
    async def _guarded(probe_fn: ProbeFn, identity: Identity) -> ProbeResult:
        try:
            return await probe_fn(identity)
        except Exception as e:
            # a single misbehaving probe must never take the batch down
            logger.warning("probe for %r raised %r; counted as failure", identity, e)
            return ProbeResult.failed(identity, detail=str(e))

    async def run(self, identities: Iterable[Identity], limit: int, probe_fn: ProbeFn,
                  cancel: CancelToken, *, only_success: bool = False,
                  on_batch: Optional[BatchHook] = None) -> AsyncIterator[ProbeResult]:
        """
        Yield one ProbeResult per distinct identity, batch by batch, in input
        order within each batch. With only_success, failures are dropped.
        A batch that was in flight when `cancel` fired is drained but its
        results are discarded.
        """
        for index, batch in enumerate(chunked(_unique(identities), limit)):
            if cancel.cancelled:
                logger.debug("cancelled before batch %d", index)
                return
            if on_batch is not None:
                on_batch(index, batch)

            # TaskGroup is the barrier: every probe is awaited (or cancelled
            # and awaited) before we leave this block.
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(self._guarded(probe_fn, ident)) for ident in batch]

            if cancel.cancelled:
                logger.debug("cancelled during batch %d, dropping %d results", index, len(tasks))
                return
            for task in tasks:
                result = task.result()
                if only_success and not result.success:
                    continue
                if cancel.cancelled:
                    return
                yield result

            if self.pause and not await cancel.sleep(self.pause):
                return
