# tests/test_batch_unit.py
import asyncio

import pytest

from netprobe.engine.batch import BatchRunner, chunked
from netprobe.engine.state import CancelToken
from netprobe.prober.fake import FakeProber


def hosts(n):
    return [f"10.0.{i // 250}.{i % 250 + 1}" for i in range(n)]


async def collect(agen):
    return [r async for r in agen]


def test_chunked_sizes():
    sizes = [len(b) for b in chunked(range(254), 50)]
    assert sizes == [50, 50, 50, 50, 50, 4]


def test_chunked_rejects_zero_limit():
    with pytest.raises(ValueError):
        list(chunked([1, 2, 3], 0))


@pytest.mark.asyncio
@pytest.mark.parametrize("n,k", [(254, 50), (1, 1), (7, 3), (10, 100)])
async def test_every_identity_gets_exactly_one_result(n, k):
    fake = FakeProber(alive=hosts(n)[::2])
    ids = hosts(n)
    results = await collect(BatchRunner().run(ids, k, lambda h: fake.ping(h, 1.0), CancelToken()))
    assert len(results) == n
    assert sorted(r.identity for r in results) == sorted(ids)


@pytest.mark.asyncio
async def test_batches_bound_concurrency():
    """Peak concurrency never exceeds the limit and batches have the expected sizes."""
    fake = FakeProber(delay=0.01)
    seen = []
    runner = BatchRunner()
    results = await collect(runner.run(hosts(254), 50, lambda h: fake.ping(h, 1.0), CancelToken(),
                                       on_batch=lambda i, b: seen.append(len(b))))
    assert len(results) == 254
    assert seen == [50, 50, 50, 50, 50, 4]
    assert fake.peak_in_flight == 50
    assert fake.in_flight == 0


@pytest.mark.asyncio
async def test_only_success_filters_failures():
    ids = hosts(20)
    fake = FakeProber(alive=ids[:3])
    results = await collect(BatchRunner().run(ids, 5, lambda h: fake.ping(h, 1.0), CancelToken(),
                                              only_success=True))
    assert [r.identity for r in results] == ids[:3]


@pytest.mark.asyncio
async def test_results_keep_input_order_within_batch():
    ids = hosts(10)
    fake = FakeProber(alive=ids)
    results = await collect(BatchRunner().run(ids, 4, lambda h: fake.ping(h, 1.0), CancelToken()))
    assert [r.identity for r in results] == ids


@pytest.mark.asyncio
async def test_duplicate_identities_are_probed_once():
    fake = FakeProber(alive={"a"})
    results = await collect(BatchRunner().run(["a", "b", "a", "c", "b"], 2,
                                              lambda h: fake.ping(h, 1.0), CancelToken()))
    assert [r.identity for r in results] == ["a", "b", "c"]
    assert fake.calls["a"] == 1


@pytest.mark.asyncio
async def test_batch_n_reported_before_batch_n_plus_one_starts():
    log = []

    async def probe(ident):
        log.append(("start", ident))
        await asyncio.sleep(0.001)
        return (await FakeProber(alive={ident}).ping(ident, 1.0))

    async for r in BatchRunner().run(list(range(9)), 3, probe, CancelToken()):
        log.append(("yield", r.identity))

    for batch_start in (3, 6):
        first_start = log.index(("start", batch_start))
        prev_yields = [log.index(("yield", i)) for i in range(batch_start - 3, batch_start)]
        assert max(prev_yields) < first_start


@pytest.mark.asyncio
async def test_exception_in_probe_becomes_failure():
    async def probe(ident):
        if ident == 2:
            raise RuntimeError("boom")
        return await FakeProber(alive={ident}).ping(ident, 1.0)

    results = await collect(BatchRunner().run([1, 2, 3], 3, probe, CancelToken()))
    assert [r.success for r in results] == [True, False, True]
    assert results[1].detail == "boom"


@pytest.mark.asyncio
async def test_cancel_stops_scheduling_and_drops_in_flight_batch():
    """Cancelling while batch 2 is launching: batch 2 is drained but not reported, batch 3+ never start."""
    ids = hosts(254)
    fake = FakeProber(alive=ids, delay=0.005)
    cancel = CancelToken()

    def on_batch(index, batch):
        if index == 2:
            cancel.cancel()

    results = await collect(BatchRunner().run(ids, 50, lambda h: fake.ping(h, 1.0), cancel,
                                              on_batch=on_batch))
    assert len(results) == 100
    assert len(fake.probed) == 150
    assert fake.in_flight == 0
    assert fake.finished == 150


@pytest.mark.asyncio
async def test_no_results_after_cancel_from_consumer():
    ids = hosts(30)
    fake = FakeProber(alive=ids)
    cancel = CancelToken()
    got = []
    async for r in BatchRunner().run(ids, 10, lambda h: fake.ping(h, 1.0), cancel):
        got.append(r)
        if len(got) == 4:
            cancel.cancel()
    assert len(got) == 4
    assert len(fake.probed) == 10


@pytest.mark.asyncio
async def test_hard_task_cancel_releases_in_flight_probes():
    fake = FakeProber(delay=10)

    async def consume():
        await collect(BatchRunner().run(hosts(20), 20, lambda h: fake.ping(h, 1.0), CancelToken()))

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.05)
    assert fake.in_flight == 20
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert fake.in_flight == 0


@pytest.mark.asyncio
async def test_pause_is_cut_short_by_cancel():
    fake = FakeProber()
    cancel = CancelToken()
    runner = BatchRunner(pause=30)

    async def consume():
        return await collect(runner.run(hosts(10), 5, lambda h: fake.ping(h, 1.0), cancel))

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.05)
    cancel.cancel()
    results = await asyncio.wait_for(task, 2)
    assert len(results) == 5
