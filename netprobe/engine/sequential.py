# netprobe/engine/sequential.py
import dataclasses
import logging
import time
from typing import Callable, List, Optional

from netprobe.config import Settings
from netprobe.engine import stats
from netprobe.engine.state import CancelToken
from netprobe.errors import ProbeError
from netprobe.prober.base import Prober
from netprobe.reporting import Report
from netprobe.schemas import HopEvent, QualitySample, QualitySummary

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class SequentialProber:
    """
    Probes that have to go one at a time: the TTL sweep (stops early on the
    destination) and the packet-train quality test (samples in issue order).
    """

    def __init__(self, prober: Prober, settings: Optional[Settings] = None,
                 clock: Callable[[], float] = time.perf_counter):
        self.prober = prober
        self.s = settings or Settings()
        self.clock = clock

    async def trace(self, host: str, report: Report, cancel: CancelToken) -> List[HopEvent]:
        report(f">>> TRACEROUTE: {host}")
        report("(TTL Method)")
        hops: List[HopEvent] = []

        for ttl in range(1, self.s.max_hops + 1):
            if cancel.cancelled:
                return hops
            try:
                ev = await self.prober.probe_hop(host, ttl, self.s.hop_timeout)
            except ProbeError as e:
                logger.warning("trace to %s stopped at ttl %d: %s", host, ttl, e)
                report(f"Error: {e}")
                break
            if cancel.cancelled:
                return hops
            hops.append(ev)

            if ev.status == "dest_reached" or (ev.hop_ip and ev.hop_ip == host):
                report(f"Hop {ttl}: {host} (DONE!)")
                break
            elif ev.status == "ttl_exceeded":
                report(f"Hop {ttl}: {ev.hop_ip}")
            else:
                report(f"Hop {ttl}: * * *")

        report(">>> DONE")
        return hops

    async def measure_quality(self, host: str, report: Report, cancel: CancelToken,
                              count: Optional[int] = None) -> Optional[QualitySummary]:
        """
        Send `count` sequential pings and summarize loss/latency/jitter.
        Latency is wall-clock time around each probe call, process spawn
        included. Returns None if the run was cancelled.
        """
        total = count or self.s.quality_default_count
        report(f">>> QUALITY TEST: {host}")
        report(f"Packets: {total}")
        pace = self.s.pace_fast if total > self.s.pace_threshold else self.s.pace_slow

        samples: List[QualitySample] = []
        for seq in range(1, total + 1):
            if cancel.cancelled:
                break
            t0 = self.clock()
            res = await self.prober.ping(host, self.s.quality_timeout)
            elapsed = (self.clock() - t0) * 1000.0
            if cancel.cancelled:
                break

            samples.append(QualitySample(seq=seq, success=res.success, elapsed_ms=elapsed))
            if res.success:
                report(f"#{seq}: {int(elapsed)} ms (OK)")
            else:
                report(f"#{seq}: LOST")

            if seq < total and not await cancel.sleep(pace):
                break

        if cancel.cancelled:
            return None

        summary = stats.summarize(total, [x.elapsed_ms for x in samples if x.success])
        report("")
        report("--- RESULTS ---")
        report(f"Loss: {int(summary.loss_percent)}%")
        if summary.mean_ms is not None:
            report(f"Avg: {summary.mean_ms:.1f} ms")
            report(f"Jitter: {summary.jitter_ms:.1f} ms")
        report(f"Verdict: {summary.verdict}")
        return dataclasses.replace(summary, samples=tuple(samples))

    async def ping_forever(self, host: str, report: Report, cancel: CancelToken,
                           count: Optional[int] = None) -> int:
        """Ping once per interval until cancelled (or `count` probes). Returns replies seen."""
        report(f">>> START PING: {host}")
        sent = replies = 0
        while not cancel.cancelled and (count is None or sent < count):
            res = await self.prober.ping(host, self.s.ping_timeout)
            if cancel.cancelled:
                break
            sent += 1
            if res.success:
                replies += 1
                report(res.detail or f"Reply from {host}: time={res.elapsed_ms:.1f} ms")
            else:
                report(f"Request timeout for {host}")
            if count is not None and sent >= count:
                break
            if not await cancel.sleep(self.s.ping_interval):
                break
        return replies
