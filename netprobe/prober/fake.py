# netprobe/prober/fake.py
import asyncio
from collections import Counter, deque
from typing import Dict, Iterable, Optional

from netprobe.prober.base import Prober
from netprobe.schemas import HopEvent, ProbeResult


class FakeProber(Prober):
    """
    Deterministic prober for tests and the CLI's fake mode.

    alive:    hosts that answer ping
    open_ports: ports that accept connections (any host)
    names:    address -> reverse name
    addresses: host -> forward address; None makes the host unresolvable
    hops:     dict[ttl] -> deque of HopEvent-like objects to return each call
    pings:    dict[host] -> deque of bools consumed per ping; overrides alive
    delay:    seconds every probe sleeps, so batches actually overlap
    If no scripted hop is left, probe_hop returns a timeout event.
    """

    def __init__(self, alive: Iterable[str] = (), open_ports: Iterable[int] = (),
                 names: Optional[Dict[str, str]] = None, addresses: Optional[Dict[str, Optional[str]]] = None,
                 hops=None, pings=None,
                 delay: float = 0.0, elapsed_ms: float = 1.0):
        self.alive = set(alive)
        self.open_ports = set(open_ports)
        self.names = dict(names or {})
        self.addresses = dict(addresses or {})
        self.hops = {k: deque(v) for k, v in (hops or {}).items()}
        self.pings = {k: deque(v) for k, v in (pings or {}).items()}
        self.delay = delay
        self.elapsed_ms = elapsed_ms

        self.calls = Counter()
        self.probed = []            # identities in call order
        self.in_flight = 0
        self.peak_in_flight = 0
        self.finished = 0           # probes that ran to completion or were cancelled
        self.resolved = []          # hosts passed to resolve
        self.connected_hosts = set()

    async def _tick(self, identity):
        self.calls[identity] += 1
        self.probed.append(identity)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
            self.finished += 1

    async def ping(self, host: str, timeout: float) -> ProbeResult:
        await self._tick(host)
        dq = self.pings.get(host)
        if dq:
            ok = dq.popleft()
        else:
            ok = host in self.alive
        if ok:
            return ProbeResult(host, True, self.elapsed_ms, f"64 bytes from {host}: icmp_seq=1 ttl=64")
        return ProbeResult.failed(host, self.elapsed_ms)

    async def connect(self, host: str, port: int, timeout: float) -> ProbeResult:
        await self._tick(port)
        self.connected_hosts.add(host)
        if port in self.open_ports:
            return ProbeResult(port, True, self.elapsed_ms, host)
        return ProbeResult.failed(port, self.elapsed_ms)

    async def resolve(self, host: str, timeout: float) -> Optional[str]:
        await asyncio.sleep(0)
        self.resolved.append(host)
        return self.addresses.get(host, host)

    async def reverse_lookup(self, address: str, timeout: float) -> Optional[str]:
        await asyncio.sleep(0)
        return self.names.get(address)

    async def probe_hop(self, dest: str, ttl: int, timeout: float) -> HopEvent:
        await self._tick(ttl)
        dq = self.hops.get(ttl)
        if dq and len(dq) > 0:
            ev = dq.popleft()
            if isinstance(ev, BaseException):
                raise ev
            return ev
        # default: timeout
        return HopEvent(ttl=ttl, status="timeout")
