# netprobe/prober/base.py
from abc import ABC, abstractmethod
from typing import Optional

from netprobe.schemas import HopEvent, ProbeResult


class Prober(ABC):
    """
    The probe primitive the engine drives. Implementations must turn every
    per-probe failure (timeout, refusal, DNS error, spawn error) into a failed
    ProbeResult instead of raising; only probe_hop may raise ProbeError.
    """

    @abstractmethod
    async def ping(self, host: str, timeout: float) -> ProbeResult:
        """One reachability check against host; identity is the host."""
        raise NotImplementedError

    @abstractmethod
    async def connect(self, host: str, port: int, timeout: float) -> ProbeResult:
        """One TCP handshake against host:port; identity is the port."""
        raise NotImplementedError

    @abstractmethod
    async def resolve(self, host: str, timeout: float) -> Optional[str]:
        """Forward lookup of host to one IPv4 address, None when it does not resolve."""
        raise NotImplementedError

    @abstractmethod
    async def reverse_lookup(self, address: str, timeout: float) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def probe_hop(self, dest: str, ttl: int, timeout: float) -> HopEvent:
        """Send exactly one hop-limited probe for dest@ttl and classify the reply."""
        raise NotImplementedError
