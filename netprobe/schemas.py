# netprobe/schemas.py
from dataclasses import dataclass
from typing import Literal, Optional, Tuple, Union

ReplyType = Literal["ttl_exceeded", "dest_reached", "timeout"]

Identity = Union[str, int]


@dataclass(frozen=True)
class Target:
    host: str
    port: Optional[int] = None
    packet_count: Optional[int] = None


@dataclass(frozen=True)
class ProbeResult:
    identity: Identity          # address for ping probes, port number for connect probes
    success: bool
    elapsed_ms: float = 0.0
    detail: Optional[str] = None  # reply line, resolved name, ...

    @classmethod
    def failed(cls, identity: Identity, elapsed_ms: float = 0.0, detail: Optional[str] = None) -> "ProbeResult":
        return cls(identity=identity, success=False, elapsed_ms=elapsed_ms, detail=detail)


@dataclass(frozen=True)
class HopEvent:
    ttl: int
    status: ReplyType
    hop_ip: Optional[str] = None
    elapsed_ms: Optional[float] = None


@dataclass(frozen=True)
class QualitySample:
    seq: int
    success: bool
    elapsed_ms: float


@dataclass(frozen=True)
class QualitySummary:
    sent: int
    received: int
    loss_percent: float
    mean_ms: Optional[float]
    jitter_ms: Optional[float]
    verdict: str
    samples: Tuple[QualitySample, ...] = ()
