# netprobe/engine/stats.py
from typing import Optional, Sequence

from netprobe.schemas import QualitySummary

EXCELLENT_JITTER_MS = 20.0
POOR_JITTER_MS = 100.0


def loss_percent(total: int, received: int) -> float:
    if total < 1:
        raise ValueError("total must be >= 1")
    if not 0 <= received <= total:
        raise ValueError("received must be within 0..total")
    return (total - received) / total * 100


def mean(samples: Sequence[float]) -> Optional[float]:
    if len(samples) < 2:
        return None
    return sum(samples) / len(samples)


def jitter(samples: Sequence[float]) -> Optional[float]:
    """
    Mean absolute difference between consecutive samples, in issue order.
    Not the standard deviation: [100, 120, 90] -> (20 + 30) / 2 = 25.
    """
    if len(samples) < 2:
        return None
    diffs = [abs(a - b) for a, b in zip(samples, samples[1:])]
    return sum(diffs) / len(diffs)


def verdict(loss: float, jitter_ms: Optional[float]) -> str:
    """
    Precedence matters: excellent is tested first, then poor, anything
    else (zero loss with 20 <= jitter <= 100) is normal.
    """
    j = jitter_ms if jitter_ms is not None else 0.0
    if loss == 0 and j < EXCELLENT_JITTER_MS:
        return "excellent"
    if loss > 0 or j > POOR_JITTER_MS:
        return "poor"
    return "normal"


def summarize(total: int, samples: Sequence[float]) -> QualitySummary:
    """samples are the latencies of the received packets, in issue order."""
    loss = loss_percent(total, len(samples))
    j = jitter(samples)
    return QualitySummary(
        sent=total,
        received=len(samples),
        loss_percent=loss,
        mean_ms=mean(samples),
        jitter_ms=j,
        verdict=verdict(loss, j),
    )
