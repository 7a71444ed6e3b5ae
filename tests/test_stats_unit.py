# tests/test_stats_unit.py
import pytest

from netprobe.engine import stats


@pytest.mark.parametrize("total,received,expected", [
    (10, 7, 30.0),
    (10, 10, 0.0),
    (10, 0, 100.0),
    (1, 1, 0.0),
    (3, 2, 100 / 3),
])
def test_loss_percent(total, received, expected):
    assert stats.loss_percent(total, received) == pytest.approx(expected)


def test_loss_percent_rejects_empty_run():
    with pytest.raises(ValueError):
        stats.loss_percent(0, 0)
    with pytest.raises(ValueError):
        stats.loss_percent(5, 6)


def test_jitter_is_mean_successive_difference():
    """[100, 120, 90] -> (20 + 30) / 2, not the standard deviation."""
    assert stats.jitter([100, 120, 90]) == 25
    assert stats.mean([100, 120, 90]) == pytest.approx(103.333, rel=1e-3)


@pytest.mark.parametrize("samples", [[], [42.0]])
def test_single_or_no_sample_has_no_mean_or_jitter(samples):
    assert stats.jitter(samples) is None
    assert stats.mean(samples) is None


@pytest.mark.parametrize("loss,jitter_ms,expected", [
    (0, 10, "excellent"),
    (5, 10, "poor"),          # loss dominates a low jitter
    (0, 50, "normal"),
    (0, 20, "normal"),        # excellent needs jitter strictly below 20
    (0, 100, "normal"),       # poor needs jitter strictly above 100
    (0, 100.5, "poor"),
    (0, None, "excellent"),
    (100, None, "poor"),
])
def test_verdict_thresholds(loss, jitter_ms, expected):
    assert stats.verdict(loss, jitter_ms) == expected


def test_summarize_with_losses():
    s = stats.summarize(4, [100, 120, 90])
    assert s.sent == 4
    assert s.received == 3
    assert s.loss_percent == 25
    assert s.jitter_ms == 25
    assert s.verdict == "poor"


@pytest.mark.parametrize("total,samples", [(1, []), (1, [12.0]), (5, [])])
def test_summarize_never_divides_by_zero(total, samples):
    s = stats.summarize(total, samples)
    assert s.mean_ms is None
    assert s.jitter_ms is None
