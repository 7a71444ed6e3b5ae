# tests/test_run_diag_cli.py
import json

import pytest

from tools import run_diag


def test_fake_trace(capsys):
    """Trace against the canned fake network ends at the destination."""
    assert run_diag.main(["trace", "8.8.8.8", "--fake"]) == 0
    out = capsys.readouterr().out
    assert "Hop 1: 10.0.0.1" in out
    assert "Hop 5: 8.8.8.8 (DONE!)" in out
    assert ">>> DONE" in out


def test_fake_quality_json(capsys):
    assert run_diag.main(["quality", "8.8.8.8", "--fake", "--count", "3", "--json"]) == 0
    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{"):])
    assert summary["sent"] == 3
    assert summary["received"] == 3
    assert summary["loss_percent"] == 0


def test_fake_scan(capsys):
    assert run_diag.main(["scan", "--fake"]) == 0
    out = capsys.readouterr().out
    assert "[FOUND] 192.168.1.1 (router.lan) | total: 1" in out
    assert ">>> SCAN COMPLETED (2 devices)" in out


def test_fake_port_check(capsys):
    assert run_diag.main(["port", "10.0.0.1", "--port", "443", "--fake"]) == 0
    assert "Result: Port 443 is OPEN" in capsys.readouterr().out


def test_target_required():
    with pytest.raises(SystemExit):
        run_diag.main(["trace"])
    with pytest.raises(SystemExit):
        run_diag.main(["port", "10.0.0.1"])
