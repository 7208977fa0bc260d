import json
import os

import pytest

import run_mint


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("APP__"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def _statuses(out: str):
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


def test_dry_run_confirmed_by_receipt(capsys: pytest.CaptureFixture) -> None:
    assert run_mint.main(["--dry-run", "--simulate", "receipt", "--amount", "5"]) == 0

    statuses = _statuses(capsys.readouterr().out)
    assert statuses[0]["state"] == "pending"
    assert statuses[-1]["state"] in ("confirmed", "idle")
    assert any(s["state"] == "confirmed" for s in statuses)


def test_dry_run_confirmed_by_feed_after_receipt_timeout(capsys: pytest.CaptureFixture) -> None:
    assert run_mint.main(["--dry-run", "--simulate", "feed", "--grace-seconds", "5"]) == 0

    statuses = _statuses(capsys.readouterr().out)
    confirmed = [s for s in statuses if s["state"] == "confirmed"]
    assert confirmed[0]["error"] is None
    assert confirmed[0]["matched_event"]["name"] == "Transfer"


def test_dry_run_timeout_fails_after_grace(capsys: pytest.CaptureFixture) -> None:
    assert run_mint.main(["--dry-run", "--simulate", "timeout", "--grace-seconds", "0.05"]) == 1

    failed = [s for s in _statuses(capsys.readouterr().out) if s["state"] == "failed"]
    assert failed[0]["error"] == "timeout: receipt not found"
    assert failed[0]["failure_reason"] == "timeout"


def test_dry_run_rejection_fails_immediately(capsys: pytest.CaptureFixture) -> None:
    assert run_mint.main(["--dry-run", "--simulate", "reject"]) == 1

    failed = [s for s in _statuses(capsys.readouterr().out) if s["state"] == "failed"]
    assert failed[0]["failure_reason"] == "insufficient_funds"
    assert failed[0]["submission_handle"] is None
