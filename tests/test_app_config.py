import os
from decimal import Decimal

import pytest

from infrastructure.config.app_config import AppConfig
from src.config.contracts import BASE, BASE_SEPOLIA

SETTINGS = """
[chain]
chain_id = 84532

[reconciler]
grace_seconds = 45
default_mint_amount = "250.5"

[feed]
poll_interval_seconds = 1.5
confirmations = 2
"""


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("APP__"):
            monkeypatch.delenv(key, raising=False)


def test_defaults_without_files(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    cfg = AppConfig.load(str(tmp_path / "missing.toml"))

    assert cfg.loaded_files == []
    assert cfg.reconciler.grace_seconds is None
    assert cfg.reconciler.default_mint_amount == Decimal("10000")
    assert cfg.chain.contracts() == BASE_SEPOLIA


def test_toml_layer_is_applied(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    path = tmp_path / "settings.toml"
    path.write_text(SETTINGS, encoding="utf-8")

    cfg = AppConfig.load(str(path))

    assert cfg.loaded_files == ["settings.toml"]
    assert cfg.reconciler.grace_seconds == 45.0
    assert cfg.reconciler.default_mint_amount == Decimal("250.5")
    assert cfg.feed.poll_interval_seconds == 1.5
    assert cfg.feed.confirmations == 2


def test_env_overrides_win_and_are_recorded(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    path = tmp_path / "settings.toml"
    path.write_text(SETTINGS, encoding="utf-8")
    monkeypatch.setenv("APP__RECONCILER__GRACE_SECONDS", "90")
    monkeypatch.setenv("APP__CHAIN__CHAIN_ID", "8453")
    monkeypatch.setenv("APP__CHAIN__RPC_URL", "https://rpc.example")

    cfg = AppConfig.load(str(path))
    contracts = cfg.chain.contracts()

    assert cfg.reconciler.grace_seconds == 90.0
    assert contracts.chain_id == 8453
    assert contracts.usdc == BASE.usdc
    assert contracts.rpc_url == "https://rpc.example"
    keys = {o.key: o for o in cfg.overrides}
    assert keys["reconciler.grace_seconds"].old == 45
    assert keys["reconciler.grace_seconds"].new == 90
    assert keys["reconciler.grace_seconds"].source == "env/cli"


def test_extra_paths_layer_in_order(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    _clear_env(monkeypatch)
    base = tmp_path / "settings.toml"
    base.write_text(SETTINGS, encoding="utf-8")
    local = tmp_path / "local.toml"
    local.write_text("[reconciler]\ngrace_seconds = 5\n", encoding="utf-8")

    cfg = AppConfig.load(str(base), extra_paths=str(local))

    assert cfg.loaded_files == ["settings.toml", "local.toml"]
    assert cfg.reconciler.grace_seconds == 5.0


@pytest.mark.parametrize(
    "body",
    [
        "[reconciler]\ngrace_seconds = -1\n",
        "[reconciler]\ndefault_mint_amount = \"abc\"\n",
        "[chain]\nusdc_address = \"0x123\"\n",
        "[feed]\nconfirmations = -2\n",
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, tmp_path, body) -> None:
    _clear_env(monkeypatch)
    path = tmp_path / "bad.toml"
    path.write_text(body, encoding="utf-8")
    with pytest.raises(ValueError):
        AppConfig.load(str(path))
