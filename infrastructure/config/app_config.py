import logging
import os
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

import toml

from src.config.contracts import ChainContracts, get_chain


logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass
class ChainSettings:
    chain_id: int = 84532
    rpc_url: Optional[str] = None
    usdc_address: Optional[str] = None
    escrow_address: Optional[str] = None

    def contracts(self) -> ChainContracts:
        """Catalog entry for chain_id with any configured overrides applied."""
        base = get_chain(self.chain_id)
        overrides: Dict[str, Any] = {"chain_id": self.chain_id}
        if self.rpc_url:
            overrides["rpc_url"] = self.rpc_url
        if self.usdc_address:
            overrides["usdc"] = self.usdc_address
        if self.escrow_address:
            overrides["escrow"] = self.escrow_address
        return replace(base, **overrides)


@dataclass
class ReconcilerSettings:
    """Grace periods and receipt polling.

    grace_seconds=None keeps each operation's own default (60s for mints,
    15s for escrow calls).
    """

    grace_seconds: Optional[float] = None
    default_mint_amount: Decimal = Decimal("10000")
    receipt_timeout_seconds: float = 120.0
    receipt_poll_seconds: float = 1.0
    settle_timeout_seconds: float = 300.0


@dataclass
class FeedSettings:
    poll_interval_seconds: float = 2.0
    confirmations: int = 0
    max_block_range: int = 2000


@dataclass
class OverrideRecord:
    key: str
    source: str
    old: Any
    new: Any


@dataclass
class AppConfig:
    chain: ChainSettings = field(default_factory=ChainSettings)
    reconciler: ReconcilerSettings = field(default_factory=ReconcilerSettings)
    feed: FeedSettings = field(default_factory=FeedSettings)
    overrides: List[OverrideRecord] = field(default_factory=list)
    loaded_files: List[str] = field(default_factory=list)

    @classmethod
    def load(
        cls,
        settings_path: Optional[str] = None,
        extra_paths: Optional[Union[str, List[str]]] = None,
        env_prefix: str = "APP__",
    ) -> "AppConfig":
        layers: List[Tuple[Dict[str, Any], str]] = []
        loaded_files: List[str] = []

        def _load_if_exists(path: Optional[str], label: str) -> None:
            if not path:
                return
            if os.path.exists(path):
                with open(path, "r", encoding="utf-8") as f:
                    data = toml.load(f)
                layers.append((data, label))
                loaded_files.append(label)

        if settings_path:
            _load_if_exists(settings_path, os.path.basename(settings_path) or "settings.toml")

        if isinstance(extra_paths, str):
            extra_paths = [p.strip() for p in extra_paths.split(",") if p.strip()]
        if extra_paths:
            for path in extra_paths:
                _load_if_exists(path, os.path.basename(path) if path else "")

        env_overrides = _load_env_overrides(env_prefix)
        if env_overrides:
            layers.append((env_overrides, "env/cli"))

        merged: Dict[str, Any] = {}
        overrides: List[OverrideRecord] = []
        for payload, source in layers:
            _merge_dicts(merged, payload, source, overrides)

        cfg = cls(
            chain=_build_chain(merged),
            reconciler=_build_reconciler(merged),
            feed=_build_feed(merged),
            overrides=overrides,
            loaded_files=loaded_files,
        )

        cfg.log_summary()
        return cfg

    def log_summary(self) -> None:
        logger.info("Loaded config files: %s", ", ".join(self.loaded_files) or "<none>")
        for o in self.overrides:
            logger.info("Override: %s from %s (old=%s -> new=%s)", o.key, o.source, o.old, o.new)
        contracts = self.chain.contracts()
        logger.info(
            "Chain: %s (id=%s) rpc=%s usdc=%s escrow=%s",
            contracts.name,
            contracts.chain_id,
            contracts.rpc_url,
            contracts.usdc,
            contracts.escrow,
        )
        logger.info(
            "Reconciler: grace_seconds=%s default_mint_amount=%s receipt_timeout=%ss",
            "<per-operation>" if self.reconciler.grace_seconds is None else self.reconciler.grace_seconds,
            self.reconciler.default_mint_amount,
            self.reconciler.receipt_timeout_seconds,
        )
        logger.info(
            "Feed: poll_interval=%ss confirmations=%s max_block_range=%s",
            self.feed.poll_interval_seconds,
            self.feed.confirmations,
            self.feed.max_block_range,
        )


def _merge_dicts(dst: Dict[str, Any], src: Dict[str, Any], source: str, overrides: List[OverrideRecord], prefix: str = "") -> None:
    for key, value in src.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            _merge_dicts(dst[key], value, source, overrides, full_key)
        elif isinstance(value, dict):
            dst[key] = value.copy()
        else:
            if key in dst and dst[key] != value:
                overrides.append(OverrideRecord(full_key, source, dst[key], value))
            dst[key] = value


def _load_env_overrides(prefix: str) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_key, env_val in os.environ.items():
        if not env_key.startswith(prefix):
            continue
        path_parts = env_key[len(prefix):].lower().split("__")
        _assign_env_override(overrides, path_parts, env_val)
    return overrides


def _assign_env_override(dst: Dict[str, Any], path_parts: List[str], raw_val: str) -> None:
    cur = dst
    for part in path_parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            cur[part] = {}
        cur = cur[part]
    cur[path_parts[-1]] = _coerce_env_value(raw_val)


def _coerce_env_value(val: str) -> Any:
    lowered = val.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(val)
    except ValueError:
        pass
    try:
        return float(val)
    except ValueError:
        pass
    return val


def _build_chain(cfg: Dict[str, Any]) -> ChainSettings:
    section = cfg.get("chain", {}) or {}
    chain_id = int(section.get("chain_id", 84532))
    if chain_id <= 0:
        raise ValueError("chain.chain_id must be positive")

    usdc = section.get("usdc_address")
    escrow = section.get("escrow_address")
    for label, value in (("chain.usdc_address", usdc), ("chain.escrow_address", escrow)):
        if value is not None and not _ADDRESS_RE.match(str(value)):
            raise ValueError(f"Invalid address for {label}: {value}")

    return ChainSettings(
        chain_id=chain_id,
        rpc_url=section.get("rpc_url") or None,
        usdc_address=usdc,
        escrow_address=escrow,
    )


def _build_reconciler(cfg: Dict[str, Any]) -> ReconcilerSettings:
    section = cfg.get("reconciler", {}) or {}

    grace = section.get("grace_seconds")
    grace_seconds: Optional[float] = float(grace) if grace is not None else None
    if grace_seconds is not None and grace_seconds < 0:
        raise ValueError(f"reconciler.grace_seconds must be >= 0, got {grace_seconds}")

    mint_amount = _to_decimal(section.get("default_mint_amount", "10000"), "reconciler.default_mint_amount")
    if mint_amount <= 0:
        raise ValueError("reconciler.default_mint_amount must be positive")

    receipt_timeout = float(section.get("receipt_timeout_seconds", 120.0))
    if receipt_timeout <= 0:
        raise ValueError("reconciler.receipt_timeout_seconds must be positive")

    return ReconcilerSettings(
        grace_seconds=grace_seconds,
        default_mint_amount=mint_amount,
        receipt_timeout_seconds=receipt_timeout,
        receipt_poll_seconds=float(section.get("receipt_poll_seconds", 1.0)),
        settle_timeout_seconds=float(section.get("settle_timeout_seconds", 300.0)),
    )


def _build_feed(cfg: Dict[str, Any]) -> FeedSettings:
    section = cfg.get("feed", {}) or {}
    settings = FeedSettings(
        poll_interval_seconds=float(section.get("poll_interval_seconds", 2.0)),
        confirmations=int(section.get("confirmations", 0)),
        max_block_range=int(section.get("max_block_range", 2000)),
    )
    if settings.poll_interval_seconds <= 0:
        raise ValueError("feed.poll_interval_seconds must be positive")
    if settings.confirmations < 0:
        raise ValueError("feed.confirmations must be >= 0")
    if settings.max_block_range < 1:
        raise ValueError("feed.max_block_range must be >= 1")
    return settings


def _to_decimal(value: Any, label: str) -> Decimal:
    try:
        return Decimal(str(value))
    except Exception as exc:
        raise ValueError(f"Invalid decimal value for {label}: {value}") from exc
