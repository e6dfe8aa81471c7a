# src/arcade_ledger/runtime/node_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID, FEE_REMAINDER_ESCROW, FEE_REMAINDER_POLICIES, U64_MAX

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)


def _as_balances(v: Any, default: Dict[str, int]) -> Dict[str, int]:
    if v is None:
        return dict(default)
    if isinstance(v, str):
        v = json.loads(v) if v.strip() else {}
    if not isinstance(v, dict):
        raise ValueError("genesis_balances must be a mapping of account -> lamports")
    return {str(k).strip(): amount for k, amount in v.items()}
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True)
class NodeConfig:
    chain_id: str
    node_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file path for all node persistence.
    db_path: str

    # Namespace for derived record addresses.
    program_id: str

    api_host: str
    api_port: int

    allow_unsigned_txs: bool

    log_level: str

    # Node default for where the odd lamport of an entry fee goes.
    fee_remainder_to: str

    # Opening balances credited once, when the ledger is first created.
    # The only funding source in prod, where ACCOUNT_AIRDROP is refused.
    genesis_balances: Dict[str, int] = field(default_factory=dict)


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_node_config(cfg: NodeConfig) -> None:
    """Fail-fast validation for operator config."""

    for name in ("chain_id", "node_id", "program_id", "db_path"):
        v = getattr(cfg, name)
        if not isinstance(v, str) or not v.strip():
            raise ValueError(f"{name} must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if cfg.allow_unsigned_txs and mode == "prod":
        raise ValueError("allow_unsigned_txs=true is only allowed outside prod mode")

    if str(cfg.log_level).upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")

    if cfg.fee_remainder_to not in FEE_REMAINDER_POLICIES:
        raise ValueError(f"fee_remainder_to must be one of {FEE_REMAINDER_POLICIES}; got: {cfg.fee_remainder_to!r}")

    total = 0
    for account, amount in cfg.genesis_balances.items():
        if not isinstance(account, str) or not account.strip():
            raise ValueError("genesis_balances keys must be non-empty account ids")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"genesis_balances[{account!r}] must be a non-negative integer; got: {amount!r}")
        total += amount
    if total > U64_MAX:
        raise ValueError("genesis_balances total exceeds u64")


def default_node_config() -> NodeConfig:
    return NodeConfig(
        chain_id="arcade-dev",
        node_id="local-node",
        # Without an explicit config the node runs in the strict posture.
        mode="prod",
        db_path="./data/arcade.db",
        program_id=DEFAULT_PROGRAM_ID,
        api_host="0.0.0.0",
        api_port=8000,
        allow_unsigned_txs=False,
        log_level="INFO",
        fee_remainder_to=FEE_REMAINDER_ESCROW,
    )


def _read_raw(path: Path) -> Json:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("node config must be a mapping")
    return raw


def node_config_from_mapping(raw: Json, *, base: Optional[NodeConfig] = None) -> NodeConfig:
    d = base or default_node_config()
    return NodeConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        node_id=_as_str(raw.get("node_id"), d.node_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        program_id=_as_str(raw.get("program_id"), d.program_id),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        allow_unsigned_txs=_as_bool(raw.get("allow_unsigned_txs"), d.allow_unsigned_txs),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
        fee_remainder_to=_as_str(raw.get("fee_remainder_to"), d.fee_remainder_to).strip().lower(),
        genesis_balances=_as_balances(raw.get("genesis_balances"), d.genesis_balances),
    )


def read_node_config_file(path: str) -> NodeConfig:
    """Load a JSON or YAML (.yaml/.yml) config file over the defaults."""
    cfg = node_config_from_mapping(_read_raw(Path(path)))
    validate_node_config(cfg)
    return cfg


_ENV_FIELDS = {
    "chain_id": "ARCADE_CHAIN_ID",
    "node_id": "ARCADE_NODE_ID",
    "mode": "ARCADE_MODE",
    "db_path": "ARCADE_DB_PATH",
    "program_id": "ARCADE_PROGRAM_ID",
    "api_host": "ARCADE_API_HOST",
    "api_port": "ARCADE_API_PORT",
    "allow_unsigned_txs": "ARCADE_ALLOW_UNSIGNED_TXS",
    "log_level": "ARCADE_LOG_LEVEL",
    "fee_remainder_to": "ARCADE_FEE_REMAINDER_TO",
    "genesis_balances": "ARCADE_GENESIS_BALANCES",
}


def apply_env_overrides(cfg: NodeConfig) -> NodeConfig:
    raw: Json = {}
    for name, var in _ENV_FIELDS.items():
        v = os.environ.get(var)
        if v is not None and v.strip():
            raw[name] = v.strip()
    if not raw:
        return cfg
    return node_config_from_mapping(raw, base=cfg)


def load_node_config(*, config_path: Optional[str] = None) -> NodeConfig:
    """File (if any) over defaults, then ARCADE_* environment overrides."""
    p = config_path or os.environ.get("ARCADE_CONFIG_PATH")
    cfg = node_config_from_mapping(_read_raw(Path(p))) if p else default_node_config()
    cfg = apply_env_overrides(cfg)
    validate_node_config(cfg)
    return cfg


def apply_node_config_to_env(cfg: NodeConfig) -> None:
    validate_node_config(cfg)
    os.environ["ARCADE_CHAIN_ID"] = cfg.chain_id
    os.environ["ARCADE_NODE_ID"] = cfg.node_id
    os.environ["ARCADE_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["ARCADE_DB_PATH"] = cfg.db_path
    os.environ["ARCADE_PROGRAM_ID"] = cfg.program_id
    os.environ["ARCADE_LOG_LEVEL"] = cfg.log_level
    os.environ["ARCADE_FEE_REMAINDER_TO"] = cfg.fee_remainder_to
    os.environ["ARCADE_ALLOW_UNSIGNED_TXS"] = "1" if cfg.allow_unsigned_txs else "0"
    os.environ["ARCADE_GENESIS_BALANCES"] = json.dumps(cfg.genesis_balances, sort_keys=True)


def with_overrides(cfg: NodeConfig, **changes: Any) -> NodeConfig:
    out = replace(cfg, **changes)
    validate_node_config(out)
    return out
