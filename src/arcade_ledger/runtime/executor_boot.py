# src/arcade_ledger/runtime/executor_boot.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from arcade_ledger.runtime.executor import ArcadeExecutor
from arcade_ledger.runtime.node_config import NodeConfig, load_node_config


@dataclass
class ExecutorBootConfig:
    db_path: str
    node_id: str
    chain_id: str
    program_id: str
    mode: str
    allow_unsigned_txs: bool
    fee_remainder_to: str
    genesis_balances: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_node_config(cls, cfg: NodeConfig) -> "ExecutorBootConfig":
        return cls(
            db_path=cfg.db_path,
            node_id=cfg.node_id,
            chain_id=cfg.chain_id,
            program_id=cfg.program_id,
            mode=cfg.mode,
            allow_unsigned_txs=cfg.allow_unsigned_txs,
            fee_remainder_to=cfg.fee_remainder_to,
            genesis_balances=dict(cfg.genesis_balances),
        )


def boot_config_from_env() -> ExecutorBootConfig:
    """Config file named by ARCADE_CONFIG_PATH (if any), then ARCADE_* overrides."""
    return ExecutorBootConfig.from_node_config(load_node_config())


def build_executor(cfg: Optional[ExecutorBootConfig] = None) -> ArcadeExecutor:
    """
    Build an ArcadeExecutor from an explicit boot config or, if omitted,
    from the node config and environment.

    `arcade_ledger.api.app` calls this with no args in production.
    """
    c = cfg or boot_config_from_env()
    return ArcadeExecutor(
        db_path=c.db_path,
        node_id=c.node_id,
        chain_id=c.chain_id,
        program_id=c.program_id,
        mode=c.mode,
        allow_unsigned_txs=c.allow_unsigned_txs,
        fee_remainder_to=c.fee_remainder_to,
        genesis_balances=c.genesis_balances,
    )
