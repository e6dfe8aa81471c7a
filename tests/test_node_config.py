from __future__ import annotations

import json
from pathlib import Path

import pytest

from arcade_ledger.env import load_dotenv_if_present
from arcade_ledger.runtime import node_config
from arcade_ledger.runtime.executor_boot import ExecutorBootConfig, build_executor
from arcade_ledger.runtime.node_config import (
    default_node_config,
    load_node_config,
    read_node_config_file,
    with_overrides,
)

_ENV_VARS = [
    "ARCADE_CONFIG_PATH",
    "ARCADE_CHAIN_ID",
    "ARCADE_NODE_ID",
    "ARCADE_MODE",
    "ARCADE_DB_PATH",
    "ARCADE_PROGRAM_ID",
    "ARCADE_API_HOST",
    "ARCADE_API_PORT",
    "ARCADE_ALLOW_UNSIGNED_TXS",
    "ARCADE_LOG_LEVEL",
    "ARCADE_FEE_REMAINDER_TO",
    "ARCADE_GENESIS_BALANCES",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in _ENV_VARS:
        monkeypatch.delenv(k, raising=False)


def test_defaults_are_strict() -> None:
    cfg = load_node_config()
    assert cfg == default_node_config()
    assert cfg.mode == "prod"
    assert cfg.allow_unsigned_txs is False
    assert cfg.fee_remainder_to == "escrow"


def test_yaml_file_and_env_override(tmp_path: Path, monkeypatch) -> None:
    p = tmp_path / "node.yaml"
    p.write_text(
        "chain_id: arcade-testnet\n"
        "mode: testnet\n"
        "api_port: 9100\n"
        "allow_unsigned_txs: true\n"
        "fee_remainder_to: beneficiary\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ARCADE_CONFIG_PATH", str(p))
    monkeypatch.setenv("ARCADE_NODE_ID", "node-7")

    cfg = load_node_config()
    assert cfg.chain_id == "arcade-testnet"
    assert cfg.mode == "testnet"
    assert cfg.api_port == 9100
    assert cfg.allow_unsigned_txs is True
    assert cfg.fee_remainder_to == "beneficiary"
    assert cfg.node_id == "node-7"


def test_json_file(tmp_path: Path) -> None:
    p = tmp_path / "node.json"
    p.write_text(json.dumps({"chain_id": "c", "program_id": "prog-2", "log_level": "debug"}), encoding="utf-8")
    cfg = read_node_config_file(str(p))
    assert cfg.program_id == "prog-2"
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize(
    "raw",
    [
        {"mode": "chaos"},
        {"api_port": 70000},
        {"allow_unsigned_txs": True},  # defaults to prod mode
        {"fee_remainder_to": "nobody"},
        {"log_level": "LOUD"},
        {"genesis_balances": {"alice": -1}},
        {"genesis_balances": {"alice": "100"}},
        {"genesis_balances": {"alice": True}},
        {"genesis_balances": {" ": 1}},
        {"genesis_balances": {"a": 2**64 - 1, "b": 1}},
        {"genesis_balances": ["alice", 1]},
    ],
)
def test_invalid_config_fails_fast(tmp_path: Path, raw: dict) -> None:
    p = tmp_path / "bad.json"
    p.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ValueError):
        read_node_config_file(str(p))


def test_non_mapping_config_rejected(tmp_path: Path) -> None:
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_node_config_file(str(p))


def test_apply_to_env_roundtrip(monkeypatch) -> None:
    cfg = with_overrides(default_node_config(), chain_id="round", mode="dev")
    node_config.apply_node_config_to_env(cfg)
    assert load_node_config() == cfg


def test_build_executor_from_boot_config(tmp_path: Path) -> None:
    cfg = with_overrides(default_node_config(), db_path=str(tmp_path / "boot.db"), mode="dev")
    ex = build_executor(ExecutorBootConfig.from_node_config(cfg))
    assert ex.chain_id == cfg.chain_id
    assert ex.mode == "dev"
    assert ex.seq == 0


def test_dotenv_loaded_without_overriding(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("arcade_ledger.env._LOADED", False)
    env = tmp_path / ".env"
    env.write_text("ARCADE_NODE_ID=from-dotenv\nARCADE_CHAIN_ID=from-dotenv\n", encoding="utf-8")
    monkeypatch.setenv("ARCADE_CHAIN_ID", "from-shell")

    assert load_dotenv_if_present(str(env)) is True
    # Second call in the same process is a no-op.
    assert load_dotenv_if_present(str(env)) is False

    cfg = load_node_config()
    assert cfg.node_id == "from-dotenv"
    assert cfg.chain_id == "from-shell"


def test_genesis_balances_from_yaml_and_env(tmp_path: Path, monkeypatch) -> None:
    p = tmp_path / "node.yaml"
    p.write_text("genesis_balances:\n  owner: 1000000000\n  alice: 5000\n", encoding="utf-8")
    cfg = read_node_config_file(str(p))
    assert cfg.mode == "prod"
    assert cfg.genesis_balances == {"owner": 1_000_000_000, "alice": 5_000}

    monkeypatch.setenv("ARCADE_GENESIS_BALANCES", json.dumps({"bob": 7}))
    assert load_node_config(config_path=str(p)).genesis_balances == {"bob": 7}


def test_genesis_balances_reach_the_executor(tmp_path: Path) -> None:
    cfg = with_overrides(
        default_node_config(),
        db_path=str(tmp_path / "genesis.db"),
        genesis_balances={"owner": 42},
    )
    node_config.apply_node_config_to_env(cfg)
    assert load_node_config() == cfg

    ex = build_executor(ExecutorBootConfig.from_node_config(cfg))
    assert ex.mode == "prod"
    assert ex.view().get_balance("owner") == 42
