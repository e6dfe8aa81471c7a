from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "arcade_ledger" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from arcade_ledger.ledger import balances  # noqa: E402
from arcade_ledger.ledger.constants import DEFAULT_PROGRAM_ID  # noqa: E402
from arcade_ledger.runtime.arcade import ArcadeLedger  # noqa: E402

FUNDING = 1_000_000_000


@pytest.fixture
def state():
    st = {"accounts": {}, "arcades": {}, "params": {}}
    for who in ("owner", "alice", "bob", "carol", "mallory"):
        balances.credit(st, who, FUNDING)
    return st


@pytest.fixture
def ledger(state):
    return ArcadeLedger(state, program_id=DEFAULT_PROGRAM_ID)


@pytest.fixture
def arcade(ledger):
    """A 3-slot arcade owned by "owner", 100 lamports per game."""
    res = ledger.initialize("owner", name="Arcade", max_top_scores=3, price_per_game=100)
    return res.data["arcade"]
