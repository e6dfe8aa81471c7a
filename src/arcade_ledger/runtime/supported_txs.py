# src/arcade_ledger/runtime/supported_txs.py
"""Tx types this build knows how to apply.

Anything else is rejected at admission and fails closed at apply time.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

ARCADE_INITIALIZE = "ARCADE_INITIALIZE"
ARCADE_PLAY = "ARCADE_PLAY"
ARCADE_SCORE_SUBMIT = "ARCADE_SCORE_SUBMIT"
ARCADE_PRICE_SET = "ARCADE_PRICE_SET"
ARCADE_ADMINS_ADD = "ARCADE_ADMINS_ADD"
ARCADE_ADMIN_REMOVE = "ARCADE_ADMIN_REMOVE"
ACCOUNT_AIRDROP = "ACCOUNT_AIRDROP"

ARCADE_TX_TYPES: FrozenSet[str] = frozenset(
    {
        ARCADE_INITIALIZE,
        ARCADE_PLAY,
        ARCADE_SCORE_SUBMIT,
        ARCADE_PRICE_SET,
        ARCADE_ADMINS_ADD,
        ARCADE_ADMIN_REMOVE,
    }
)

# Only admitted when the node is not running in prod mode.
DEV_ONLY_TX_TYPES: FrozenSet[str] = frozenset({ACCOUNT_AIRDROP})

SUPPORTED_TX_TYPES: FrozenSet[str] = ARCADE_TX_TYPES | DEV_ONLY_TX_TYPES

# tx_type -> (required payload keys, optional payload keys)
PAYLOAD_FIELDS: Dict[str, Tuple[FrozenSet[str], FrozenSet[str]]] = {
    ARCADE_INITIALIZE: (
        frozenset({"name", "max_top_scores", "price_per_game"}),
        frozenset({"admins", "beneficiary", "fee_remainder_to"}),
    ),
    ARCADE_PLAY: (frozenset({"arcade", "lamports"}), frozenset()),
    ARCADE_SCORE_SUBMIT: (
        frozenset({"arcade", "player", "nickname", "score", "beneficiary_account"}),
        frozenset(),
    ),
    ARCADE_PRICE_SET: (frozenset({"arcade", "price_per_game"}), frozenset()),
    ARCADE_ADMINS_ADD: (frozenset({"arcade", "admins"}), frozenset()),
    ARCADE_ADMIN_REMOVE: (frozenset({"arcade", "admin"}), frozenset()),
    ACCOUNT_AIRDROP: (frozenset({"lamports"}), frozenset({"account"})),
}
