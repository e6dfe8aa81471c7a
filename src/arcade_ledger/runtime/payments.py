# src/arcade_ledger/runtime/payments.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from arcade_ledger.ledger import balances
from arcade_ledger.ledger.constants import FEE_REMAINDER_BENEFICIARY
from arcade_ledger.runtime.errors import (
    INCORRECT_PAYMENT_AMOUNT,
    INSUFFICIENT_FUNDS,
    INVALID_PAYLOAD,
    ArcadeError,
)
from arcade_ledger.runtime.escrow import EscrowAccount

Json = Dict[str, Any]


@dataclass(frozen=True)
class FeeSplit:
    escrow: int
    beneficiary: int


def split_fee(price: int, *, remainder_to: str) -> FeeSplit:
    """Halve an entry fee. The odd unit goes to escrow unless configured otherwise."""
    half = int(price) // 2
    rest = int(price) - half
    if remainder_to == FEE_REMAINDER_BENEFICIARY:
        return FeeSplit(escrow=half, beneficiary=rest)
    return FeeSplit(escrow=rest, beneficiary=half)


class PaymentProcessor:
    def __init__(self, state: Json, record: Json) -> None:
        self._state = state
        self._record = record
        self._escrow = EscrowAccount(state, record)

    @property
    def price_per_game(self) -> int:
        return int(self._record.get("price_per_game", 0) or 0)

    def charge_entry_fee(self, player: str, tendered: Any) -> FeeSplit:
        if isinstance(tendered, bool) or not isinstance(tendered, int):
            raise ArcadeError(INVALID_PAYLOAD, "tendered_not_integer", {"tendered": tendered})

        price = self.price_per_game
        if tendered != price:
            raise ArcadeError(
                INCORRECT_PAYMENT_AMOUNT,
                "tendered_does_not_match_price",
                {"tendered": tendered, "price_per_game": price},
            )

        # Whole fee must be affordable before either leg moves.
        have = balances.get_balance(self._state, player)
        if have < price:
            raise ArcadeError(
                INSUFFICIENT_FUNDS,
                "balance_too_low",
                {"account": player, "balance": have, "amount": price},
            )

        split = split_fee(price, remainder_to=str(self._record.get("fee_remainder_to") or ""))
        beneficiary = str(self._record.get("beneficiary") or "")

        self._escrow.deposit(player, split.escrow)
        balances.transfer(self._state, player, beneficiary, split.beneficiary)

        # Counter moves only once both legs are confirmed.
        self._record["game_counter"] = balances.checked_add(
            int(self._record.get("game_counter", 0) or 0), 1, what="game_counter"
        )
        return split
