# src/arcade_ledger/ledger/constants.py
from __future__ import annotations

"""Arcade ledger constants.

Amounts are integer base units ("lamports"). Every balance, counter and
running total is bounded by U64_MAX.
"""

U64_MAX: int = 2**64 - 1

# Leaderboard capacity is stored in a single byte.
MIN_TOP_SCORES: int = 1
MAX_TOP_SCORES: int = 255

MAX_ADMINS: int = 8

MAX_NAME_BYTES: int = 256
MAX_NICKNAME_BYTES: int = 32

# Seed tag for the per-owner arcade record.
ARCADE_SEED: str = "arcade_account"

DEFAULT_PROGRAM_ID: str = "arcade-ledger-v1"

# Fee split remainder policy (odd prices).
FEE_REMAINDER_ESCROW: str = "escrow"
FEE_REMAINDER_BENEFICIARY: str = "beneficiary"
FEE_REMAINDER_POLICIES = (FEE_REMAINDER_ESCROW, FEE_REMAINDER_BENEFICIARY)

# ---------------------------------------------------------------------------
# Record sizing and reserve floor
# ---------------------------------------------------------------------------

PRINCIPAL_BYTES: int = 32
U64_BYTES: int = 8
LEN_PREFIX_BYTES: int = 4
DISCRIMINATOR_BYTES: int = 8

# player + nickname(len-prefixed) + score + admission seq
SCORE_ENTRY_BYTES: int = PRINCIPAL_BYTES + LEN_PREFIX_BYTES + MAX_NICKNAME_BYTES + U64_BYTES + U64_BYTES

# Storage overhead charged per account regardless of data size.
ACCOUNT_STORAGE_OVERHEAD: int = 128
LAMPORTS_PER_BYTE_YEAR: int = 3_480
EXEMPTION_THRESHOLD_YEARS: int = 2


def record_size(max_top_scores: int) -> int:
    """Bytes reserved for a record that can hold `max_top_scores` entries.

    Fixed at initialize time; the leaderboard and admin set can never grow
    past what was paid for here.
    """
    fixed = (
        DISCRIMINATOR_BYTES
        + PRINCIPAL_BYTES  # owner
        + PRINCIPAL_BYTES  # beneficiary
        + LEN_PREFIX_BYTES + MAX_NAME_BYTES
        + LEN_PREFIX_BYTES + MAX_ADMINS * PRINCIPAL_BYTES
        + U64_BYTES * 4  # price, game_counter, total_distributed, admission_seq
        + 1  # max_top_scores
        + 1  # reserved
        + 1  # fee remainder policy
    )
    return fixed + LEN_PREFIX_BYTES + int(max_top_scores) * SCORE_ENTRY_BYTES


def minimum_balance(data_len: int) -> int:
    """Reserve floor below which an account of `data_len` bytes could be reclaimed."""
    return (ACCOUNT_STORAGE_OVERHEAD + int(data_len)) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS
