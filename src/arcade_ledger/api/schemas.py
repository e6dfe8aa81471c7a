from __future__ import annotations

"""Pydantic request/response schemas for the public API.

These exist for HTTP input validation and a stable response shape. Payload
semantics are enforced by the ledger, not here.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="e.g. ARCADE_PLAY")
    signer: str = Field(..., min_length=1, description="Hex Ed25519 public key of the caller")
    nonce: int = Field(..., ge=1, description="Signer's stored nonce + 1")
    payload: Dict[str, Any] = Field(default_factory=dict)
    sig: str = Field(default="", description="Hex or base64 Ed25519 signature")


class TxSubmitResponse(BaseModel):
    ok: bool = True
    tx_id: str
    seq: int
    result: Dict[str, Any] = Field(default_factory=dict)
    events: List[Dict[str, Any]] = Field(default_factory=list)


class ScoreEntryOut(BaseModel):
    player: str
    nickname: str
    score: int
    seq: int = 0


class TopScoresResponse(BaseModel):
    ok: bool = True
    arcade: str
    max_top_scores: int
    top_scores: List[ScoreEntryOut]


class CounterResponse(BaseModel):
    ok: bool = True
    arcade: str
    value: int


class AccountResponse(BaseModel):
    ok: bool = True
    account: str
    balance: int
    nonce: int
    arcade: Optional[str] = Field(default=None, description="Set when the account is an arcade escrow")
