"""Core types for the escrow engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .networks import NetworkParams


# --- Chain data ---


@dataclass(frozen=True)
class Utxo:
    txid: str
    vout: int
    value_sats: int
    script_pubkey: Optional[bytes] = None
    confirmations: Optional[int] = None

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)


@dataclass
class TxIn:
    prev_txid: str
    prev_vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF


@dataclass
class TxOut:
    value: int
    script_pubkey: bytes


@dataclass
class Transaction:
    version: int
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)
    locktime: int = 0


# --- Custody ---


@dataclass(frozen=True)
class SealedSecret:
    ciphertext: bytes
    iv: bytes
    auth_tag: bytes

    def __repr__(self) -> str:
        return f"SealedSecret(ciphertext=<{len(self.ciphertext)} bytes>, iv={self.iv.hex()})"


@dataclass(frozen=True)
class EscrowWallet:
    address: str
    sealed_key: SealedSecret
    network: NetworkParams
    public_key: bytes


# --- Spending conditions ---


@dataclass(frozen=True)
class SingleKey:
    pubkey: bytes


@dataclass(frozen=True)
class MultiSig:
    m: int
    pubkeys: tuple[bytes, ...]

    @property
    def n(self) -> int:
        return len(self.pubkeys)


@dataclass(frozen=True)
class TimeLocked:
    primary_pubkey: bytes
    lock_height: int
    fallback: MultiSig


SpendingCondition = Union[SingleKey, MultiSig, TimeLocked]


class SpendPath(Enum):
    """Branch of a TimeLocked script used to spend it."""

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class CompiledCondition:
    address: str
    script_pubkey: bytes
    redeem_script: Optional[bytes] = None

    @property
    def is_p2sh(self) -> bool:
        return self.redeem_script is not None


# --- Escrow lifecycle ---


class EscrowState(Enum):
    CREATED = "created"
    AWAITING_DEPOSITS = "awaiting_deposits"
    FUNDED = "funded"
    SETTLED = "settled"
    REFUNDED = "refunded"

    @property
    def is_terminal(self) -> bool:
        return self in (EscrowState.SETTLED, EscrowState.REFUNDED)


class EscrowEvent(Enum):
    WALLET_GENERATED = "wallet_generated"
    DEPOSITS_SATISFIED = "deposits_satisfied"
    SETTLEMENT_BROADCAST = "settlement_broadcast"
    REFUND_BROADCAST = "refund_broadcast"


@dataclass(frozen=True)
class PartyContribution:
    party: str
    expected_sats: int


@dataclass(frozen=True)
class PartyDeposit:
    party: str
    expected_sats: int
    cumulative_threshold: int
    satisfied: bool


@dataclass(frozen=True)
class DepositStatus:
    address: str
    total_sats: int
    parties: tuple[PartyDeposit, ...]
    utxo_count: int = 0
    pending_sats: int = 0

    @property
    def fully_funded(self) -> bool:
        return bool(self.parties) and all(p.satisfied for p in self.parties)

    @property
    def excess_sats(self) -> int:
        if not self.parties:
            return self.total_sats
        return max(0, self.total_sats - self.parties[-1].cumulative_threshold)


# --- Payout ---


@dataclass(frozen=True)
class SignedTransaction:
    txid: str
    raw_hex: str
    fee_sats: int
    payout_sats: int
    change_sats: int
    total_input_sats: int
    vsize: int
    inputs: tuple[tuple[str, int], ...] = ()


# --- Attestations ---


@dataclass(frozen=True)
class RewardAttestation:
    claimant: str
    amount_sats: int
    message: str
    signature: bytes
