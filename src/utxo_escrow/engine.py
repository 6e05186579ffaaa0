"""Escrow orchestration: wallet creation, deposit checks, settlement and refund.

The engine ties custody, scripts, deposit tracking, the state machine and the
payout builder together for one network. It holds no plaintext keys; the
escrow key is unsealed only inside :meth:`Escrow.settle`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

from .config import EngineConfig
from .crypto.hash_algorithms import escrow_id as compute_escrow_id
from .crypto.keys import Signer, validate_public_key
from .custody import generate, sealed_from_json, sealed_to_json, unseal
from .deposits import check_deposit
from .errors import BroadcastError, DecryptionError, MalformedInputError, ProviderUnavailableError
from .networks import NetworkParams, get_network
from .providers import Broadcaster, FeeRateOracle, UtxoProvider
from .script import compile_condition
from .state_transition import EscrowStateMachine
from .tx.payout import build_payout
from .types import (
    DepositStatus,
    EscrowEvent,
    EscrowState,
    EscrowWallet,
    MultiSig,
    PartyContribution,
    SealedSecret,
    SignedTransaction,
    SingleKey,
    SpendingCondition,
    SpendPath,
    TimeLocked,
)

logger = logging.getLogger(__name__)


# --- Condition wire format ---


def condition_to_json(condition: SpendingCondition) -> dict[str, Any]:
    if isinstance(condition, SingleKey):
        return {"type": "single_key", "pubkey": condition.pubkey.hex()}
    if isinstance(condition, MultiSig):
        return {"type": "multisig", "m": condition.m, "pubkeys": [pk.hex() for pk in condition.pubkeys]}
    return {
        "type": "timelocked",
        "primaryPubkey": condition.primary_pubkey.hex(),
        "lockHeight": condition.lock_height,
        "fallback": condition_to_json(condition.fallback),
    }


def condition_from_json(data: Mapping[str, Any]) -> SpendingCondition:
    try:
        kind = data["type"]
        if kind == "single_key":
            return SingleKey(bytes.fromhex(data["pubkey"]))
        if kind == "multisig":
            return MultiSig(int(data["m"]), tuple(bytes.fromhex(pk) for pk in data["pubkeys"]))
        if kind == "timelocked":
            fallback = condition_from_json(data["fallback"])
            if not isinstance(fallback, MultiSig):
                raise MalformedInputError("time-locked fallback must be a multisig condition")
            return TimeLocked(bytes.fromhex(data["primaryPubkey"]), int(data["lockHeight"]), fallback)
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedInputError(f"malformed spending condition: {exc}") from exc
    raise MalformedInputError(f"unknown spending condition type {kind!r}")


# --- Persistence ---


@dataclass
class EscrowRecord:
    """Everything needed to resume an escrow; safe to store (key stays sealed)."""

    escrow_id: str
    network: str
    address: str
    public_key: bytes
    condition: SpendingCondition
    sealed_key: SealedSecret
    contributions: list[PartyContribution] = field(default_factory=list)
    state: EscrowState = EscrowState.CREATED
    settlement_txid: Optional[str] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "escrowId": self.escrow_id,
            "network": self.network,
            "address": self.address,
            "publicKey": self.public_key.hex(),
            "condition": condition_to_json(self.condition),
            "sealedKey": sealed_to_json(self.sealed_key),
            "contributions": [{"party": c.party, "expectedSats": c.expected_sats} for c in self.contributions],
            "state": self.state.value,
            "settlementTxid": self.settlement_txid,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "EscrowRecord":
        try:
            return cls(
                escrow_id=data["escrowId"],
                network=data["network"],
                address=data["address"],
                public_key=bytes.fromhex(data["publicKey"]),
                condition=condition_from_json(data["condition"]),
                sealed_key=sealed_from_json(data["sealedKey"]),
                contributions=[
                    PartyContribution(c["party"], int(c["expectedSats"])) for c in data.get("contributions", [])
                ],
                state=EscrowState(data["state"]),
                settlement_txid=data.get("settlementTxid"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedInputError(f"malformed escrow record: {exc}") from exc

    def dumps(self) -> str:
        return json.dumps(self.to_json(), sort_keys=True)

    @classmethod
    def loads(cls, text: str) -> "EscrowRecord":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedInputError("escrow record is not valid JSON") from exc
        return cls.from_json(data)


# --- Engine ---


def _decimal_rate(value: Any) -> Decimal:
    # Floats go through str() so 1.1 is one and a tenth, as in compute_fee.
    try:
        rate = Decimal(str(value))
    except InvalidOperation as exc:
        raise MalformedInputError(f"fee rate is not a number: {value!r}") from exc
    if not rate.is_finite() or rate <= 0:
        raise MalformedInputError("fee rate must be positive", fee_rate=str(value))
    return rate


class EscrowEngine:
    def __init__(
        self,
        network: NetworkParams,
        encryption_key: bytes,
        provider: UtxoProvider,
        broadcaster: Broadcaster,
        *,
        fee_oracle: Optional[FeeRateOracle] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.network = network
        self.provider = provider
        self.broadcaster = broadcaster
        self.fee_oracle = fee_oracle
        self.config = config or EngineConfig(network=network.name)
        self._encryption_key = encryption_key

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        encryption_key: bytes,
        provider: UtxoProvider,
        broadcaster: Broadcaster,
        fee_oracle: Optional[FeeRateOracle] = None,
    ) -> "EscrowEngine":
        return cls(
            get_network(config.network),
            encryption_key,
            provider,
            broadcaster,
            fee_oracle=fee_oracle,
            config=config,
        )

    def _open(
        self,
        wallet: EscrowWallet,
        condition: SpendingCondition,
        contributions: Sequence[PartyContribution],
    ) -> "Escrow":
        compiled = compile_condition(condition, self.network)
        record = EscrowRecord(
            escrow_id=compute_escrow_id(self.network.name, compiled.address),
            network=self.network.name,
            address=compiled.address,
            public_key=wallet.public_key,
            condition=condition,
            sealed_key=wallet.sealed_key,
            contributions=list(contributions),
        )
        escrow = Escrow(self, record)
        escrow.machine.mark_wallet_generated()
        logger.info("opened escrow %s at %s", record.escrow_id, record.address)
        return escrow

    def open_single_key(self, contributions: Sequence[PartyContribution]) -> "Escrow":
        wallet = generate(self.network, self._encryption_key)
        return self._open(wallet, SingleKey(wallet.public_key), contributions)

    def open_multisig(
        self,
        cosigner_pubkeys: Sequence[bytes],
        contributions: Sequence[PartyContribution],
        m: int = 2,
    ) -> "Escrow":
        """m-of-n escrow over the given co-signers plus a fresh server key (listed last)."""
        cosigners = tuple(validate_public_key(pk) for pk in cosigner_pubkeys)
        wallet = generate(self.network, self._encryption_key)
        return self._open(wallet, MultiSig(m, cosigners + (wallet.public_key,)), contributions)

    def open_timelocked(
        self,
        fallback_pubkeys: Sequence[bytes],
        lock_height: int,
        contributions: Sequence[PartyContribution],
        m: Optional[int] = None,
    ) -> "Escrow":
        """Server key settles at any time; after ``lock_height`` the players can refund themselves."""
        keys = tuple(validate_public_key(pk) for pk in fallback_pubkeys)
        fallback = MultiSig(len(keys) if m is None else m, keys)
        wallet = generate(self.network, self._encryption_key)
        return self._open(wallet, TimeLocked(wallet.public_key, lock_height, fallback), contributions)

    def load(self, record: EscrowRecord) -> "Escrow":
        if record.network != self.network.name:
            raise MalformedInputError(
                f"record belongs to {record.network}, engine runs {self.network.name}",
                escrow_id=record.escrow_id,
            )
        return Escrow(self, record)

    def resolve_fee_rate(self, fee_rate: Optional[Decimal] = None) -> Decimal:
        if fee_rate is not None:
            return _decimal_rate(fee_rate)
        if self.fee_oracle is not None:
            try:
                quoted = self.fee_oracle.fee_rate()
            except Exception as exc:
                raise ProviderUnavailableError("fee rate oracle failed") from exc
            return _decimal_rate(quoted)
        return self.config.fee_rate


class Escrow:
    def __init__(self, engine: EscrowEngine, record: EscrowRecord):
        self.engine = engine
        self.record = record
        self.machine = EscrowStateMachine(
            record.escrow_id,
            refundable=isinstance(record.condition, TimeLocked),
            state=record.state,
        )

    @property
    def escrow_id(self) -> str:
        return self.record.escrow_id

    @property
    def address(self) -> str:
        return self.record.address

    @property
    def condition(self) -> SpendingCondition:
        return self.record.condition

    @property
    def state(self) -> EscrowState:
        return self.machine.state

    def to_record(self) -> EscrowRecord:
        self.record.state = self.machine.state
        return self.record

    def check_deposits(self) -> DepositStatus:
        """Check the escrow address and move to FUNDED once every party is covered."""
        status = check_deposit(
            self.engine.provider,
            self.address,
            self.record.contributions,
            min_confirmations=self.engine.config.min_confirmations,
        )
        if status.fully_funded and self.machine.state is EscrowState.AWAITING_DEPOSITS:
            self.machine.mark_funded()
        return status

    def _utxos(self):
        try:
            return self.engine.provider.get_utxos(self.address)
        except Exception as exc:
            raise ProviderUnavailableError(f"utxo provider failed for {self.address}", address=self.address) from exc

    def _broadcast(self, tx: SignedTransaction) -> str:
        try:
            remote_txid = self.engine.broadcaster.broadcast(tx.raw_hex)
        except Exception as exc:
            logger.warning("broadcast of %s failed: %s", tx.txid, exc)
            raise BroadcastError(f"broadcast of {tx.txid} failed", txid=tx.txid, escrow_id=self.escrow_id) from exc
        if remote_txid and remote_txid != tx.txid:
            logger.warning("broadcaster reported txid %s, local txid is %s", remote_txid, tx.txid)
        return tx.txid

    def settle(
        self,
        recipient: str,
        *,
        cosigners: Sequence[Signer] = (),
        fee_rate: Optional[Decimal] = None,
        amount_sats: Optional[int] = None,
        memo: Optional[bytes | str] = None,
    ) -> SignedTransaction:
        """Pay the pot to ``recipient`` and mark the escrow SETTLED.

        The escrow key always signs; multisig escrows also need ``cosigners``
        to reach the threshold.
        """
        self.machine.require(EscrowEvent.SETTLEMENT_BROADCAST)
        rate = self.engine.resolve_fee_rate(fee_rate)
        utxos = self._utxos()
        with unseal(self.record.sealed_key, self.engine._encryption_key) as key:
            if key.public_key != self.record.public_key:
                raise DecryptionError("unsealed key does not control this escrow", escrow_id=self.escrow_id)
            tx = build_payout(
                utxos,
                self.condition,
                recipient,
                rate,
                network=self.engine.network,
                signers=[key, *cosigners],
                spend_path=SpendPath.PRIMARY,
                amount_sats=amount_sats,
                memo=memo,
            )
        txid = self._broadcast(tx)
        self.machine.mark_settled(txid)
        self.record.settlement_txid = txid
        self.record.state = self.machine.state
        return tx

    def refund(
        self,
        recipient: str,
        signers: Sequence[Signer],
        *,
        fee_rate: Optional[Decimal] = None,
    ) -> SignedTransaction:
        """Spend through the time-locked fallback branch and mark the escrow REFUNDED.

        Valid on chain only once the lock height is reached; the chain enforces that.
        """
        self.machine.require(EscrowEvent.REFUND_BROADCAST)
        rate = self.engine.resolve_fee_rate(fee_rate)
        tx = build_payout(
            self._utxos(),
            self.condition,
            recipient,
            rate,
            network=self.engine.network,
            signers=signers,
            spend_path=SpendPath.FALLBACK,
        )
        txid = self._broadcast(tx)
        self.machine.mark_refunded(txid)
        self.record.settlement_txid = txid
        self.record.state = self.machine.state
        return tx
