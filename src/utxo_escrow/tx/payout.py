"""Payout transaction construction.

Every supplied UTXO is spent, in ``(txid, vout)`` order; there is no coin
selection. Given the same UTXOs, condition, recipient and fee rate, any two
builds produce the same fee and, with RFC 6979 signing, the same raw bytes.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..address import output_script_for_address
from ..config import MAX_OP_RETURN_SIZE, SEQUENCE_FINAL, SEQUENCE_LOCKTIME_ENABLED, TX_VERSION
from ..crypto.hash_algorithms import txid as compute_txid
from ..crypto.keys import Signer
from ..deposits import dedupe_utxos
from ..encoding import encode_transaction
from ..errors import InsufficientFundsError, MalformedInputError
from ..networks import NetworkParams
from ..script import compile_condition
from ..types import (
    SignedTransaction,
    SpendingCondition,
    SpendPath,
    TimeLocked,
    Transaction,
    TxIn,
    TxOut,
    Utxo,
)
from .fees import compute_fee, data_script, estimate_vsize
from .signing import sign_transaction

logger = logging.getLogger(__name__)


def _resolve_spend_path(condition: SpendingCondition, spend_path: Optional[SpendPath]) -> SpendPath:
    if spend_path is None:
        return SpendPath.PRIMARY
    if spend_path is SpendPath.FALLBACK and not isinstance(condition, TimeLocked):
        raise MalformedInputError("only time-locked conditions have a fallback path")
    return spend_path


def _memo_bytes(memo: Optional[bytes | str]) -> Optional[bytes]:
    if memo is None:
        return None
    data = memo.encode("utf-8") if isinstance(memo, str) else bytes(memo)
    if len(data) > MAX_OP_RETURN_SIZE:
        raise MalformedInputError(
            f"memo is {len(data)} bytes, above the {MAX_OP_RETURN_SIZE} byte OP_RETURN limit", size=len(data)
        )
    return data


def _below_dust(label: str, value: int, dust: int, **context) -> InsufficientFundsError:
    return InsufficientFundsError(
        f"{label} of {value} sats is below the dust threshold of {dust} sats (short by {dust - value} sats)",
        shortfall_sats=dust - value,
        dust_threshold=dust,
        **context,
    )


def build_payout(
    utxos: Iterable[Utxo],
    condition: SpendingCondition,
    recipient: str,
    fee_rate: Decimal | int | str,
    *,
    network: NetworkParams,
    signers: Sequence[Signer],
    spend_path: Optional[SpendPath] = None,
    amount_sats: Optional[int] = None,
    change_address: Optional[str] = None,
    memo: Optional[bytes | str] = None,
    dust_threshold: Optional[int] = None,
) -> SignedTransaction:
    """Build and sign a transaction paying the escrowed funds to ``recipient``.

    Without ``amount_sats`` the whole pot less the fee goes to the recipient.
    With it, the recipient gets exactly ``amount_sats`` and the remainder less
    the fee returns to ``change_address`` (the escrow address by default).
    """
    # Addresses first: a bad recipient must fail before any crypto work.
    recipient_script = output_script_for_address(recipient, network)
    path = _resolve_spend_path(condition, spend_path)
    compiled = compile_condition(condition, network)
    change_script = None
    if amount_sats is not None:
        change_script = output_script_for_address(change_address or compiled.address, network)
    memo_data = _memo_bytes(memo)
    dust = network.dust_threshold if dust_threshold is None else dust_threshold

    inputs = dedupe_utxos(utxos)
    if not inputs:
        raise InsufficientFundsError("no utxos to spend", address=compiled.address)
    for utxo in inputs:
        if utxo.script_pubkey is not None and utxo.script_pubkey != compiled.script_pubkey:
            raise MalformedInputError(
                f"utxo {utxo.txid}:{utxo.vout} is not locked by the spending condition",
                outpoint=utxo.outpoint,
                address=compiled.address,
            )
    total = sum(u.value_sats for u in inputs)

    data_outputs = [data_script(memo_data)] if memo_data is not None else []
    if amount_sats is None:
        vsize = estimate_vsize(condition, len(inputs), [recipient_script] + data_outputs, path)
        fee = compute_fee(vsize, fee_rate)
        payout = total - fee
        if payout < dust:
            raise _below_dust("payout", payout, dust, total_input_sats=total, fee_sats=fee, recipient=recipient)
        change = 0
    else:
        if isinstance(amount_sats, bool) or not isinstance(amount_sats, int) or amount_sats <= 0:
            raise MalformedInputError("amount_sats must be a positive integer", amount_sats=amount_sats)
        if amount_sats < dust:
            raise _below_dust("payout", amount_sats, dust, recipient=recipient)
        vsize = estimate_vsize(condition, len(inputs), [recipient_script, change_script] + data_outputs, path)
        fee = compute_fee(vsize, fee_rate)
        payout = amount_sats
        change = total - payout - fee
        if change < 0:
            raise InsufficientFundsError(
                f"inputs of {total} sats cannot cover {payout} sats plus a {fee} sat fee (short by {-change} sats)",
                shortfall_sats=-change,
                total_input_sats=total,
                fee_sats=fee,
            )
        if change < dust:
            raise _below_dust("change", change, dust, total_input_sats=total, fee_sats=fee)

    fallback = path is SpendPath.FALLBACK
    sequence = SEQUENCE_LOCKTIME_ENABLED if fallback else SEQUENCE_FINAL
    outputs = [TxOut(payout, recipient_script)]
    if change_script is not None:
        outputs.append(TxOut(change, change_script))
    outputs.extend(TxOut(0, script) for script in data_outputs)
    unsigned = Transaction(
        version=TX_VERSION,
        inputs=[TxIn(u.txid, u.vout, b"", sequence) for u in inputs],
        outputs=outputs,
        locktime=condition.lock_height if fallback else 0,
    )

    signed = sign_transaction(unsigned, condition, compiled, signers, path)
    raw = encode_transaction(signed)
    result = SignedTransaction(
        txid=compute_txid(raw),
        raw_hex=raw.hex(),
        fee_sats=fee,
        payout_sats=payout,
        change_sats=change,
        total_input_sats=total,
        vsize=vsize,
        inputs=tuple(u.outpoint for u in inputs),
    )
    logger.info(
        "built payout %s: %d inputs, %d sats to %s, fee %d sats (%d vB), change %d sats",
        result.txid,
        len(inputs),
        payout,
        recipient,
        fee,
        vsize,
        change,
    )
    return result
