"""Virtual-size estimate and fee computation for payout transactions.

The size model is linear and deliberately an estimate: every signature is
charged a full 73-byte slot although DER signatures are often one or two bytes
shorter, so the fee errs high by a few satoshis rather than low.

    vsize = base + sum(input_cost) + sum(output_cost)

For a one-input, one-output P2PKH spend this is 10 + 148 + 34 = 192 vB.
"""

from __future__ import annotations

import math
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Sequence

from ..config import OUTPOINT_SIZE, OUTPUT_VALUE_SIZE, SEQUENCE_SIZE, SIGNATURE_SLOT_SIZE, TX_BASE_VSIZE
from ..encoding import OP_RETURN, encode_varint, push_data, pushed_size
from ..errors import MalformedInputError
from ..script import multisig_script, time_locked_script
from ..types import MultiSig, SingleKey, SpendingCondition, SpendPath, TimeLocked


def _input_size(script_sig_size: int) -> int:
    return OUTPOINT_SIZE + len(encode_varint(script_sig_size)) + script_sig_size + SEQUENCE_SIZE


def script_sig_size(condition: SpendingCondition, spend_path: Optional[SpendPath] = None) -> int:
    """Upper bound of the scriptSig that spends ``condition``."""
    if isinstance(condition, SingleKey):
        return SIGNATURE_SLOT_SIZE + pushed_size(len(condition.pubkey))
    if isinstance(condition, MultiSig):
        redeem = multisig_script(condition.m, condition.pubkeys)
        # OP_0 works around the CHECKMULTISIG extra-pop bug.
        return 1 + condition.m * SIGNATURE_SLOT_SIZE + pushed_size(len(redeem))
    if isinstance(condition, TimeLocked):
        redeem = time_locked_script(condition.primary_pubkey, condition.lock_height, condition.fallback)
        if (spend_path or SpendPath.PRIMARY) is SpendPath.PRIMARY:
            return SIGNATURE_SLOT_SIZE + 1 + pushed_size(len(redeem))
        return 1 + condition.fallback.m * SIGNATURE_SLOT_SIZE + 1 + pushed_size(len(redeem))
    raise MalformedInputError(f"unsupported spending condition: {type(condition).__name__}")


def input_vsize(condition: SpendingCondition, spend_path: Optional[SpendPath] = None) -> int:
    return _input_size(script_sig_size(condition, spend_path))


def output_vsize(script_pubkey: bytes) -> int:
    return OUTPUT_VALUE_SIZE + len(encode_varint(len(script_pubkey))) + len(script_pubkey)


def data_script(memo: bytes) -> bytes:
    return bytes([OP_RETURN]) + push_data(memo)


def estimate_vsize(
    condition: SpendingCondition,
    input_count: int,
    output_scripts: Sequence[bytes],
    spend_path: Optional[SpendPath] = None,
) -> int:
    if input_count < 1:
        raise MalformedInputError("a payout needs at least one input", input_count=input_count)
    return (
        TX_BASE_VSIZE
        + input_count * input_vsize(condition, spend_path)
        + sum(output_vsize(script) for script in output_scripts)
    )


def _as_fraction(fee_rate: Decimal | int | float | str) -> Fraction:
    try:
        rate = Fraction(str(fee_rate))
    except (ValueError, ZeroDivisionError) as exc:
        raise MalformedInputError(f"fee rate is not a number: {fee_rate!r}") from exc
    if rate <= 0:
        raise MalformedInputError("fee rate must be positive", fee_rate=str(fee_rate))
    return rate


def compute_fee(vsize: int, fee_rate: Decimal | int | float | str) -> int:
    """``ceil(vsize * fee_rate)`` in satoshis, computed exactly."""
    return math.ceil(vsize * _as_fraction(fee_rate))
