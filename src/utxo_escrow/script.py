"""Spending-condition scripts and their addresses.

Every builder is a pure function of its inputs: the same keys, threshold and
lock height always give the same script bytes and the same address, so any
party holding only the public keys can re-derive and check an escrow address.

TimeLocked layout::

    OP_IF
        <primary_pubkey> OP_CHECKSIG
    OP_ELSE
        <lock_height> OP_CHECKLOCKTIMEVERIFY OP_DROP
        <m> <pubkey_1> ... <pubkey_n> <n> OP_CHECKMULTISIG
    OP_ENDIF
"""

from __future__ import annotations

from typing import Sequence

from .address import p2pkh_address, p2pkh_script, p2sh_address, p2sh_script
from .config import LOCKTIME_THRESHOLD, MAX_MULTISIG_KEYS, MAX_SCRIPT_ELEMENT_SIZE
from .crypto.hash_algorithms import hash160
from .crypto.keys import validate_public_key
from .encoding import (
    OP_CHECKLOCKTIMEVERIFY,
    OP_CHECKMULTISIG,
    OP_CHECKSIG,
    OP_DROP,
    OP_ELSE,
    OP_ENDIF,
    OP_IF,
    push_data,
    push_int,
    small_int_opcode,
)
from .errors import InvalidLockTimeError, InvalidThresholdError, MalformedInputError
from .networks import NetworkParams
from .types import CompiledCondition, MultiSig, SingleKey, SpendingCondition, TimeLocked


def _check_pubkeys(pubkeys: Sequence[bytes]) -> tuple[bytes, ...]:
    keys = tuple(validate_public_key(pk) for pk in pubkeys)
    if len(set(keys)) != len(keys):
        raise MalformedInputError("duplicate public key in multisig set")
    return keys


def _check_threshold(m: int, n: int) -> None:
    if not (isinstance(m, int) and 1 <= m <= n <= MAX_MULTISIG_KEYS):
        raise InvalidThresholdError(
            f"threshold must satisfy 1 <= m <= n <= {MAX_MULTISIG_KEYS}, got m={m}, n={n}", m=m, n=n
        )


def _check_lock_height(lock_height: int) -> None:
    if isinstance(lock_height, bool) or not isinstance(lock_height, int):
        raise InvalidLockTimeError("lock height must be an integer", lock_height=lock_height)
    if lock_height <= 0:
        raise InvalidLockTimeError("lock height must be positive", lock_height=lock_height)
    if lock_height >= LOCKTIME_THRESHOLD:
        raise InvalidLockTimeError(
            f"lock height must be a block height below {LOCKTIME_THRESHOLD}", lock_height=lock_height
        )


def _check_redeem_size(script: bytes) -> bytes:
    if len(script) > MAX_SCRIPT_ELEMENT_SIZE:
        raise MalformedInputError(
            f"redeem script is {len(script)} bytes, above the {MAX_SCRIPT_ELEMENT_SIZE} byte P2SH limit",
            size=len(script),
        )
    return script


def multisig_script(m: int, pubkeys: Sequence[bytes]) -> bytes:
    _check_threshold(m, len(pubkeys))
    keys = _check_pubkeys(pubkeys)
    script = bytearray([small_int_opcode(m)])
    for pk in keys:
        script += push_data(pk)
    script += bytes([small_int_opcode(len(keys)), OP_CHECKMULTISIG])
    return bytes(script)


def time_locked_script(primary_pubkey: bytes, lock_height: int, fallback: MultiSig) -> bytes:
    _check_lock_height(lock_height)
    primary = validate_public_key(primary_pubkey)
    script = bytearray([OP_IF])
    script += push_data(primary)
    script += bytes([OP_CHECKSIG, OP_ELSE])
    script += push_int(lock_height)
    script += bytes([OP_CHECKLOCKTIMEVERIFY, OP_DROP])
    script += multisig_script(fallback.m, fallback.pubkeys)
    script += bytes([OP_ENDIF])
    return bytes(script)


# --- Public builders ---


def single_key(pubkey: bytes, network: NetworkParams) -> tuple[str, bytes]:
    """P2PKH address and output script for one key."""
    pk = validate_public_key(pubkey)
    return p2pkh_address(pk, network), p2pkh_script(hash160(pk))


def multisig(m: int, pubkeys: Sequence[bytes], network: NetworkParams) -> tuple[str, bytes]:
    """P2SH address and redeem script for an m-of-n multisig, keys in the given order."""
    redeem = _check_redeem_size(multisig_script(m, pubkeys))
    return p2sh_address(redeem, network), redeem


def time_locked(
    primary_pubkey: bytes, lock_height: int, fallback: MultiSig, network: NetworkParams
) -> tuple[str, bytes]:
    """P2SH address and redeem script for primary-key-or-timelocked-multisig."""
    redeem = _check_redeem_size(time_locked_script(primary_pubkey, lock_height, fallback))
    return p2sh_address(redeem, network), redeem


def compile_condition(condition: SpendingCondition, network: NetworkParams) -> CompiledCondition:
    if isinstance(condition, SingleKey):
        address, script_pubkey = single_key(condition.pubkey, network)
        return CompiledCondition(address=address, script_pubkey=script_pubkey)
    if isinstance(condition, MultiSig):
        address, redeem = multisig(condition.m, condition.pubkeys, network)
    elif isinstance(condition, TimeLocked):
        address, redeem = time_locked(condition.primary_pubkey, condition.lock_height, condition.fallback, network)
    else:
        raise MalformedInputError(f"unsupported spending condition: {type(condition).__name__}")
    return CompiledCondition(address=address, script_pubkey=p2sh_script(hash160(redeem)), redeem_script=redeem)


def condition_pubkeys(condition: SpendingCondition) -> tuple[bytes, ...]:
    if isinstance(condition, SingleKey):
        return (condition.pubkey,)
    if isinstance(condition, MultiSig):
        return tuple(condition.pubkeys)
    return (condition.primary_pubkey,) + tuple(condition.fallback.pubkeys)
