"""Legacy SIGHASH_ALL signing and scriptSig assembly.

Signers are opaque: anything with ``public_key`` and ``sign_digest`` works, so
co-signer keys can live in other processes or devices. Every signature handed
back is checked against its key before it is placed in a transaction.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from ..config import SIGHASH_ALL
from ..crypto.hash_algorithms import hash256
from ..crypto.keys import Signer, verify_digest
from ..encoding import OP_0, OP_FALSE, OP_TRUE, encode_transaction, push_data
from ..errors import InsufficientSignersError, InvalidSignatureError, MalformedInputError
from ..types import CompiledCondition, MultiSig, SingleKey, SpendingCondition, SpendPath, TimeLocked, Transaction

logger = logging.getLogger(__name__)


def legacy_sighash(tx: Transaction, index: int, script_code: bytes, sighash_type: int = SIGHASH_ALL) -> bytes:
    """Digest input ``index`` signs: every scriptSig blanked except its own script code."""
    if not 0 <= index < len(tx.inputs):
        raise MalformedInputError("input index out of range", index=index, inputs=len(tx.inputs))
    inputs = [
        replace(txin, script_sig=script_code if i == index else b"")
        for i, txin in enumerate(tx.inputs)
    ]
    preimage = encode_transaction(replace(tx, inputs=inputs)) + sighash_type.to_bytes(4, "little")
    return hash256(preimage)


def _signature(signer: Signer, digest: bytes, sighash_type: int) -> bytes:
    der = bytes(signer.sign_digest(digest))
    if not verify_digest(signer.public_key, digest, der):
        raise InvalidSignatureError(
            "signer returned a signature that does not verify", pubkey=signer.public_key.hex()
        )
    return der + bytes([sighash_type])


def _by_pubkey(signers: Sequence[Signer], allowed: Sequence[bytes]) -> dict[bytes, Signer]:
    known = set(allowed)
    out: dict[bytes, Signer] = {}
    for signer in signers:
        pubkey = bytes(signer.public_key)
        if pubkey not in known:
            raise MalformedInputError(
                "signer key is not part of the spending condition", pubkey=pubkey.hex()
            )
        out.setdefault(pubkey, signer)
    return out


def select_signers(pubkeys: Sequence[bytes], m: int, signers: Sequence[Signer]) -> list[Signer]:
    """Pick ``m`` signers, ordered as their keys appear in the script.

    CHECKMULTISIG walks keys and signatures in step, so signatures out of key
    order fail on chain even when each one is valid.
    """
    available = _by_pubkey(signers, pubkeys)
    if len(available) < m:
        raise InsufficientSignersError(
            f"need {m} signatures, have {len(available)} usable signers",
            required=m,
            available=len(available),
        )
    return [available[pk] for pk in pubkeys if pk in available][:m]


def _single_signer(pubkey: bytes, signers: Sequence[Signer]) -> Signer:
    available = _by_pubkey(signers, [pubkey])
    if not available:
        raise InsufficientSignersError("no signer for the spending key", required=1, available=0)
    return available[pubkey]


def sign_transaction(
    tx: Transaction,
    condition: SpendingCondition,
    compiled: CompiledCondition,
    signers: Sequence[Signer],
    spend_path: SpendPath = SpendPath.PRIMARY,
    sighash_type: int = SIGHASH_ALL,
) -> Transaction:
    """Return ``tx`` with a scriptSig on every input (all inputs share ``condition``)."""
    script_code = compiled.redeem_script if compiled.is_p2sh else compiled.script_pubkey

    if isinstance(condition, SingleKey):
        chosen = [_single_signer(condition.pubkey, signers)]
    elif isinstance(condition, MultiSig):
        chosen = select_signers(condition.pubkeys, condition.m, signers)
    elif isinstance(condition, TimeLocked) and spend_path is SpendPath.PRIMARY:
        chosen = [_single_signer(condition.primary_pubkey, signers)]
    elif isinstance(condition, TimeLocked):
        chosen = select_signers(condition.fallback.pubkeys, condition.fallback.m, signers)
    else:
        raise MalformedInputError(f"unsupported spending condition: {type(condition).__name__}")

    signed_inputs = []
    for index, txin in enumerate(tx.inputs):
        digest = legacy_sighash(tx, index, script_code, sighash_type)
        sigs = [_signature(signer, digest, sighash_type) for signer in chosen]
        signed_inputs.append(replace(txin, script_sig=_script_sig(condition, compiled, spend_path, chosen, sigs)))
    logger.debug("signed %d inputs with %d signer(s)", len(signed_inputs), len(chosen))
    return replace(tx, inputs=signed_inputs)


def _script_sig(
    condition: SpendingCondition,
    compiled: CompiledCondition,
    spend_path: SpendPath,
    chosen: Sequence[Signer],
    sigs: Sequence[bytes],
) -> bytes:
    if isinstance(condition, SingleKey):
        return push_data(sigs[0]) + push_data(bytes(chosen[0].public_key))
    redeem = push_data(compiled.redeem_script)
    if isinstance(condition, MultiSig):
        return bytes([OP_0]) + b"".join(push_data(s) for s in sigs) + redeem
    if spend_path is SpendPath.PRIMARY:
        return push_data(sigs[0]) + bytes([OP_TRUE]) + redeem
    return bytes([OP_0]) + b"".join(push_data(s) for s in sigs) + bytes([OP_FALSE]) + redeem
