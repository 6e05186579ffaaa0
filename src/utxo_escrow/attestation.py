"""Off-chain reward attestations.

The canonical message is the only thing signed, and signer and verifier build
it with the same function::

    reward:<claimant>:<amount_sats>:<context>

UTF-8 encoded, hashed with SHA-256 and signed with ECDSA (DER, low-S).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .address import decode_address
from .config import ATTESTATION_DELIMITER, ATTESTATION_TAG
from .crypto.hash_algorithms import sha256
from .crypto.keys import verify_digest
from .custody import unseal
from .errors import MalformedInputError
from .networks import NetworkParams
from .types import RewardAttestation, SealedSecret

logger = logging.getLogger(__name__)


def _check_amount(amount_sats: int) -> int:
    if isinstance(amount_sats, bool) or not isinstance(amount_sats, int) or amount_sats < 0:
        raise MalformedInputError("amount_sats must be a non-negative integer", amount_sats=amount_sats)
    return amount_sats


def build_message(claimant: str, amount_sats: int, context: str) -> str:
    if ATTESTATION_DELIMITER in claimant:
        raise MalformedInputError("claimant must not contain the message delimiter", claimant=claimant)
    return ATTESTATION_DELIMITER.join([ATTESTATION_TAG, claimant, str(_check_amount(amount_sats)), context])


def message_digest(message: str) -> bytes:
    return sha256(message.encode("utf-8"))


class AttestationSigner:
    """Signs attestations with a sealed operator key.

    The key is unsealed for each signature and wiped straight after.
    """

    def __init__(self, sealed_key: SealedSecret, encryption_key: bytes, network: NetworkParams):
        self._sealed_key = sealed_key
        self._encryption_key = encryption_key
        self.network = network

    def public_key(self) -> bytes:
        with unseal(self._sealed_key, self._encryption_key) as key:
            return key.public_key

    def sign(self, claimant: str, amount_sats: int, context: str) -> RewardAttestation:
        decode_address(claimant, self.network)
        message = build_message(claimant, amount_sats, context)
        with unseal(self._sealed_key, self._encryption_key) as key:
            signature = key.sign_digest(message_digest(message))
        logger.info("attested %d sats to %s", amount_sats, claimant)
        return RewardAttestation(claimant=claimant, amount_sats=amount_sats, message=message, signature=signature)


def verify(attestation: RewardAttestation, signer_pubkey: bytes) -> bool:
    """True only if the visible fields reproduce the message and the signature holds."""
    try:
        prefix = build_message(attestation.claimant, attestation.amount_sats, "")
        if not isinstance(attestation.message, str) or not attestation.message.startswith(prefix):
            return False
        context = attestation.message[len(prefix):]
        expected = build_message(attestation.claimant, attestation.amount_sats, context)
        if expected != attestation.message:
            return False
        return verify_digest(signer_pubkey, message_digest(expected), attestation.signature)
    except (MalformedInputError, TypeError, ValueError, AttributeError):
        return False


# --- Wire format ---


def attestation_to_json(attestation: RewardAttestation) -> dict[str, Any]:
    return {
        "claimant": attestation.claimant,
        "amountSats": attestation.amount_sats,
        "message": attestation.message,
        "signature": attestation.signature.hex(),
    }


def attestation_from_json(data: Mapping[str, Any]) -> RewardAttestation:
    if not isinstance(data, Mapping):
        raise MalformedInputError("attestation must be an object")
    missing = [name for name in ("claimant", "amountSats", "message", "signature") if name not in data]
    if missing:
        raise MalformedInputError(f"attestation is missing {', '.join(missing)}", missing=missing)
    if not isinstance(data["claimant"], str) or not isinstance(data["message"], str):
        raise MalformedInputError("attestation claimant and message must be strings")
    try:
        signature = bytes.fromhex(data["signature"])
    except (TypeError, ValueError) as exc:
        raise MalformedInputError("attestation signature is not hex") from exc
    return RewardAttestation(
        claimant=data["claimant"],
        amount_sats=_check_amount(data["amountSats"]),
        message=data["message"],
        signature=signature,
    )
