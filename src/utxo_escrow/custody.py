"""Key custody: escrow wallet generation and sealed private keys.

Private keys are sealed with AES-256-GCM under a caller-supplied 256-bit key.
The encryption key is never stored here; its lifecycle belongs to the caller.
Unsealing yields a :class:`~utxo_escrow.crypto.keys.ScopedKey` whose buffer is
wiped when its ``with`` block exits.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Mapping

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .address import p2pkh_address
from .config import ENCRYPTION_KEY_SIZE, PRIVATE_KEY_SIZE, SEALED_IV_SIZE, SEALED_TAG_SIZE
from .crypto.keys import ScopedKey, decode_wif, generate_secret, public_key_from_secret, wipe
from .errors import DecryptionError, MalformedInputError
from .networks import NetworkParams
from .types import EscrowWallet, SealedSecret

logger = logging.getLogger(__name__)

_SEALED_FIELDS = ("ciphertext", "iv", "authTag")


def generate_encryption_key() -> bytes:
    """Fresh 256-bit key for sealing escrow wallets (operator secret)."""
    return secrets.token_bytes(ENCRYPTION_KEY_SIZE)


def _check_encryption_key(encryption_key: bytes) -> bytes:
    if not isinstance(encryption_key, (bytes, bytearray)) or len(encryption_key) != ENCRYPTION_KEY_SIZE:
        raise MalformedInputError(
            f"encryption key must be {ENCRYPTION_KEY_SIZE} bytes",
            length=len(encryption_key) if isinstance(encryption_key, (bytes, bytearray)) else None,
        )
    return bytes(encryption_key)


def seal(plaintext: bytes | bytearray, encryption_key: bytes) -> SealedSecret:
    key = _check_encryption_key(encryption_key)
    iv = secrets.token_bytes(SEALED_IV_SIZE)
    sealed = AESGCM(key).encrypt(iv, bytes(plaintext), None)
    return SealedSecret(
        ciphertext=sealed[:-SEALED_TAG_SIZE],
        iv=iv,
        auth_tag=sealed[-SEALED_TAG_SIZE:],
    )


def open_sealed(sealed: SealedSecret, encryption_key: bytes) -> bytearray:
    """Decrypt ``sealed``; raises DecryptionError unless the tag verifies."""
    key = _check_encryption_key(encryption_key)
    if len(sealed.iv) != SEALED_IV_SIZE or len(sealed.auth_tag) != SEALED_TAG_SIZE:
        raise MalformedInputError(
            "sealed secret has a malformed iv or auth tag",
            iv_length=len(sealed.iv),
            tag_length=len(sealed.auth_tag),
        )
    try:
        plaintext = AESGCM(key).decrypt(sealed.iv, sealed.ciphertext + sealed.auth_tag, None)
    except InvalidTag as exc:
        raise DecryptionError("sealed key failed authentication (wrong key or tampered data)") from exc
    return bytearray(plaintext)


def unseal(sealed: SealedSecret, encryption_key: bytes) -> ScopedKey:
    """Decrypt a sealed private key into a scoped, self-wiping buffer."""
    secret = open_sealed(sealed, encryption_key)
    if len(secret) != PRIVATE_KEY_SIZE:
        wipe(secret)
        raise DecryptionError("sealed payload is not a 32 byte private key", length=len(secret))
    return ScopedKey(secret)


def _wallet_from_secret(secret: bytearray, network: NetworkParams, encryption_key: bytes) -> EscrowWallet:
    try:
        public_key = public_key_from_secret(secret)
        sealed = seal(secret, encryption_key)
    finally:
        wipe(secret)
    return EscrowWallet(
        address=p2pkh_address(public_key, network),
        sealed_key=sealed,
        network=network,
        public_key=public_key,
    )


def generate(network: NetworkParams, encryption_key: bytes) -> EscrowWallet:
    """Create a fresh escrow keypair and return its address and sealed key."""
    _check_encryption_key(encryption_key)
    wallet = _wallet_from_secret(generate_secret(), network, encryption_key)
    logger.info("escrow wallet created on %s: %s", network.name, wallet.address)
    return wallet


def import_wif(wif: str, network: NetworkParams, encryption_key: bytes) -> EscrowWallet:
    """Seal an existing operator key given in WIF form."""
    _check_encryption_key(encryption_key)
    secret, compressed = decode_wif(wif, network)
    if not compressed:
        wipe(secret)
        raise MalformedInputError("only compressed-key WIFs are supported")
    return _wallet_from_secret(secret, network, encryption_key)


def wallet_controls(wallet: EscrowWallet, key: ScopedKey) -> bool:
    return key.public_key == wallet.public_key and p2pkh_address(key.public_key, wallet.network) == wallet.address


# --- Wire format ---


def sealed_to_json(sealed: SealedSecret) -> dict[str, str]:
    return {
        "ciphertext": sealed.ciphertext.hex(),
        "iv": sealed.iv.hex(),
        "authTag": sealed.auth_tag.hex(),
    }


def sealed_from_json(data: Mapping[str, Any]) -> SealedSecret:
    if not isinstance(data, Mapping):
        raise MalformedInputError("sealed key must be an object")
    missing = [name for name in _SEALED_FIELDS if name not in data]
    if missing:
        raise MalformedInputError(f"sealed key is missing {', '.join(missing)}", missing=missing)
    decoded = {}
    for name in _SEALED_FIELDS:
        value = data[name]
        if not isinstance(value, str):
            raise MalformedInputError(f"sealed key field {name} must be a hex string", field=name)
        try:
            decoded[name] = bytes.fromhex(value)
        except ValueError as exc:
            raise MalformedInputError(f"sealed key field {name} is not hex", field=name) from exc
    if len(decoded["iv"]) != SEALED_IV_SIZE:
        raise MalformedInputError("sealed key iv must be 16 bytes", field="iv")
    if len(decoded["authTag"]) != SEALED_TAG_SIZE:
        raise MalformedInputError("sealed key authTag must be 16 bytes", field="authTag")
    return SealedSecret(ciphertext=decoded["ciphertext"], iv=decoded["iv"], auth_tag=decoded["authTag"])
