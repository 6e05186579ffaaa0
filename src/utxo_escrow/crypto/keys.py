"""secp256k1 keys, WIF encoding and scoped secret handling."""

from __future__ import annotations

from typing import Optional, Protocol

import base58
from coincurve import PrivateKey, PublicKey

from ..config import PRIVATE_KEY_SIZE
from ..errors import MalformedInputError
from ..networks import NetworkParams

DIGEST_SIZE = 32


class Signer(Protocol):
    """Anything that can produce a DER ECDSA signature over a 32-byte digest."""

    @property
    def public_key(self) -> bytes: ...

    def sign_digest(self, digest: bytes) -> bytes: ...


def generate_secret() -> bytearray:
    # coincurve draws from os.urandom and rejects out-of-range scalars.
    return bytearray(PrivateKey().secret)


def public_key_from_secret(secret: bytes | bytearray, compressed: bool = True) -> bytes:
    try:
        return PrivateKey(bytes(secret)).public_key.format(compressed=compressed)
    except ValueError as exc:
        raise MalformedInputError("private key is not a valid secp256k1 scalar") from exc


def validate_public_key(pubkey: bytes) -> bytes:
    """Return ``pubkey`` if it is a valid SEC1 encoded secp256k1 point."""
    if not isinstance(pubkey, (bytes, bytearray)) or len(pubkey) not in (33, 65):
        raise MalformedInputError("public key must be 33 or 65 bytes", pubkey=_hex_or_repr(pubkey))
    try:
        PublicKey(bytes(pubkey))
    except ValueError as exc:
        raise MalformedInputError("public key is not on secp256k1", pubkey=bytes(pubkey).hex()) from exc
    return bytes(pubkey)


def verify_digest(pubkey: bytes, digest: bytes, der_signature: bytes) -> bool:
    """Check a DER signature over a 32-byte digest; malformed input yields False."""
    if len(digest) != DIGEST_SIZE:
        return False
    try:
        return PublicKey(bytes(pubkey)).verify(bytes(der_signature), bytes(digest), hasher=None)
    except (ValueError, TypeError):
        return False


def _hex_or_repr(value: object) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return repr(value)


# --- WIF ---


def encode_wif(secret: bytes | bytearray, network: NetworkParams, compressed: bool = True) -> str:
    if len(secret) != PRIVATE_KEY_SIZE:
        raise MalformedInputError("private key must be 32 bytes")
    payload = bytes([network.wif]) + bytes(secret) + (b"\x01" if compressed else b"")
    return base58.b58encode_check(payload).decode("ascii")


def decode_wif(wif: str, network: NetworkParams) -> tuple[bytearray, bool]:
    """Return ``(secret, compressed)`` for a WIF string of ``network``."""
    try:
        raw = base58.b58decode_check(wif)
    except ValueError as exc:
        raise MalformedInputError("WIF is not valid Base58Check") from exc
    if raw[0] != network.wif:
        raise MalformedInputError(
            f"WIF version {raw[0]:#04x} does not match {network.name}", network=network.name
        )
    body = raw[1:]
    if len(body) == PRIVATE_KEY_SIZE + 1 and body[-1] == 0x01:
        return bytearray(body[:-1]), True
    if len(body) == PRIVATE_KEY_SIZE:
        return bytearray(body), False
    raise MalformedInputError("WIF payload has an unexpected length", length=len(body))


# --- Scoped secrets ---


class ScopedKey:
    """Plaintext private key held in a mutable buffer for one signing scope.

    Use as a context manager; the buffer is overwritten with zeros on every exit
    path. CPython may still hold transient copies inside libsecp256k1 objects,
    so this narrows the key's lifetime rather than guaranteeing erasure.
    """

    def __init__(self, secret: bytearray, compressed: bool = True):
        if len(secret) != PRIVATE_KEY_SIZE:
            wipe(secret)
            raise MalformedInputError("private key must be 32 bytes")
        self._secret: Optional[bytearray] = secret
        self._compressed = compressed
        try:
            self._public_key = public_key_from_secret(secret, compressed)
        except MalformedInputError:
            self.close()
            raise

    def __enter__(self) -> "ScopedKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"ScopedKey(public_key={self._public_key.hex()}, {state})"

    def __reduce__(self):
        raise TypeError("ScopedKey cannot be serialized")

    def __del__(self) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return getattr(self, "_secret", None) is None

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def compressed(self) -> bool:
        return self._compressed

    @property
    def secret(self) -> bytearray:
        if self._secret is None:
            raise ValueError("scoped key already closed")
        return self._secret

    def sign_digest(self, digest: bytes) -> bytes:
        """RFC 6979 deterministic, low-S DER signature over a 32-byte digest."""
        if len(digest) != DIGEST_SIZE:
            raise MalformedInputError("digest must be 32 bytes", length=len(digest))
        return PrivateKey(bytes(self.secret)).sign(bytes(digest), hasher=None)

    def close(self) -> None:
        secret = getattr(self, "_secret", None)
        if secret is not None:
            wipe(secret)
            self._secret = None


def wipe(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


class CallbackSigner:
    """Adapts an external signing function (HSM, remote co-signer) to ``Signer``."""

    def __init__(self, public_key: bytes, sign_fn):
        self._public_key = validate_public_key(public_key)
        self._sign_fn = sign_fn

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign_digest(self, digest: bytes) -> bytes:
        return bytes(self._sign_fn(digest))
