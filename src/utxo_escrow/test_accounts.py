"""Deterministic secp256k1 test identities.

Account *i* has the private key ``i`` (32-byte big-endian), so ``OPERATOR``
is the generator point. Never use these keys with real funds.
"""

from __future__ import annotations

from .crypto.keys import ScopedKey, encode_wif, public_key_from_secret
from .networks import NetworkParams

NAMES = ["Operator", "Alice", "Bob", "Carol", "Dave", "Eve"]


def secret_for_seed(seed: int) -> bytearray:
    return bytearray(bytes(31) + bytes([seed]))


def _derive(seed: int) -> bytes:
    return public_key_from_secret(secret_for_seed(seed))


# Named constants: 33-byte compressed public keys
OPERATOR = _derive(1)
ALICE = _derive(2)
BOB = _derive(3)
CAROL = _derive(4)
DAVE = _derive(5)
EVE = _derive(6)

# Map public key -> seed byte
SEED_MAP: dict[bytes, int] = {_derive(i + 1): i + 1 for i in range(len(NAMES))}


def scoped_key(pubkey: bytes) -> ScopedKey:
    """A fresh signing key for the test identity behind ``pubkey``."""
    return ScopedKey(secret_for_seed(SEED_MAP[pubkey]))


def wif(pubkey: bytes, network: NetworkParams) -> str:
    return encode_wif(secret_for_seed(SEED_MAP[pubkey]), network)
