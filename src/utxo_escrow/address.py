"""Base58Check addresses (P2PKH / P2SH) and their output scripts."""

from __future__ import annotations

from enum import Enum

import base58

from .crypto.hash_algorithms import HASH160_SIZE, hash160
from .encoding import (
    OP_CHECKSIG,
    OP_DUP,
    OP_EQUAL,
    OP_EQUALVERIFY,
    OP_HASH160,
    push_data,
)
from .errors import InvalidAddressError
from .networks import NetworkParams


class AddressKind(Enum):
    P2PKH = "p2pkh"
    P2SH = "p2sh"


def _encode(version: int, payload: bytes) -> str:
    if len(payload) != HASH160_SIZE:
        raise ValueError(f"address payload must be {HASH160_SIZE} bytes")
    return base58.b58encode_check(bytes([version]) + payload).decode("ascii")


def p2pkh_address(pubkey: bytes, network: NetworkParams) -> str:
    return _encode(network.pubkey_hash, hash160(pubkey))


def p2sh_address(redeem_script: bytes, network: NetworkParams) -> str:
    return _encode(network.script_hash, hash160(redeem_script))


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    return bytes([OP_DUP, OP_HASH160]) + push_data(pubkey_hash) + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    return bytes([OP_HASH160]) + push_data(script_hash) + bytes([OP_EQUAL])


def decode_address(address: str, network: NetworkParams) -> tuple[AddressKind, bytes]:
    """Decode ``address`` under ``network`` into its kind and 20-byte hash."""
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("address must be a non-empty string", address=address, network=network.name)
    try:
        raw = base58.b58decode_check(address)
    except ValueError as exc:
        raise InvalidAddressError(
            f"address {address!r} is not valid Base58Check", address=address, network=network.name
        ) from exc
    if len(raw) != 1 + HASH160_SIZE:
        raise InvalidAddressError(
            f"address {address!r} has a {len(raw) - 1} byte payload", address=address, network=network.name
        )
    version, payload = raw[0], raw[1:]
    if version == network.pubkey_hash:
        return AddressKind.P2PKH, payload
    if version == network.script_hash:
        return AddressKind.P2SH, payload
    raise InvalidAddressError(
        f"address {address!r} does not belong to {network.name}",
        address=address,
        network=network.name,
        version=version,
    )


def output_script_for_address(address: str, network: NetworkParams) -> bytes:
    kind, payload = decode_address(address, network)
    if kind is AddressKind.P2PKH:
        return p2pkh_script(payload)
    return p2sh_script(payload)


def is_valid_address(address: str, network: NetworkParams) -> bool:
    try:
        decode_address(address, network)
    except InvalidAddressError:
        return False
    return True
