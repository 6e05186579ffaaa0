"""Hash algorithm assignments used by the escrow engine."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from blake3 import blake3
from Crypto.Hash import RIPEMD160


HASH_SIZE = 32
HASH160_SIZE = 20


@dataclass(frozen=True)
class HashAssignment:
    purpose: str
    algorithm: str
    output_size: int
    input_spec: str


ASSIGNMENTS = [
    HashAssignment("txid", "SHA256d", 32, "serialized transaction bytes (displayed byte-reversed)"),
    HashAssignment("sighash", "SHA256d", 32, "legacy signature preimage || sighash type (u32 LE)"),
    HashAssignment("pubkey_hash", "HASH160", 20, "SEC1 public key bytes"),
    HashAssignment("script_hash", "HASH160", 20, "redeem script bytes"),
    HashAssignment("attestation", "SHA256", 32, "canonical reward message (UTF-8)"),
    HashAssignment("escrow_id", "BLAKE3", 16, "network name || 0x00 || escrow address"),
]


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    return sha256(sha256(data))


def ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    return ripemd160(sha256(data))


def txid(serialized_tx: bytes) -> str:
    return hash256(serialized_tx)[::-1].hex()


def escrow_id(network_name: str, address: str) -> str:
    data = network_name.encode() + b"\x00" + address.encode()
    return blake3(data).hexdigest(length=16)
