"""Hash primitives and their assignments."""

from __future__ import annotations

from utxo_escrow.crypto.hash_algorithms import (
    ASSIGNMENTS,
    HASH160_SIZE,
    HASH_SIZE,
    escrow_id,
    hash160,
    hash256,
    ripemd160,
    sha256,
    txid,
)
from utxo_escrow.test_accounts import OPERATOR


def test_known_digests(vector_test_group) -> None:
    vectors = [
        ("sha256", sha256(b""), "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"),
        ("hash256", hash256(b""), "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"),
        ("ripemd160", ripemd160(b""), "9c1185a5c5e9fc54612808977ee8f548b2258d31"),
        ("hash160_generator", hash160(OPERATOR), "751e76e8199196d454941c45d1b3a323f1433bd6"),
    ]
    for name, digest, expected in vectors:
        assert digest.hex() == expected, name
        vector_test_group("crypto/hashes.json", {"name": name, "digest": expected})


def test_txid_is_reversed_hash256() -> None:
    assert txid(b"") == hash256(b"")[::-1].hex()


def test_escrow_id_is_scoped_by_network() -> None:
    a = escrow_id("bitcoin-mainnet", "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH")
    b = escrow_id("bitcoin-testnet", "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH")
    assert len(a) == 32
    assert a != b


def test_assignment_sizes() -> None:
    sizes = {
        "SHA256d": HASH_SIZE,
        "SHA256": HASH_SIZE,
        "HASH160": HASH160_SIZE,
        "BLAKE3": 16,
    }
    purposes = {a.purpose for a in ASSIGNMENTS}
    assert {"txid", "sighash", "pubkey_hash", "script_hash", "attestation", "escrow_id"} <= purposes
    for assignment in ASSIGNMENTS:
        assert assignment.output_size == sizes[assignment.algorithm], assignment.purpose
