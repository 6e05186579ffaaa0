"""Deterministic test identities."""

from __future__ import annotations

from utxo_escrow.address import p2pkh_address
from utxo_escrow.crypto.keys import verify_digest
from utxo_escrow.networks import BITCOIN_MAINNET
from utxo_escrow.test_accounts import ALICE, BOB, NAMES, OPERATOR, SEED_MAP, scoped_key, secret_for_seed, wif


def test_accounts_deterministic(vector_test_group) -> None:
    """Seed bytes 1..6 produce the expected test identities."""
    assert OPERATOR.hex() == "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    assert ALICE.hex() == "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
    assert BOB.hex() == "02f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9"
    assert len(SEED_MAP) == len(NAMES)

    for pubkey, seed in SEED_MAP.items():
        secret = secret_for_seed(seed)
        assert len(secret) == 32
        assert len(pubkey) == 33
        vector_test_group(
            "accounts.json",
            {
                "name": NAMES[seed - 1],
                "private_key": bytes(secret).hex(),
                "public_key": pubkey.hex(),
                "address_mainnet": p2pkh_address(pubkey, BITCOIN_MAINNET),
            },
        )


def test_operator_wif() -> None:
    assert wif(OPERATOR, BITCOIN_MAINNET) == "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"


def test_scoped_key_signs_for_identity() -> None:
    digest = bytes(range(32))
    with scoped_key(ALICE) as key:
        assert key.public_key == ALICE
        assert verify_digest(ALICE, digest, key.sign_digest(digest))
