"""Wire encoding: varints, script pushes, transactions and addresses."""

from __future__ import annotations

import pytest

from utxo_escrow.address import (
    AddressKind,
    decode_address,
    is_valid_address,
    output_script_for_address,
    p2pkh_address,
)
from utxo_escrow.crypto.hash_algorithms import hash160, txid
from utxo_escrow.encoding import (
    OP_1NEGATE,
    OP_PUSHDATA1,
    OP_PUSHDATA2,
    decode_transaction,
    encode_transaction,
    encode_varint,
    parse_script_pushes,
    push_data,
    push_int,
    pushed_size,
    script_num,
)
from utxo_escrow.errors import InvalidAddressError, MalformedInputError
from utxo_escrow.networks import BITCOIN_MAINNET, BITCOIN_TESTNET, get_network
from utxo_escrow.test_accounts import OPERATOR
from utxo_escrow.types import Transaction, TxIn, TxOut


@pytest.mark.parametrize(
    "value,encoded",
    [
        (0, "00"),
        (252, "fc"),
        (253, "fdfd00"),
        (0xFFFF, "fdffff"),
        (0x10000, "fe00000100"),
        (0x100000000, "ff0000000001000000"),
    ],
)
def test_varint(value: int, encoded: str) -> None:
    assert encode_varint(value).hex() == encoded


def test_push_data_boundaries() -> None:
    assert push_data(b"\x01" * 75)[0] == 75
    assert push_data(b"\x01" * 76)[:2] == bytes([OP_PUSHDATA1, 76])
    assert push_data(b"\x01" * 256)[:3] == bytes([OP_PUSHDATA2, 0x00, 0x01])
    for size in (0, 75, 76, 255, 256):
        assert len(push_data(b"\x00" * size)) == pushed_size(size)


@pytest.mark.parametrize(
    "n,encoded",
    [(0, ""), (1, "01"), (127, "7f"), (128, "8000"), (255, "ff00"), (-1, "81"), (800_000, "00350c")],
)
def test_script_num(n: int, encoded: str) -> None:
    assert script_num(n).hex() == encoded


def test_push_int_small_values() -> None:
    assert push_int(0) == b"\x00"
    assert push_int(-1) == bytes([OP_1NEGATE])
    assert push_int(1) == b"\x51"
    assert push_int(16) == b"\x60"
    assert push_int(17) == b"\x01\x11"


def _sample_tx() -> Transaction:
    return Transaction(
        version=2,
        inputs=[TxIn("ab" * 32, 1, b"\x51", 0xFFFFFFFE)],
        outputs=[TxOut(12_345, b"\x6a\x00"), TxOut(0, b"")],
        locktime=800_000,
    )


def test_transaction_layout() -> None:
    raw = encode_transaction(_sample_tx())
    assert raw[:4] == b"\x02\x00\x00\x00"
    assert raw[5:37] == bytes.fromhex("ab" * 32)[::-1]
    assert raw[-4:] == (800_000).to_bytes(4, "little")
    assert decode_transaction(raw) == _sample_tx()


def test_txid_is_reversed_double_sha256() -> None:
    raw = encode_transaction(_sample_tx())
    assert len(txid(raw)) == 64
    assert txid(raw) != txid(raw[::-1])


def test_decode_rejects_trailing_bytes() -> None:
    with pytest.raises(MalformedInputError):
        decode_transaction(encode_transaction(_sample_tx()) + b"\x00")


def test_decode_rejects_truncation() -> None:
    with pytest.raises(MalformedInputError):
        decode_transaction(encode_transaction(_sample_tx())[:-3])


def test_decode_rejects_witness_marker() -> None:
    with pytest.raises(MalformedInputError):
        decode_transaction(bytes.fromhex("020000000001"))


def test_encode_rejects_bad_txid() -> None:
    tx = _sample_tx()
    tx.inputs[0].prev_txid = "zz"
    with pytest.raises(MalformedInputError):
        encode_transaction(tx)


def test_parse_script_pushes() -> None:
    script = b"\x00" + push_data(b"\x01" * 80) + b"\x51" + push_data(b"\x02" * 3)
    assert parse_script_pushes(script) == [0, b"\x01" * 80, 0x51, b"\x02" * 3]


# --- Addresses ---


def test_decode_p2pkh() -> None:
    address = p2pkh_address(OPERATOR, BITCOIN_MAINNET)
    assert decode_address(address, BITCOIN_MAINNET) == (AddressKind.P2PKH, hash160(OPERATOR))
    assert output_script_for_address(address, BITCOIN_MAINNET).hex() == (
        "76a914751e76e8199196d454941c45d1b3a323f1433bd688ac"
    )


def test_address_network_mismatch() -> None:
    address = p2pkh_address(OPERATOR, BITCOIN_MAINNET)
    assert not is_valid_address(address, BITCOIN_TESTNET)
    with pytest.raises(InvalidAddressError) as exc_info:
        decode_address(address, get_network("litecoin-mainnet"))
    assert exc_info.value.context["network"] == "litecoin-mainnet"


@pytest.mark.parametrize("bad", ["", "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMJ", "0OIl", "abc"])
def test_invalid_addresses(bad: str) -> None:
    with pytest.raises(InvalidAddressError):
        decode_address(bad, BITCOIN_MAINNET)


def test_other_chain_prefixes() -> None:
    assert p2pkh_address(OPERATOR, get_network("litecoin-mainnet")).startswith("L")
    assert p2pkh_address(OPERATOR, get_network("dogecoin-mainnet")).startswith("D")
    assert p2pkh_address(OPERATOR, BITCOIN_TESTNET)[0] in "mn"
