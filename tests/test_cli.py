"""utxo-escrow command line."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from utxo_escrow.cli import main
from utxo_escrow.networks import BITCOIN_MAINNET, BITCOIN_TESTNET
from utxo_escrow.test_accounts import ALICE, BOB, CAROL, OPERATOR, wif


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _run(runner: CliRunner, *args: str, env: dict[str, str] | None = None):
    return runner.invoke(main, list(args), env=env, catch_exceptions=False)


def test_keygen(runner) -> None:
    result = _run(runner, "keygen")
    assert result.exit_code == 0
    assert len(bytes.fromhex(json.loads(result.output)["encryptionKey"])) == 32


def test_wallet_import(runner) -> None:
    key = "11" * 32
    result = _run(runner, "wallet", "--network", "bitcoin-mainnet", "--encryption-key", key,
                  "--wif", wif(OPERATOR, BITCOIN_MAINNET))
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["address"] == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
    assert set(data["sealedKey"]) == {"ciphertext", "iv", "authTag"}


def test_wallet_requires_encryption_key(runner) -> None:
    result = runner.invoke(main, ["wallet"], env={"ESCROW_ENCRYPTION_KEY": ""})
    assert result.exit_code != 0


def test_multisig_address(runner) -> None:
    result = _run(runner, "multisig-address", "-m", "2", ALICE.hex(), BOB.hex(), CAROL.hex())
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["network"] == "bitcoin-testnet"
    assert data["address"].startswith("2")
    assert data["redeemScript"].startswith("52")


def test_multisig_address_invalid_threshold(runner) -> None:
    result = runner.invoke(main, ["multisig-address", "-m", "4", ALICE.hex(), BOB.hex()])
    assert result.exit_code == 1
    assert "INVALID_THRESHOLD" in result.output


def test_timelock_address(runner) -> None:
    result = _run(runner, "timelock-address", "--primary", OPERATOR.hex(), "--lock-height", "800000",
                  ALICE.hex(), BOB.hex())
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert "0300350cb175" in data["redeemScript"]


def test_timelock_address_bad_height(runner) -> None:
    result = runner.invoke(main, ["timelock-address", "--primary", OPERATOR.hex(), "--lock-height", "0",
                                  ALICE.hex()])
    assert result.exit_code == 1
    assert "INVALID_LOCK_TIME" in result.output


def test_estimate_fee(runner) -> None:
    result = _run(runner, "estimate-fee", "--fee-rate", "5", OPERATOR.hex())
    assert result.exit_code == 0
    assert json.loads(result.output) == {"vsize": 192, "feeRate": "5", "feeSats": 960}


def test_estimate_fee_multisig(runner) -> None:
    result = _run(runner, "estimate-fee", "--fee-rate", "5", "-m", "2", ALICE.hex(), BOB.hex(), OPERATOR.hex())
    assert json.loads(result.output)["vsize"] == 341


def test_estimate_fee_uses_env_rate(runner) -> None:
    result = _run(runner, "estimate-fee", OPERATOR.hex(), env={"ESCROW_FEE_RATE": "2"})
    assert json.loads(result.output)["feeSats"] == 384


def test_attest_and_verify(runner) -> None:
    key = "22" * 32
    with runner.isolated_filesystem():
        wallet = _run(runner, "wallet", "--encryption-key", key, "--wif", wif(OPERATOR, BITCOIN_TESTNET))
        with open("wallet.json", "w") as fh:
            fh.write(wallet.output)
        public_key = json.loads(wallet.output)["publicKey"]

        claimant = json.loads(_run(runner, "wallet", "--encryption-key", key).output)["address"]
        attest = _run(runner, "attest", "--encryption-key", key, "--sealed-key", "wallet.json",
                      claimant, "250000", "game-42")
        assert attest.exit_code == 0
        with open("attestation.json", "w") as fh:
            fh.write(attest.output)

        ok = _run(runner, "verify-attestation", "--pubkey", public_key, "attestation.json")
        assert ok.exit_code == 0
        assert json.loads(ok.output)["valid"] is True

        bad = runner.invoke(main, ["verify-attestation", "--pubkey", ALICE.hex(), "attestation.json"])
        assert bad.exit_code == 1
        assert json.loads(bad.output)["valid"] is False

@pytest.mark.parametrize(
    "name,value",
    [("ESCROW_FEE_RATE", "fast"), ("ESCROW_MIN_CONFIRMATIONS", "many"), ("ESCROW_LOG_LEVEL", "chatty")],
)
def test_bad_environment_is_a_usage_error(runner, name: str, value: str) -> None:
    result = runner.invoke(main, ["keygen"], env={name: value})
    assert result.exit_code == 2
    assert name in result.output
    assert "Traceback" not in result.output
