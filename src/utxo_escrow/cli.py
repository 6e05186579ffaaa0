"""utxo-escrow command line.

Operator helpers around the engine: key generation, escrow addresses, fee
estimates and reward attestations. Output is JSON on stdout.
"""

from __future__ import annotations

import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

import click

from .address import p2pkh_script
from .attestation import AttestationSigner, attestation_from_json, attestation_to_json, verify
from .config import EngineConfig
from .crypto.hash_algorithms import HASH160_SIZE
from .crypto.keys import validate_public_key
from .custody import generate, generate_encryption_key, import_wif, sealed_from_json, sealed_to_json
from .errors import EscrowError
from .networks import get_network, load_networks
from .script import multisig, time_locked
from .tx.fees import compute_fee, estimate_vsize
from .types import MultiSig, SingleKey


def _emit(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


def _hex(value: str, label: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise click.BadParameter(f"{label} must be hex") from exc


def _encryption_key(value: Optional[str]) -> bytes:
    if not value:
        raise click.UsageError("an encryption key is required (--encryption-key or ESCROW_ENCRYPTION_KEY)")
    return _hex(value, "encryption key")


def _read_json(path: str) -> Any:
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc


network_option = click.option(
    "--network",
    default=None,
    type=click.Choice(sorted(load_networks())),
    help="Network parameter set (default: ESCROW_NETWORK or bitcoin-testnet)",
)
encryption_key_option = click.option(
    "--encryption-key",
    envvar="ESCROW_ENCRYPTION_KEY",
    default=None,
    help="256-bit sealing key as hex (or ESCROW_ENCRYPTION_KEY)",
)


class _Group(click.Group):
    """Turns engine errors into a one-line message and exit code 1."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except EscrowError as err:
            raise click.ClickException(str(err)) from err


@click.group(cls=_Group)
@click.option("--log-level", default=None, help="Logging level (default: ESCROW_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]) -> None:
    """Escrow custody and payout tooling for UTXO chains."""
    try:
        config = EngineConfig.from_env()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    if log_level:
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise click.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level")
        config.log_level = level
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = config


def _network(ctx: click.Context, name: Optional[str]):
    return get_network(name or ctx.obj.network)


@main.command()
def keygen() -> None:
    """Print a fresh 256-bit sealing key."""
    _emit({"encryptionKey": generate_encryption_key().hex()})


@main.command()
@network_option
@encryption_key_option
@click.option("--wif", default=None, help="Seal this existing key instead of generating one")
@click.pass_context
def wallet(ctx: click.Context, network: Optional[str], encryption_key: Optional[str], wif: Optional[str]) -> None:
    """Create (or import) an escrow wallet and print its sealed key."""
    params = _network(ctx, network)
    key = _encryption_key(encryption_key)
    w = import_wif(wif, params, key) if wif else generate(params, key)
    _emit({
        "network": params.name,
        "address": w.address,
        "publicKey": w.public_key.hex(),
        "sealedKey": sealed_to_json(w.sealed_key),
    })


@main.command("multisig-address")
@network_option
@click.option("-m", "threshold", type=int, required=True, help="Signatures required")
@click.argument("pubkeys", nargs=-1, required=True)
@click.pass_context
def multisig_address(ctx: click.Context, network: Optional[str], threshold: int, pubkeys: tuple[str, ...]) -> None:
    """P2SH address for an m-of-n multisig over PUBKEYS (order matters)."""
    params = _network(ctx, network)
    address, redeem = multisig(threshold, [_hex(pk, "pubkey") for pk in pubkeys], params)
    _emit({"network": params.name, "address": address, "redeemScript": redeem.hex()})


@main.command("timelock-address")
@network_option
@click.option("--primary", required=True, help="Primary (operator) public key, hex")
@click.option("--lock-height", type=int, required=True, help="Absolute block height for the fallback")
@click.option("-m", "threshold", type=int, default=None, help="Fallback signatures required (default: all)")
@click.argument("fallback", nargs=-1, required=True)
@click.pass_context
def timelock_address(
    ctx: click.Context,
    network: Optional[str],
    primary: str,
    lock_height: int,
    threshold: Optional[int],
    fallback: tuple[str, ...],
) -> None:
    """P2SH address spendable by PRIMARY, or by the FALLBACK keys after the lock height."""
    params = _network(ctx, network)
    keys = tuple(_hex(pk, "pubkey") for pk in fallback)
    condition = MultiSig(len(keys) if threshold is None else threshold, keys)
    address, redeem = time_locked(_hex(primary, "primary"), lock_height, condition, params)
    _emit({"network": params.name, "address": address, "redeemScript": redeem.hex(), "lockHeight": lock_height})


@main.command("estimate-fee")
@click.option("--fee-rate", default=None, help="sat/vB (default: ESCROW_FEE_RATE or 5)")
@click.option("--inputs", type=int, default=1, show_default=True, help="Number of escrow UTXOs")
@click.option("--outputs", type=int, default=1, show_default=True, help="Number of P2PKH outputs")
@click.option("-m", "threshold", type=int, default=None, help="Multisig threshold when several keys are given")
@click.argument("pubkeys", nargs=-1, required=True)
@click.pass_context
def estimate_fee(
    ctx: click.Context,
    fee_rate: Optional[str],
    inputs: int,
    outputs: int,
    threshold: Optional[int],
    pubkeys: tuple[str, ...],
) -> None:
    """Estimated vsize and fee for spending an escrow locked to PUBKEYS."""
    keys = tuple(_hex(pk, "pubkey") for pk in pubkeys)
    if len(keys) == 1 and threshold is None:
        condition = SingleKey(validate_public_key(keys[0]))
    else:
        condition = MultiSig(len(keys) if threshold is None else threshold, keys)
    try:
        rate = Decimal(fee_rate) if fee_rate is not None else ctx.obj.fee_rate
    except InvalidOperation as exc:
        raise click.BadParameter("fee rate must be a number", param_hint="--fee-rate") from exc
    # Output sizes depend only on script length, so a placeholder hash is enough.
    scripts = [p2pkh_script(bytes(HASH160_SIZE))] * outputs
    vsize = estimate_vsize(condition, inputs, scripts)
    _emit({"vsize": vsize, "feeRate": str(rate), "feeSats": compute_fee(vsize, rate)})


@main.command()
@network_option
@encryption_key_option
@click.option("--sealed-key", "sealed_key_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.argument("claimant")
@click.argument("amount_sats", type=int)
@click.argument("context")
@click.pass_context
def attest(
    ctx: click.Context,
    network: Optional[str],
    encryption_key: Optional[str],
    sealed_key_path: str,
    claimant: str,
    amount_sats: int,
    context: str,
) -> None:
    """Sign a reward attestation with the sealed operator key."""
    data = _read_json(sealed_key_path)
    sealed = sealed_from_json(data.get("sealedKey", data) if isinstance(data, dict) else data)
    signer = AttestationSigner(sealed, _encryption_key(encryption_key), _network(ctx, network))
    _emit(attestation_to_json(signer.sign(claimant, amount_sats, context)))


@main.command("verify-attestation")
@click.option("--pubkey", required=True, help="Signer public key, hex")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def verify_attestation(pubkey: str, path: str) -> None:
    """Check an attestation file; exits 1 when it does not verify."""
    attestation = attestation_from_json(_read_json(path))
    ok = verify(attestation, _hex(pubkey, "pubkey"))
    _emit({"valid": ok, "claimant": attestation.claimant, "amountSats": attestation.amount_sats})
    if not ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
