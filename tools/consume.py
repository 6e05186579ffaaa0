"""Consume payout fixtures and validate them against the Python builder."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from utxo_escrow.crypto.keys import ScopedKey  # noqa: E402
from utxo_escrow.errors import EscrowError  # noqa: E402
from utxo_escrow.networks import get_network  # noqa: E402
from utxo_escrow.test_accounts import secret_for_seed  # noqa: E402
from utxo_escrow.tx.payout import build_payout  # noqa: E402
from fixtures_io import payout_input_from_json, signed_to_json  # noqa: E402


def _rebuild(description: dict) -> tuple[bool, str | None, dict | None]:
    signers = [ScopedKey(secret_for_seed(seed)) for seed in description["signer_seeds"]]
    try:
        tx = build_payout(
            network=get_network(description["network"]),
            signers=signers,
            **payout_input_from_json(description),
        )
        return True, None, signed_to_json(tx)
    except EscrowError as e:
        return False, e.code.name, None
    finally:
        for signer in signers:
            signer.close()


def _check_payout_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())

    for case in data.get("cases", []):
        ok, error, tx = _rebuild(case["input"])

        expected = case["expected"]
        if ok != expected["ok"]:
            failures.append(f"{path.name}:{case['name']}: ok_mismatch")
            continue

        if error != expected["error"]:
            failures.append(f"{path.name}:{case['name']}: error_mismatch")
            continue

        if tx is None:
            continue
        for field in ("txid", "raw_hex", "fee_sats", "payout_sats", "change_sats"):
            if tx[field] != expected["tx"][field]:
                failures.append(f"{path.name}:{case['name']}: {field}_mismatch")
                break

    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"

    failures: list[str] = []
    checked = 0
    for path in sorted(fixtures.glob("payout/*.json")):
        failures.extend(_check_payout_cases(path))
        checked += 1

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print(f"All fixtures passed ({checked} files)")


if __name__ == "__main__":
    main()
