"""Pytest hooks to generate payout fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from utxo_escrow.crypto.keys import ScopedKey
from utxo_escrow.errors import EscrowError
from utxo_escrow.networks import get_network
from utxo_escrow.test_accounts import secret_for_seed
from utxo_escrow.tx.payout import build_payout
from utxo_escrow.types import SignedTransaction
from tools.fixtures_io import payout_input_from_json, payout_input_to_json, signed_to_json

_PAYOUT_CASES: dict[str, list[dict[str, Any]]] = {}
_VECTOR_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


def _signers(seeds: list[int]) -> list[ScopedKey]:
    return [ScopedKey(secret_for_seed(seed)) for seed in seeds]


@pytest.fixture
def payout_vector() -> Callable[..., Optional[SignedTransaction]]:
    """Build a payout from its JSON description, record the outcome and return it.

    Returns the signed transaction, or None when the build was rejected (the
    error code is recorded as the expected result).
    """

    def _payout_vector(rel_path: str, name: str, **case: Any) -> Optional[SignedTransaction]:
        description = payout_input_to_json(**case)
        kwargs = payout_input_from_json(description)
        signers = _signers(description["signer_seeds"])
        try:
            tx = build_payout(network=get_network(description["network"]), signers=signers, **kwargs)
            expected = {"ok": True, "error": None, "tx": signed_to_json(tx)}
        except EscrowError as e:
            tx = None
            expected = {"ok": False, "error": e.code.name, "tx": None}
        finally:
            for signer in signers:
                signer.close()
        _PAYOUT_CASES.setdefault(rel_path, []).append({"name": name, "input": description, "expected": expected})
        return tx

    return _payout_vector


@pytest.fixture
def vector_test_group() -> Callable[[str, dict[str, Any]], None]:
    """Collect pre-built test_vectors under a specific fixture path."""

    def _vector_test_group(rel_path: str, vector: dict[str, Any]) -> None:
        _VECTOR_CASES.setdefault(rel_path, []).append(vector)

    return _vector_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _PAYOUT_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))

    for rel_path, vectors in _VECTOR_CASES.items():
        if not vectors:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"test_vectors": vectors}, indent=2))
