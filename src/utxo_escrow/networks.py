"""Per-chain network parameters loaded from networks.yaml."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from .errors import MalformedInputError

_NETWORKS_PATH = Path(__file__).resolve().parent / "networks.yaml"


@dataclass(frozen=True)
class NetworkParams:
    name: str
    chain: str
    pubkey_hash: int
    script_hash: int
    wif: int
    dust_threshold: int

    @property
    def is_mainnet(self) -> bool:
        return self.name.endswith("-mainnet")


def _parse_entry(name: str, raw: dict) -> NetworkParams:
    params = NetworkParams(
        name=name,
        chain=str(raw["chain"]),
        pubkey_hash=int(raw["pubkey_hash"]),
        script_hash=int(raw["script_hash"]),
        wif=int(raw["wif"]),
        dust_threshold=int(raw["dust_threshold"]),
    )
    for label in ("pubkey_hash", "script_hash", "wif"):
        value = getattr(params, label)
        if not 0 <= value <= 0xFF:
            raise ValueError(f"{name}.{label} must be a single byte, got {value}")
    return params


@lru_cache(maxsize=None)
def load_networks(path: Path = _NETWORKS_PATH) -> dict[str, NetworkParams]:
    data = yaml.safe_load(path.read_text())
    return {name: _parse_entry(name, raw) for name, raw in data["networks"].items()}


def get_network(name: str) -> NetworkParams:
    """Look up a network by name, e.g. ``bitcoin-testnet``."""
    networks = load_networks()
    params = networks.get(name)
    if params is None:
        raise MalformedInputError(
            f"unknown network {name!r}", network=name, known=sorted(networks)
        )
    return params


BITCOIN_MAINNET = get_network("bitcoin-mainnet")
BITCOIN_TESTNET = get_network("bitcoin-testnet")
