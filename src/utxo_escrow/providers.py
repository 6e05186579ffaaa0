"""External collaborator interfaces and in-memory implementations.

The engine performs no I/O itself. A deployment injects a UTXO provider, a
broadcaster and optionally a fee-rate oracle; these may block, wrap futures or
call out to an indexer, as long as they honour the signatures below.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional, Protocol

from .crypto.hash_algorithms import txid as compute_txid
from .types import Utxo

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised by provider implementations when the backing service fails."""


class UtxoProvider(Protocol):
    def get_utxos(self, address: str) -> list[Utxo]: ...


class Broadcaster(Protocol):
    def broadcast(self, raw_tx_hex: str) -> str: ...


class FeeRateOracle(Protocol):
    def fee_rate(self) -> Decimal: ...


class StaticUtxoProvider:
    """UTXO set held in memory, keyed by address."""

    def __init__(self, utxos: Optional[dict[str, Iterable[Utxo]]] = None):
        self._utxos: dict[str, list[Utxo]] = {
            address: list(items) for address, items in (utxos or {}).items()
        }
        self.unavailable = False
        self.calls = 0

    def add_utxo(self, address: str, utxo: Utxo) -> None:
        self._utxos.setdefault(address, []).append(utxo)

    def spend(self, address: str, outpoints: Iterable[tuple[str, int]]) -> None:
        spent = set(outpoints)
        self._utxos[address] = [u for u in self._utxos.get(address, []) if u.outpoint not in spent]

    def get_utxos(self, address: str) -> list[Utxo]:
        self.calls += 1
        if self.unavailable:
            raise ProviderError("utxo provider unavailable")
        return list(self._utxos.get(address, []))


class RecordingBroadcaster:
    """Keeps every broadcast transaction and answers with its locally computed txid."""

    def __init__(self) -> None:
        self.transactions: list[str] = []
        self.failure: Optional[str] = None

    def broadcast(self, raw_tx_hex: str) -> str:
        if self.failure is not None:
            raise ProviderError(self.failure)
        self.transactions.append(raw_tx_hex)
        tx_id = compute_txid(bytes.fromhex(raw_tx_hex))
        logger.debug("recorded broadcast %s", tx_id)
        return tx_id


class FixedFeeRate:
    def __init__(self, rate: Decimal | int | float | str):
        self._rate = Decimal(str(rate))

    def fee_rate(self) -> Decimal:
        return self._rate
