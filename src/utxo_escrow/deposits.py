"""Deposit tracking for escrow addresses.

Contributions are checked cumulatively: party *i* is satisfied once the
address holds at least the sum of the expected amounts of parties ``0..i``.
Over-funding satisfies every party and the excess stays in the pot.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .errors import MalformedInputError, ProviderUnavailableError
from .providers import UtxoProvider
from .types import DepositStatus, PartyContribution, PartyDeposit, Utxo

logger = logging.getLogger(__name__)


def dedupe_utxos(utxos: Iterable[Utxo]) -> list[Utxo]:
    """Sort by outpoint, collapsing exact duplicates.

    Two entries for one outpoint that disagree on value or script are
    malformed input: spending either would double-count or mis-sign.
    """
    by_outpoint: dict[tuple[str, int], Utxo] = {}
    for utxo in utxos:
        if not isinstance(utxo.value_sats, int) or utxo.value_sats < 0:
            raise MalformedInputError("utxo value must be a non-negative integer", outpoint=utxo.outpoint)
        seen = by_outpoint.get(utxo.outpoint)
        if seen is None:
            by_outpoint[utxo.outpoint] = utxo
        elif (seen.value_sats, seen.script_pubkey) != (utxo.value_sats, utxo.script_pubkey):
            raise MalformedInputError(
                f"conflicting entries for outpoint {utxo.txid}:{utxo.vout}",
                outpoint=utxo.outpoint,
            )
    return [by_outpoint[key] for key in sorted(by_outpoint)]


def cumulative_thresholds(contributions: Sequence[PartyContribution]) -> list[int]:
    thresholds = []
    running = 0
    for contribution in contributions:
        if contribution.expected_sats < 0:
            raise MalformedInputError(
                "expected contribution must be non-negative",
                party=contribution.party,
                expected_sats=contribution.expected_sats,
            )
        running += contribution.expected_sats
        thresholds.append(running)
    return thresholds


def check_deposit(
    provider: UtxoProvider,
    address: str,
    contributions: Sequence[PartyContribution],
    *,
    min_confirmations: int = 0,
) -> DepositStatus:
    """Query ``provider`` for ``address`` and report which parties have paid in."""
    thresholds = cumulative_thresholds(contributions)
    try:
        utxos = provider.get_utxos(address)
    except Exception as exc:
        logger.warning("utxo lookup failed for %s: %s", address, exc)
        raise ProviderUnavailableError(f"utxo provider failed for {address}", address=address) from exc

    total = 0
    pending = 0
    counted = 0
    for utxo in dedupe_utxos(utxos):
        confirmations = utxo.confirmations if utxo.confirmations is not None else 0
        if min_confirmations and confirmations < min_confirmations:
            pending += utxo.value_sats
            continue
        total += utxo.value_sats
        counted += 1

    parties = tuple(
        PartyDeposit(
            party=c.party,
            expected_sats=c.expected_sats,
            cumulative_threshold=threshold,
            satisfied=total >= threshold,
        )
        for c, threshold in zip(contributions, thresholds)
    )
    status = DepositStatus(
        address=address,
        total_sats=total,
        parties=parties,
        utxo_count=counted,
        pending_sats=pending,
    )
    logger.info(
        "deposit check %s: %d sats in %d utxos (%d pending), %d/%d parties satisfied",
        address,
        total,
        counted,
        pending,
        sum(1 for p in parties if p.satisfied),
        len(parties),
    )
    return status
