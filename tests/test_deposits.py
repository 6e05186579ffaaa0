"""Deposit tracker: cumulative thresholds and provider failures."""

from __future__ import annotations

import itertools

import pytest

from utxo_escrow.deposits import check_deposit, cumulative_thresholds
from utxo_escrow.errors import ErrorCode, MalformedInputError, ProviderUnavailableError
from utxo_escrow.providers import ProviderError, StaticUtxoProvider
from utxo_escrow.types import PartyContribution, Utxo

ADDRESS = "escrow-address"
PARTIES = [PartyContribution("alice", 5_000_000), PartyContribution("bob", 5_000_000)]


def _utxo(n: int, value: int, confirmations: int | None = None) -> Utxo:
    return Utxo(txid=f"{n:02x}" * 32, vout=0, value_sats=value, confirmations=confirmations)


def _check(*utxos: Utxo, **kwargs):
    return check_deposit(StaticUtxoProvider({ADDRESS: utxos}), ADDRESS, PARTIES, **kwargs)


def test_cumulative_thresholds() -> None:
    assert cumulative_thresholds(PARTIES) == [5_000_000, 10_000_000]
    assert cumulative_thresholds([]) == []


def test_both_parties_funded() -> None:
    status = _check(_utxo(1, 5_000_000), _utxo(2, 5_000_000))
    assert status.total_sats == 10_000_000
    assert status.utxo_count == 2
    assert [p.satisfied for p in status.parties] == [True, True]
    assert status.fully_funded
    assert status.excess_sats == 0


def test_partial_funding() -> None:
    status = _check(_utxo(1, 7_000_000))
    assert [p.satisfied for p in status.parties] == [True, False]
    assert not status.fully_funded


def test_one_deposit_can_cover_both_parties() -> None:
    # The check is on the running balance, not on who paid in.
    status = _check(_utxo(1, 10_000_000))
    assert status.fully_funded


def test_over_funding_keeps_excess() -> None:
    status = _check(_utxo(1, 6_000_000), _utxo(2, 6_000_000))
    assert status.fully_funded
    assert status.excess_sats == 2_000_000


def test_order_independent() -> None:
    utxos = [_utxo(1, 2_000_000), _utxo(2, 3_000_000), _utxo(3, 4_999_999)]
    results = {
        tuple(p.satisfied for p in _check(*order).parties) for order in itertools.permutations(utxos)
    }
    assert results == {(True, False)}


def test_empty_address() -> None:
    status = _check()
    assert status.total_sats == 0
    assert not any(p.satisfied for p in status.parties)


def test_min_confirmations_reports_pending() -> None:
    status = _check(_utxo(1, 5_000_000, confirmations=3), _utxo(2, 5_000_000, confirmations=0), min_confirmations=1)
    assert status.total_sats == 5_000_000
    assert status.pending_sats == 5_000_000
    assert [p.satisfied for p in status.parties] == [True, False]


def test_unknown_confirmations_counted_by_default() -> None:
    assert _check(_utxo(1, 10_000_000)).fully_funded


def test_provider_failure_is_retryable() -> None:
    provider = StaticUtxoProvider()
    provider.unavailable = True
    with pytest.raises(ProviderUnavailableError) as exc_info:
        check_deposit(provider, ADDRESS, PARTIES)
    err = exc_info.value
    assert err.code == ErrorCode.PROVIDER_UNAVAILABLE
    assert err.retryable
    assert isinstance(err.__cause__, ProviderError)
    assert err.context["address"] == ADDRESS


def test_negative_expectation_rejected() -> None:
    with pytest.raises(MalformedInputError):
        check_deposit(StaticUtxoProvider(), ADDRESS, [PartyContribution("alice", -1)])


def test_conflicting_utxo_reports_rejected() -> None:
    with pytest.raises(MalformedInputError):
        _check(_utxo(1, 5_000_000), _utxo(1, 4_000_000))


def test_duplicate_utxo_reports_counted_once() -> None:
    status = _check(_utxo(1, 5_000_000), _utxo(1, 5_000_000))
    assert status.total_sats == 5_000_000
