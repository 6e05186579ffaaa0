"""Helpers to serialize/deserialize payout fixtures."""

from __future__ import annotations

from typing import Any, Optional

from utxo_escrow.engine import condition_from_json, condition_to_json
from utxo_escrow.types import SignedTransaction, SpendingCondition, SpendPath, Utxo


def _hex_or_none(v: Optional[bytes]) -> Optional[str]:
    return None if v is None else v.hex()


def utxo_to_json(utxo: Utxo) -> dict[str, Any]:
    return {
        "txid": utxo.txid,
        "vout": utxo.vout,
        "value_sats": utxo.value_sats,
        "script_pubkey": _hex_or_none(utxo.script_pubkey),
        "confirmations": utxo.confirmations,
    }


def utxo_from_json(data: dict[str, Any]) -> Utxo:
    script = data.get("script_pubkey")
    return Utxo(
        txid=data["txid"],
        vout=int(data["vout"]),
        value_sats=int(data["value_sats"]),
        script_pubkey=bytes.fromhex(script) if script is not None else None,
        confirmations=data.get("confirmations"),
    )


def signed_to_json(tx: SignedTransaction) -> dict[str, Any]:
    return {
        "txid": tx.txid,
        "raw_hex": tx.raw_hex,
        "fee_sats": tx.fee_sats,
        "payout_sats": tx.payout_sats,
        "change_sats": tx.change_sats,
        "total_input_sats": tx.total_input_sats,
        "vsize": tx.vsize,
    }


def payout_input_to_json(
    network: str,
    utxos: list[Utxo],
    condition: SpendingCondition,
    recipient: str,
    fee_rate: Any,
    signer_seeds: list[int],
    spend_path: Optional[SpendPath] = None,
    amount_sats: Optional[int] = None,
    memo: Optional[bytes] = None,
) -> dict[str, Any]:
    return {
        "network": network,
        "utxos": [utxo_to_json(u) for u in utxos],
        "condition": condition_to_json(condition),
        "recipient": recipient,
        "fee_rate": str(fee_rate),
        "signer_seeds": list(signer_seeds),
        "spend_path": spend_path.value if spend_path is not None else None,
        "amount_sats": amount_sats,
        "memo": _hex_or_none(memo),
    }


def payout_input_from_json(data: dict[str, Any]) -> dict[str, Any]:
    """Keyword arguments for ``build_payout`` minus ``network`` and ``signers``."""
    memo = data.get("memo")
    spend_path = data.get("spend_path")
    return {
        "utxos": [utxo_from_json(u) for u in data["utxos"]],
        "condition": condition_from_json(data["condition"]),
        "recipient": data["recipient"],
        "fee_rate": data["fee_rate"],
        "spend_path": SpendPath(spend_path) if spend_path else None,
        "amount_sats": data.get("amount_sats"),
        "memo": bytes.fromhex(memo) if memo is not None else None,
    }
