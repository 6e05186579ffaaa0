"""Escrow engine configuration constants.

Consensus-facing values (script limits, locktime threshold, sighash flags) follow
Bitcoin Core. The vsize model constants describe an *estimate* of a legacy
(non-witness) transaction, not a byte-exact measurement.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

# Relay policy
DEFAULT_DUST_THRESHOLD = 546
DEFAULT_FEE_RATE = Decimal(5)  # sat/vB

# Transaction format
TX_VERSION = 2
SIGHASH_ALL = 0x01
SEQUENCE_FINAL = 0xFFFFFFFF
SEQUENCE_LOCKTIME_ENABLED = 0xFFFFFFFE
LOCKTIME_THRESHOLD = 500_000_000  # below: block height, above: unix time

# Script limits
MAX_MULTISIG_KEYS = 16
MAX_SCRIPT_ELEMENT_SIZE = 520
MAX_OP_RETURN_SIZE = 80

# Sealed key envelope (AES-256-GCM)
ENCRYPTION_KEY_SIZE = 32
SEALED_IV_SIZE = 16
SEALED_TAG_SIZE = 16
PRIVATE_KEY_SIZE = 32

# vsize model (legacy serialization)
TX_BASE_VSIZE = 10  # version + input count + output count + locktime
OUTPOINT_SIZE = 36
SEQUENCE_SIZE = 4
SIGNATURE_SLOT_SIZE = 73  # push opcode + 71 byte DER + sighash byte
OUTPUT_VALUE_SIZE = 8

# Attestations
ATTESTATION_TAG = "reward"
ATTESTATION_DELIMITER = ":"


@dataclass
class EngineConfig:
    """Runtime settings for an escrow deployment."""

    network: str = "bitcoin-testnet"
    fee_rate: Decimal = DEFAULT_FEE_RATE
    min_confirmations: int = 0
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.network = os.environ.get("ESCROW_NETWORK", config.network)

        raw_rate = os.environ.get("ESCROW_FEE_RATE")
        if raw_rate:
            try:
                config.fee_rate = Decimal(raw_rate)
            except InvalidOperation as exc:
                raise ValueError(f"ESCROW_FEE_RATE is not a number: {raw_rate!r}") from exc

        raw_conf = os.environ.get("ESCROW_MIN_CONFIRMATIONS")
        if raw_conf:
            try:
                config.min_confirmations = int(raw_conf)
            except ValueError as exc:
                raise ValueError(f"ESCROW_MIN_CONFIRMATIONS is not an integer: {raw_conf!r}") from exc

        level_name = os.environ.get("ESCROW_LOG_LEVEL", "").upper()
        if level_name:
            level = logging.getLevelName(level_name)
            if not isinstance(level, int):
                raise ValueError(f"unknown ESCROW_LOG_LEVEL: {level_name!r}")
            config.log_level = level

        return config
