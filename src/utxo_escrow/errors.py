"""Escrow engine error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping


class ErrorCategory(IntEnum):
    VALIDATION = 0x01
    CUSTODY = 0x02
    RESOURCE = 0x03
    STATE = 0x04
    NETWORK = 0x06
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Validation
    INVALID_FORMAT = 0x0100
    INVALID_ADDRESS = 0x0106
    INVALID_THRESHOLD = 0x0108
    INVALID_LOCK_TIME = 0x0109
    INVALID_SIGNATURE = 0x0103

    # Custody
    DECRYPTION_FAILED = 0x0200
    INSUFFICIENT_SIGNERS = 0x0206

    # Resource
    INSUFFICIENT_FUNDS = 0x0300

    # State
    ILLEGAL_TRANSITION = 0x0403
    ALREADY_SETTLED = 0x0404

    # Network
    PROVIDER_UNAVAILABLE = 0x0600
    BROADCAST_FAILED = 0x0601

    # Internal
    INTERNAL_ERROR = 0xFF00

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self >> 8)


@dataclass(frozen=True, eq=False)
class EscrowError(Exception):
    code: ErrorCode
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)

    retryable = False

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(("__traceback__", "__context__", "__cause__", "__suppress_context__", "__notes__"))
_frozen_setattr = EscrowError.__setattr__


def _escrow_error_setattr(self: EscrowError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EscrowError.__setattr__ = _escrow_error_setattr  # type: ignore[method-assign]


class _CodedError(EscrowError):
    """EscrowError subclass bound to a single error code."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(self.default_code, message, context)


class MalformedInputError(_CodedError):
    default_code = ErrorCode.INVALID_FORMAT


class InvalidAddressError(_CodedError):
    default_code = ErrorCode.INVALID_ADDRESS


class InvalidThresholdError(_CodedError):
    default_code = ErrorCode.INVALID_THRESHOLD


class InvalidLockTimeError(_CodedError):
    default_code = ErrorCode.INVALID_LOCK_TIME


class InvalidSignatureError(_CodedError):
    default_code = ErrorCode.INVALID_SIGNATURE


class DecryptionError(_CodedError):
    default_code = ErrorCode.DECRYPTION_FAILED


class InsufficientSignersError(_CodedError):
    default_code = ErrorCode.INSUFFICIENT_SIGNERS


class InsufficientFundsError(_CodedError):
    default_code = ErrorCode.INSUFFICIENT_FUNDS


class IllegalTransitionError(_CodedError):
    default_code = ErrorCode.ILLEGAL_TRANSITION


class AlreadySettledError(_CodedError):
    default_code = ErrorCode.ALREADY_SETTLED


class ProviderUnavailableError(_CodedError):
    default_code = ErrorCode.PROVIDER_UNAVAILABLE
    retryable = True


class BroadcastError(_CodedError):
    default_code = ErrorCode.BROADCAST_FAILED
    retryable = True
