"""
Vault errors — the typed failure taxonomy of the withdrawal controller.

Every failure is raised synchronously from the operation that detected it
and leaves controller state exactly as it was before the call. Errors fall
into five families:

- validation     — malformed input rejected before any state is touched
- authorization  — caller is not the identity the operation requires
- timing         — the withdrawal delay has not yet elapsed
- state-absence  — required state has never been stored
- balance        — the controller does not hold what an override asks for
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Error families, used by the API layer to pick a status code."""

    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    TIMING = "timing"
    STATE_ABSENCE = "state_absence"
    BALANCE = "balance"
    LIFECYCLE = "lifecycle"


class VaultError(Exception):
    """Base class for every error raised by the controller."""

    kind: ErrorKind = ErrorKind.VALIDATION
    code: str = "vault_error"
    default_message: str = "Vault error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ── Validation ─────────────────────────────────────────────────


class InvalidIdentity(VaultError):
    kind = ErrorKind.VALIDATION
    code = "invalid_identity"
    default_message = "Invalid identity"


class InvalidDelay(VaultError):
    kind = ErrorKind.VALIDATION
    code = "invalid_delay"
    default_message = "Invalid withdrawal delay"


class InvalidAmount(VaultError):
    kind = ErrorKind.VALIDATION
    code = "invalid_amount"
    default_message = "Amount must be greater than zero"


class DenominationNotConfigured(VaultError):
    kind = ErrorKind.VALIDATION
    code = "denomination_not_configured"
    default_message = "No native denomination configured for partial sends"


# ── Authorization ──────────────────────────────────────────────


class Unauthorized(VaultError):
    kind = ErrorKind.AUTHORIZATION
    code = "unauthorized"
    default_message = "Unauthorized"


# ── Timing ─────────────────────────────────────────────────────


class WithdrawalNotReady(VaultError):
    kind = ErrorKind.TIMING
    code = "withdrawal_not_ready"
    default_message = "Withdrawal not ready - wait until after timeout has passed"


# ── State absence ──────────────────────────────────────────────


class NotInstantiated(VaultError):
    kind = ErrorKind.STATE_ABSENCE
    code = "not_instantiated"
    default_message = "Vault has not been instantiated"


class NoWithdrawalRequested(VaultError):
    kind = ErrorKind.STATE_ABSENCE
    code = "no_withdrawal_requested"
    default_message = "No withdrawal has been requested"


# ── Balance ────────────────────────────────────────────────────


class InsufficientContractBalance(VaultError):
    kind = ErrorKind.BALANCE
    code = "insufficient_contract_balance"
    default_message = "Contract balance is insufficient for this send"


class NoNativeBalance(VaultError):
    kind = ErrorKind.BALANCE
    code = "no_native_balance"
    default_message = "Contract holds none of the native denomination"


# ── Lifecycle ──────────────────────────────────────────────────


class AlreadyInstantiated(VaultError):
    kind = ErrorKind.LIFECYCLE
    code = "already_instantiated"
    default_message = "Vault configuration is write-once"


class MigrationError(VaultError):
    kind = ErrorKind.LIFECYCLE
    code = "migration_error"
    default_message = "Migration refused"
