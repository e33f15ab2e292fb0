"""
Vault error kinds.

Every failure is terminal for the operation that raised it: nothing is retried
internally and no partial ledger mutation survives. Each error carries a
stable `code` (see `VaultErrorCode`) for audit logs and callers that branch on
the kind without importing the class.
"""

from __future__ import annotations


class VaultErrorCode:
    """
    Canonical string codes for vault failures.

    Note: keep these values stable; consumers may persist them.
    """

    INVALID_DEPOSIT = "INVALID_DEPOSIT"
    ZERO_MINT_RESULT = "ZERO_MINT_RESULT"
    ZERO_SUPPLY = "ZERO_SUPPLY"
    ZERO_RETURN_RESULT = "ZERO_RETURN_RESULT"
    INSUFFICIENT_SHARE_BALANCE = "INSUFFICIENT_SHARE_BALANCE"
    ARITHMETIC_OVERFLOW = "ARITHMETIC_OVERFLOW"
    ARITHMETIC_UNDERFLOW = "ARITHMETIC_UNDERFLOW"
    DIVISION_BY_ZERO = "DIVISION_BY_ZERO"
    EXTERNAL_READ_FAILURE = "EXTERNAL_READ_FAILURE"
    EXTERNAL_PAYOUT_FAILURE = "EXTERNAL_PAYOUT_FAILURE"
    INVALID_HOLDER_IDENTITY = "INVALID_HOLDER_IDENTITY"
    UNRECOGNIZED_OPERATION = "UNRECOGNIZED_OPERATION"
    STALE_VAULT_STATE = "STALE_VAULT_STATE"


class VaultError(RuntimeError):
    """Base error for vault accounting violations."""

    code: str = "VAULT_ERROR"


class InvalidDeposit(VaultError):
    """Raised when a deposit amount is non-positive, too small, or of the wrong denom."""

    code = VaultErrorCode.INVALID_DEPOSIT


class ZeroMintResult(VaultError):
    """Raised when a deposit would mint zero shares at the current exchange rate."""

    code = VaultErrorCode.ZERO_MINT_RESULT


class ZeroSupply(VaultError):
    """Raised when redeeming against a vault with no shares outstanding."""

    code = VaultErrorCode.ZERO_SUPPLY


class ZeroReturnResult(VaultError):
    """Raised when a redemption would pay out zero assets."""

    code = VaultErrorCode.ZERO_RETURN_RESULT


class InsufficientShareBalance(VaultError):
    """Raised when a holder tries to burn more shares than they hold (or a non-positive amount)."""

    code = VaultErrorCode.INSUFFICIENT_SHARE_BALANCE


class ArithmeticFault(VaultError):
    """Base for checked-arithmetic failures on Uint128 values."""


class ArithmeticOverflow(ArithmeticFault):
    code = VaultErrorCode.ARITHMETIC_OVERFLOW


class ArithmeticUnderflow(ArithmeticFault):
    code = VaultErrorCode.ARITHMETIC_UNDERFLOW


class DivisionByZero(ArithmeticFault):
    """Raised when a ratio is taken over a zero denominator (e.g. empty pool with shares outstanding)."""

    code = VaultErrorCode.DIVISION_BY_ZERO


class ExternalReadFailure(VaultError):
    """Raised when the balance authority cannot report the pool total."""

    code = VaultErrorCode.EXTERNAL_READ_FAILURE


class ExternalPayoutFailure(VaultError):
    """Raised when the transfer authority refuses or fails a payout."""

    code = VaultErrorCode.EXTERNAL_PAYOUT_FAILURE


class InvalidHolderIdentity(VaultError):
    code = VaultErrorCode.INVALID_HOLDER_IDENTITY


class UnrecognizedOperation(VaultError):
    """Raised for any message that cannot be classified. There is no no-op fallthrough."""

    code = VaultErrorCode.UNRECOGNIZED_OPERATION


class StaleVaultState(VaultError):
    """Raised by a state store when the persisted version moved under the writer."""

    code = VaultErrorCode.STALE_VAULT_STATE


__all__ = [
    "ArithmeticFault",
    "ArithmeticOverflow",
    "ArithmeticUnderflow",
    "DivisionByZero",
    "ExternalPayoutFailure",
    "ExternalReadFailure",
    "InsufficientShareBalance",
    "InvalidDeposit",
    "InvalidHolderIdentity",
    "StaleVaultState",
    "UnrecognizedOperation",
    "VaultError",
    "VaultErrorCode",
    "ZeroMintResult",
    "ZeroReturnResult",
    "ZeroSupply",
]
