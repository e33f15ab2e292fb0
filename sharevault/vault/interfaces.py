from __future__ import annotations

from abc import ABC, abstractmethod


class BalanceAuthority(ABC):
    """
    Read-only view of custodial balances.

    Implementations report what the pool actually holds, donations included.
    The vault treats the value as untrusted input.
    """

    @abstractmethod
    def total_held(self, pool: str, denom: str) -> int:
        """Return the amount of `denom` currently held by `pool`."""


class TransferAuthority(ABC):
    """Executes outbound payouts from the pool."""

    @abstractmethod
    def pay(self, to: str, denom: str, amount: int) -> bool:
        """
        Pay `amount` of `denom` from the pool to `to`.

        Returns True on success. Returning False or raising is a failed payout.
        """


class IdentityValidator(ABC):
    @abstractmethod
    def validate(self, raw: str) -> str:
        """Return the canonical holder identity for `raw` or raise InvalidHolderIdentity."""
