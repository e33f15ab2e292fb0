"""
Pool total observers.

Two sources for the pool total the exchange rate is priced against:

- ExternalPoolObserver: asks the balance authority what the pool holds right
  now. Anything transferred in without minting (a donation) moves the rate.
- LedgeredPoolObserver: uses the vault's own deposits-minus-payouts ledger
  (`VaultState.net_assets`). Donations are invisible to pricing.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sharevault.common.config import VaultConfig
from sharevault.vault.errors import ArithmeticFault, ArithmeticUnderflow, ExternalReadFailure, InvalidDeposit
from sharevault.vault.interfaces import BalanceAuthority
from sharevault.vault.ledgers import VaultState
from sharevault.vault.uint import checked_sub, require_uint

logger = logging.getLogger(__name__)


class PoolObserver(ABC):
    source: str = "abstract"

    @abstractmethod
    def current_pool_total(self, state: VaultState) -> int:
        """Pool total at call time."""

    @abstractmethod
    def pre_deposit_total(self, state: VaultState, deposit_amount: int) -> int:
        """Pool total excluding `deposit_amount`, which has already been received."""


class ExternalPoolObserver(PoolObserver):
    source = "external"

    def __init__(self, *, authority: BalanceAuthority, pool: str, denom: str) -> None:
        self._authority = authority
        self._pool = pool
        self._denom = denom

    def current_pool_total(self, state: VaultState) -> int:
        try:
            total = self._authority.total_held(self._pool, self._denom)
        except Exception as e:
            raise ExternalReadFailure(f"balance authority failed for pool={self._pool} denom={self._denom}: {e}") from e
        try:
            return require_uint(total, name="pool_total")
        except (TypeError, ArithmeticFault) as e:
            raise ExternalReadFailure(f"balance authority returned an invalid total {total!r}") from e

    def pre_deposit_total(self, state: VaultState, deposit_amount: int) -> int:
        # The deposit has already landed in custody; take it back out to price at the pre-deposit rate.
        held = self.current_pool_total(state)
        try:
            return checked_sub(held, deposit_amount)
        except ArithmeticUnderflow as e:
            raise InvalidDeposit(
                f"deposit of {deposit_amount}{self._denom} exceeds the {held}{self._denom} held by {self._pool}; funds never arrived"
            ) from e


class LedgeredPoolObserver(PoolObserver):
    source = "ledgered"

    def current_pool_total(self, state: VaultState) -> int:
        return state.net_assets

    def pre_deposit_total(self, state: VaultState, deposit_amount: int) -> int:
        # The ledger only learns about the deposit when the transition commits.
        return state.net_assets


def build_pool_observer(config: VaultConfig, authority: BalanceAuthority) -> PoolObserver:
    if config.asset_source == "ledgered":
        logger.info("vault.observer source=ledgered vault_id=%s", config.vault_id)
        return LedgeredPoolObserver()
    return ExternalPoolObserver(authority=authority, pool=config.pool_address, denom=config.denom)
