from __future__ import annotations

"""
Share <-> asset exchange rate.

Pure functions of (amount, total_supply, pool_total). Nothing here reads or
writes state.

Timing of the pool total:
- mint prices against the total *before* the deposit, so a deposit never moves
  the rate it is priced at;
- burn prices against the total *at redemption*, which includes anything that
  reached the pool without minting (donations). With an external pool total
  that is the manipulation vector; see `LedgeredPoolObserver` for the source
  that closes it.
"""

from typing import Optional

from sharevault.vault.errors import ZeroMintResult, ZeroReturnResult, ZeroSupply
from sharevault.vault.rounding import FLOOR, RoundingPolicy
from sharevault.vault.uint import require_uint


class ExchangeRateCalculator:
    def __init__(self, rounding: Optional[RoundingPolicy] = None) -> None:
        self.rounding = rounding or FLOOR

    def shares_to_mint(self, *, deposit_amount: int, total_supply: int, total_assets_before_deposit: int) -> int:
        """
        Shares minted for `deposit_amount`.

        - Empty supply bootstraps at 1:1.
        - Otherwise `deposit_amount * total_supply / total_assets_before_deposit`.
        - A zero result raises ZeroMintResult so the depositor never pays in for nothing.
        """
        require_uint(deposit_amount, name="deposit_amount")
        require_uint(total_supply, name="total_supply")
        require_uint(total_assets_before_deposit, name="total_assets_before_deposit")

        if total_supply == 0:
            shares = deposit_amount
        else:
            shares = self.rounding.multiply_ratio(deposit_amount, total_supply, total_assets_before_deposit)

        if shares == 0:
            raise ZeroMintResult(
                f"deposit of {deposit_amount} mints zero shares "
                f"(total_supply={total_supply} total_assets={total_assets_before_deposit})"
            )
        return shares

    def assets_to_return(self, *, burn_shares: int, total_supply: int, total_assets_now: int) -> int:
        require_uint(burn_shares, name="burn_shares")
        require_uint(total_supply, name="total_supply")
        require_uint(total_assets_now, name="total_assets_now")

        if total_supply == 0:
            raise ZeroSupply("no shares outstanding; nothing to redeem against")

        assets = self.rounding.multiply_ratio(burn_shares, total_assets_now, total_supply)
        if assets == 0:
            raise ZeroReturnResult(
                f"burning {burn_shares} shares returns zero assets "
                f"(total_supply={total_supply} total_assets={total_assets_now})"
            )
        return assets
