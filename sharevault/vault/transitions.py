from __future__ import annotations

"""
Pure vault state transitions.

`apply_deposit` / `apply_redeem` take the current `VaultState` plus the pool
total observed for the operation and return `(new_state, receipt)`. They
never touch collaborators, so the same transitions back the in-process
service and the Firestore-backed store.

Assertions:
- ledgers are mutated exactly once per operation, after the calculator
  produced a non-zero result
- supply.total == sum(holder balances) before and after
- the input state is never modified, so a failure leaves nothing to undo
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sharevault.vault.errors import InsufficientShareBalance, InvalidDeposit, ZeroSupply
from sharevault.vault.exchange_rate import ExchangeRateCalculator
from sharevault.vault.ledgers import VaultState
from sharevault.vault.uint import MAX_UINT128, checked_add, checked_sub, require_uint


@dataclass(frozen=True, slots=True)
class PayoutInstruction:
    to: str
    denom: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {"to": self.to, "denom": self.denom, "amount": str(self.amount)}


@dataclass(frozen=True, slots=True)
class DepositReceipt:
    holder: str
    asset: int
    shares: int
    pool_total_before: int
    total_supply_after: int
    action: str = "mint"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "holder": self.holder,
            "asset": str(self.asset),
            "shares": str(self.shares),
            "pool_total_before": str(self.pool_total_before),
            "total_supply_after": str(self.total_supply_after),
        }


@dataclass(frozen=True, slots=True)
class RedemptionReceipt:
    holder: str
    asset: int
    shares: int
    pool_total: int
    total_supply_after: int
    payout: Optional[PayoutInstruction] = None
    action: str = "burn"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "holder": self.holder,
            "asset": str(self.asset),
            "shares": str(self.shares),
            "pool_total": str(self.pool_total),
            "total_supply_after": str(self.total_supply_after),
            "payout": self.payout.to_dict() if self.payout is not None else None,
        }


def validate_deposit_amount(amount: Any, *, min_deposit: int = 1) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidDeposit(f"deposit amount must be an int, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidDeposit(f"deposit amount must be > 0, got {amount}")
    if amount > MAX_UINT128:
        raise InvalidDeposit(f"deposit amount {amount} exceeds MAX_UINT128")
    if amount < min_deposit:
        raise InvalidDeposit(f"deposit amount {amount} is below the minimum {min_deposit}")
    return amount


def validate_redeem(state: VaultState, *, holder: str, shares: Any) -> int:
    """
    Redeem preconditions, checked in this order:
    - ZeroSupply when nothing is outstanding (regardless of `shares`)
    - InsufficientShareBalance for a non-positive amount or more than the holder owns
    """
    if state.total_supply == 0:
        raise ZeroSupply("no shares outstanding; nothing to redeem against")
    if isinstance(shares, bool) or not isinstance(shares, int):
        raise InsufficientShareBalance(f"share amount must be an int, got {type(shares).__name__}")
    if shares <= 0:
        raise InsufficientShareBalance(f"share amount must be > 0, got {shares}")
    held = state.balance_of(holder)
    if shares > held:
        raise InsufficientShareBalance(f"{holder} holds {held} shares, cannot redeem {shares}")
    return shares


def apply_deposit(
    *,
    state: VaultState,
    depositor: str,
    amount: int,
    pool_total_before: int,
    calculator: ExchangeRateCalculator,
    min_deposit: int = 1,
) -> Tuple[VaultState, DepositReceipt]:
    """
    Pure transition: mint shares for `amount` already received by the pool.

    `pool_total_before` is the pool total excluding this deposit.
    """
    amount = validate_deposit_amount(amount, min_deposit=min_deposit)

    shares = calculator.shares_to_mint(
        deposit_amount=amount,
        total_supply=state.total_supply,
        total_assets_before_deposit=pool_total_before,
    )

    new_supply = state.supply.increase(shares)
    new_holders = state.holders.credit(depositor, shares)
    new_state = state.bumped(
        supply=new_supply,
        holders=new_holders,
        net_assets=checked_add(state.net_assets, amount),
    )
    receipt = DepositReceipt(
        holder=depositor,
        asset=amount,
        shares=shares,
        pool_total_before=pool_total_before,
        total_supply_after=new_supply.total,
    )
    return new_state, receipt


def apply_redeem(
    *,
    state: VaultState,
    holder: str,
    shares: int,
    pool_total: int,
    calculator: ExchangeRateCalculator,
    denom: str,
) -> Tuple[VaultState, RedemptionReceipt]:
    """
    Pure transition: burn `shares` and compute the payout owed to `holder`.

    The returned receipt carries the payout instruction; dispatching it is the
    caller's job, and the caller must not commit `new_state` if it fails.
    """
    shares = validate_redeem(state, holder=holder, shares=shares)

    assets = calculator.assets_to_return(
        burn_shares=shares,
        total_supply=state.total_supply,
        total_assets_now=pool_total,
    )

    new_supply = state.supply.decrease(shares)
    new_holders = state.holders.debit(holder, shares)
    # Donations make the payout exceed what the ledger saw come in; clamp at zero.
    net_assets = checked_sub(state.net_assets, min(assets, state.net_assets))
    new_state = state.bumped(supply=new_supply, holders=new_holders, net_assets=net_assets)
    receipt = RedemptionReceipt(
        holder=holder,
        asset=assets,
        shares=shares,
        pool_total=pool_total,
        total_supply_after=new_supply.total,
        payout=PayoutInstruction(to=holder, denom=denom, amount=assets),
    )
    return new_state, receipt


def revert_redeem(*, state: VaultState, holder: str, shares: int, net_assets_debited: int) -> VaultState:
    """
    Pure transition undoing a committed burn whose payout never happened.

    Applied to whatever state is current, not the pre-burn snapshot: the
    holder gets `shares` back and the ledgered assets regain what the burn
    deducted.
    """
    return state.bumped(
        supply=state.supply.increase(shares),
        holders=state.holders.credit(holder, shares),
        net_assets=checked_add(state.net_assets, require_uint(net_assets_debited, name="net_assets_debited")),
    )
