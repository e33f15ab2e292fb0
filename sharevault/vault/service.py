"""
VaultService: deposit (mint) and redeem (burn) orchestration.

Every operation runs under one lock covering the state load, the pool-total
read, the pure transition and the commit, so two deposits can never price
against the same stale pool total and a redemption never sees a deposit whose
credit has not committed.

Redeem ordering:
  observe -> transition -> commit ledgers -> pay
If the payout fails, the burn is reversed on the latest stored state (a new
version) before ExternalPayoutFailure propagates.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from sharevault.common.config import VaultConfig
from sharevault.common.logging import bind_operation_id, log_event
from sharevault.vault.errors import (
    ExternalPayoutFailure,
    InvalidDeposit,
    StaleVaultState,
    UnrecognizedOperation,
    VaultError,
)
from sharevault.vault.exchange_rate import ExchangeRateCalculator
from sharevault.vault.identity import AddressValidator
from sharevault.vault.interfaces import BalanceAuthority, IdentityValidator, TransferAuthority
from sharevault.vault.ledgers import VaultState
from sharevault.vault.messages import (
    BalanceQuery,
    ConfigQuery,
    DepositMsg,
    RedeemMsg,
    parse_execute_msg,
    parse_query_msg,
    single_payment,
)
from sharevault.vault.observer import PoolObserver, build_pool_observer
from sharevault.vault.store import InMemoryVaultStore, VaultStateStore
from sharevault.vault.transitions import (
    DepositReceipt,
    PayoutInstruction,
    RedemptionReceipt,
    apply_deposit,
    apply_redeem,
    revert_redeem,
    validate_deposit_amount,
    validate_redeem,
)

logger = logging.getLogger(__name__)


class VaultSnapshot(BaseModel):
    """Read-only view of the vault for queries and dashboards."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    vault_id: str
    denom: str
    asset_source: str
    total_supply: int = Field(..., ge=0)
    holders: int = Field(..., ge=0)
    net_assets: int = Field(..., ge=0)
    version: int = Field(..., ge=0)


class VaultService:
    # Reversal attempts after a failed payout before giving up on the restore.
    rollback_attempts: int = 5

    def __init__(
        self,
        *,
        config: VaultConfig,
        balances: BalanceAuthority,
        transfers: TransferAuthority,
        identity: Optional[IdentityValidator] = None,
        store: Optional[VaultStateStore] = None,
        calculator: Optional[ExchangeRateCalculator] = None,
        observer: Optional[PoolObserver] = None,
    ) -> None:
        self.config = config
        self._transfers = transfers
        self._identity = identity or AddressValidator()
        self._store = store or InMemoryVaultStore()
        self._calculator = calculator or ExchangeRateCalculator()
        self._observer = observer or build_pool_observer(config, balances)
        self._lock = threading.RLock()

    # ---- queries ----
    def total_supply(self) -> int:
        with self._lock:
            return self._store.load().total_supply

    def balance_of(self, holder: str) -> int:
        addr = self._identity.validate(holder)
        with self._lock:
            return self._store.load().balance_of(addr)

    def state(self) -> VaultState:
        with self._lock:
            return self._store.load()

    def snapshot(self) -> VaultSnapshot:
        st = self.state()
        return VaultSnapshot(
            vault_id=self.config.vault_id,
            denom=self.config.denom,
            asset_source=self._observer.source,
            total_supply=st.total_supply,
            holders=len(st.holders),
            net_assets=st.net_assets,
            version=st.version,
        )

    # ---- operations ----
    def deposit(self, depositor: str, amount: int, *, denom: Optional[str] = None) -> int:
        """Mint shares for `amount` already received by the pool. Returns the minted shares."""
        return self.deposit_with_receipt(depositor, amount, denom=denom).shares

    def redeem(self, holder: str, shares: int) -> int:
        """Burn `shares` and pay the holder. Returns the asset amount paid."""
        return self.redeem_with_receipt(holder, shares).asset

    def deposit_with_receipt(self, depositor: str, amount: int, *, denom: Optional[str] = None) -> DepositReceipt:
        with bind_operation_id():
            try:
                addr = self._identity.validate(depositor)
                if denom is not None and denom != self.config.denom:
                    raise InvalidDeposit(f"unrecognized denom {denom!r}; this vault accepts {self.config.denom!r}")
                amt = validate_deposit_amount(amount, min_deposit=self.config.min_deposit)

                with self._lock:
                    state = self._store.load()
                    pool_total_before = self._observer.pre_deposit_total(state, amt)
                    new_state, receipt = apply_deposit(
                        state=state,
                        depositor=addr,
                        amount=amt,
                        pool_total_before=pool_total_before,
                        calculator=self._calculator,
                        min_deposit=self.config.min_deposit,
                    )
                    self._store.save(new_state, expected_version=state.version)
            except VaultError as e:
                log_event(
                    logger,
                    "vault.deposit_rejected",
                    severity="WARNING",
                    vault_id=self.config.vault_id,
                    holder=str(depositor),
                    amount=str(amount),
                    error_code=e.code,
                    error=str(e),
                )
                raise

        log_event(logger, "vault.deposit", vault_id=self.config.vault_id, **receipt.to_dict())
        return receipt

    def redeem_with_receipt(self, holder: str, shares: int) -> RedemptionReceipt:
        with bind_operation_id():
            try:
                addr = self._identity.validate(holder)
                with self._lock:
                    state = self._store.load()
                    # Preconditions first: an empty vault reports ZeroSupply without touching the authority.
                    validate_redeem(state, holder=addr, shares=shares)
                    pool_total = self._observer.current_pool_total(state)
                    new_state, receipt = apply_redeem(
                        state=state,
                        holder=addr,
                        shares=shares,
                        pool_total=pool_total,
                        calculator=self._calculator,
                        denom=self.config.denom,
                    )
                    self._store.save(new_state, expected_version=state.version)
                    try:
                        self._dispatch_payout(receipt.payout)
                    except ExternalPayoutFailure as payout_err:
                        self._roll_back(
                            receipt,
                            net_assets_debited=state.net_assets - new_state.net_assets,
                            payout_err=payout_err,
                        )
                        raise
            except VaultError as e:
                log_event(
                    logger,
                    "vault.redeem_rejected",
                    severity="WARNING",
                    vault_id=self.config.vault_id,
                    holder=str(holder),
                    shares=str(shares),
                    error_code=e.code,
                    error=str(e),
                )
                raise

        log_event(logger, "vault.redeem", vault_id=self.config.vault_id, **receipt.to_dict())
        return receipt

    def _dispatch_payout(self, payout: Optional[PayoutInstruction]) -> None:
        if payout is None:
            raise ExternalPayoutFailure("redemption produced no payout instruction")
        try:
            ok = self._transfers.pay(payout.to, payout.denom, payout.amount)
        except Exception as e:
            log_event(logger, "vault.payout_failed", severity="ERROR", error=str(e), **payout.to_dict())
            raise ExternalPayoutFailure(f"payout of {payout.amount}{payout.denom} to {payout.to} failed: {e}") from e
        if not ok:
            log_event(logger, "vault.payout_failed", severity="ERROR", error="refused", **payout.to_dict())
            raise ExternalPayoutFailure(f"payout of {payout.amount}{payout.denom} to {payout.to} was refused")

    def _roll_back(
        self,
        receipt: RedemptionReceipt,
        *,
        net_assets_debited: int,
        payout_err: ExternalPayoutFailure,
    ) -> None:
        """
        Give the burned shares back after a failed payout.

        The reversal is applied to the latest stored state, so a writer that
        committed after the burn is kept. A stale save is re-applied on a fresh
        load; any other store error, or running out of attempts, raises
        ExternalPayoutFailure chained to the store error.
        """
        restore_err: Optional[BaseException] = None
        for attempt in range(1, self.rollback_attempts + 1):
            try:
                current = self._store.load()
                restored = revert_redeem(
                    state=current,
                    holder=receipt.holder,
                    shares=receipt.shares,
                    net_assets_debited=net_assets_debited,
                )
                self._store.save(restored, expected_version=current.version)
            except StaleVaultState as e:
                restore_err = e
                continue
            except Exception as e:
                restore_err = e
                break
            log_event(
                logger,
                "vault.state_rolled_back",
                severity="WARNING",
                vault_id=self.config.vault_id,
                holder=receipt.holder,
                shares=str(receipt.shares),
                state_version=restored.version,
                attempts=attempt,
            )
            return

        log_event(
            logger,
            "vault.rollback_failed",
            severity="ERROR",
            vault_id=self.config.vault_id,
            holder=receipt.holder,
            shares=str(receipt.shares),
            error=str(restore_err),
        )
        raise ExternalPayoutFailure(
            f"{payout_err}; restoring {receipt.shares} shares to {receipt.holder} failed: {restore_err}"
        ) from restore_err

    # ---- message surface ----
    def execute(self, sender: str, payload: Any, *, funds: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Handle one execute message for `sender`.

        `funds` maps denom -> amount for the coins the host moved from `sender`
        into the pool along with this message. A deposit mints for exactly
        those funds; a redeem must not carry any.

        Returns the receipt as a dict. Unknown or malformed messages raise
        UnrecognizedOperation.
        """
        msg = parse_execute_msg(payload)
        with bind_operation_id():
            if isinstance(msg, DepositMsg):
                try:
                    amount = single_payment(funds, self.config.denom)
                except InvalidDeposit as e:
                    log_event(
                        logger,
                        "vault.deposit_rejected",
                        severity="WARNING",
                        vault_id=self.config.vault_id,
                        holder=str(sender),
                        error_code=e.code,
                        error=str(e),
                    )
                    raise
                return self.deposit_with_receipt(sender, amount, denom=self.config.denom).to_dict()
            if isinstance(msg, RedeemMsg):
                if funds:
                    raise InvalidDeposit(f"redeem does not accept funds, got {sorted(funds)}")
                return self.redeem_with_receipt(sender, msg.shares).to_dict()
        raise UnrecognizedOperation(f"no handler for {type(msg).__name__}")

    def query(self, payload: Any) -> Dict[str, Any]:
        msg = parse_query_msg(payload)
        if isinstance(msg, ConfigQuery):
            return self.snapshot().model_dump()
        if isinstance(msg, BalanceQuery):
            addr = self._identity.validate(msg.address)
            return {"address": addr, "shares": self.balance_of(addr)}
        raise UnrecognizedOperation(f"no handler for {type(msg).__name__}")
