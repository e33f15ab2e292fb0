from __future__ import annotations

import logging

import pytest

from sharevault.common.config import VaultConfig
from sharevault.vault.errors import (
    ExternalPayoutFailure,
    ExternalReadFailure,
    InsufficientShareBalance,
    InvalidDeposit,
    InvalidHolderIdentity,
    StaleVaultState,
    VaultErrorCode,
    ZeroSupply,
)
from sharevault.vault.interfaces import BalanceAuthority
from sharevault.vault.memory_bank import InMemoryBank
from sharevault.vault.ledgers import VaultState
from sharevault.vault.service import VaultService
from sharevault.vault.store import InMemoryVaultStore
from tests.holders import USER, USER2


def test_basic_flow_round_trips_every_deposit(bank, vault, deposit) -> None:
    assert deposit(USER, 10_000) == 10_000
    assert deposit(USER2, 10_000) == 10_000
    assert vault.total_supply() == 20_000

    balance = vault.balance_of(USER)
    assert vault.redeem(USER, balance) == 10_000
    assert vault.redeem(USER2, balance) == 10_000

    assert bank.balance(USER) == 10_000
    assert bank.balance(USER2) == 10_000
    assert bank.balance(bank.pool) == 0
    assert vault.total_supply() == 0
    assert vault.state().is_consistent()


def test_supply_matches_holder_sum_after_every_operation(vault, deposit) -> None:
    steps = [("d", USER, 3_000), ("d", USER2, 1_234), ("r", USER, 1_000), ("d", USER, 17), ("r", USER2, 1_234)]
    for kind, who, amount in steps:
        if kind == "d":
            deposit(who, amount)
        else:
            vault.redeem(who, amount)
        st = vault.state()
        assert st.total_supply == sum(shares for _, shares in st.holders)


def test_unknown_holder_balance_is_zero(vault) -> None:
    assert vault.balance_of("nobody") == 0


def test_redeem_on_empty_vault_is_zero_supply_even_without_balance_read(config) -> None:
    class ExplodingAuthority(BalanceAuthority):
        def total_held(self, pool: str, denom: str) -> int:
            raise AssertionError("balance authority must not be consulted")

    bank = InMemoryBank(pool=config.pool_address)
    svc = VaultService(config=config, balances=ExplodingAuthority(), transfers=bank)
    with pytest.raises(ZeroSupply):
        svc.redeem(USER, 1)


def test_redeem_more_than_held_leaves_both_ledgers_unchanged(bank, vault, deposit) -> None:
    deposit(USER, 500)
    before = vault.state()
    with pytest.raises(InsufficientShareBalance):
        vault.redeem(USER, 501)
    with pytest.raises(InsufficientShareBalance):
        vault.redeem(USER2, 1)
    assert vault.state() == before
    assert bank.balance(bank.pool) == 500


def test_deposit_rejects_wrong_denom_and_small_amounts(bank) -> None:
    cfg = VaultConfig(min_deposit=10_000)
    svc = VaultService(config=cfg, balances=bank, transfers=bank)
    with pytest.raises(InvalidDeposit):
        svc.deposit(USER, 10_000, denom="uother")
    with pytest.raises(InvalidDeposit):
        svc.deposit(USER, 9_999)
    with pytest.raises(InvalidDeposit):
        svc.deposit(USER, 0)
    assert svc.total_supply() == 0


def test_holder_identity_is_validated(vault) -> None:
    for raw in ("", "   ", "User", "a b", "x"):
        with pytest.raises(InvalidHolderIdentity):
            vault.deposit(raw, 10)


def test_balance_read_failure_is_external_read_failure(config) -> None:
    class DownAuthority(BalanceAuthority):
        def total_held(self, pool: str, denom: str) -> int:
            raise ConnectionError("balance node unreachable")

    bank = InMemoryBank(pool=config.pool_address)
    svc = VaultService(config=config, balances=DownAuthority(), transfers=bank)
    with pytest.raises(ExternalReadFailure) as ei:
        svc.deposit(USER, 10)
    assert isinstance(ei.value.__cause__, ConnectionError)
    assert svc.total_supply() == 0


def test_payout_failure_rolls_back_ledgers(bank, vault, deposit, monkeypatch) -> None:
    deposit(USER, 1_000)
    before = vault.state()

    def _refuse(to: str, denom: str, amount: int) -> bool:
        return False

    monkeypatch.setattr(bank, "pay", _refuse)
    with pytest.raises(ExternalPayoutFailure):
        vault.redeem(USER, 400)

    after = vault.state()
    assert after.balance_of(USER) == before.balance_of(USER) == 1_000
    assert after.total_supply == 1_000
    assert after.net_assets == before.net_assets
    # Restored contents are written as a new version, never by rewinding the counter.
    assert after.version == before.version + 2
    assert bank.balance(USER) == 9_000


def test_payout_exception_is_wrapped(bank, vault, deposit, monkeypatch) -> None:
    deposit(USER, 1_000)

    def _boom(to: str, denom: str, amount: int) -> bool:
        raise TimeoutError("transfer relay timed out")

    monkeypatch.setattr(bank, "pay", _boom)
    with pytest.raises(ExternalPayoutFailure) as ei:
        vault.redeem(USER, 1_000)
    assert isinstance(ei.value.__cause__, TimeoutError)
    assert vault.balance_of(USER) == 1_000


def test_operations_emit_semantic_log_events(vault, deposit, caplog) -> None:
    caplog.set_level(logging.INFO, logger="sharevault.vault.service")
    deposit(USER, 100)
    vault.redeem(USER, 40)
    with pytest.raises(InsufficientShareBalance):
        vault.redeem(USER, 1_000)

    records = [r for r in caplog.records if r.name == "sharevault.vault.service"]
    assert [getattr(r, "event_type", None) for r in records] == [
        "vault.deposit",
        "vault.redeem",
        "vault.redeem_rejected",
    ]
    assert records[0].shares == "100"
    rejected = records[-1]
    assert rejected.levelno == logging.WARNING
    assert rejected.error_code == VaultErrorCode.INSUFFICIENT_SHARE_BALANCE


def test_snapshot_reports_vault_view(vault, deposit) -> None:
    deposit(USER, 250)
    snap = vault.snapshot()
    assert snap.vault_id == "default"
    assert snap.denom == "uawesome"
    assert snap.asset_source == "external"
    assert snap.total_supply == 250
    assert snap.holders == 1
    assert snap.net_assets == 250
    assert snap.version == 1


class InterleavingStore(InMemoryVaultStore):
    """
    Store whose saves from the `fail_from`-th call on first let `interleave`
    commit (another writer), then refuse the caller's save as stale.
    """

    def __init__(self, *, fail_from: int, failures: int, interleave=None) -> None:  # type: ignore[no-untyped-def]
        super().__init__()
        self.saves = 0
        self.fail_from = fail_from
        self.failures = failures
        self.interleave = interleave

    def save(self, state: VaultState, *, expected_version: int) -> None:
        self.saves += 1
        if self.saves >= self.fail_from and self.failures > 0:
            self.failures -= 1
            if self.interleave is not None:
                current = self.load()
                super().save(self.interleave(current), expected_version=current.version)
            raise StaleVaultState("another writer committed first")
        super().save(state, expected_version=expected_version)


def _refuse(to: str, denom: str, amount: int) -> bool:
    return False


def _service_with(store: InMemoryVaultStore, bank: InMemoryBank) -> VaultService:
    return VaultService(config=VaultConfig(), balances=bank, transfers=bank, store=store)


def _host_deposit(bank: InMemoryBank, svc: VaultService, holder: str, amount: int) -> int:
    with bank.transaction():
        bank.send_to_pool(holder, amount)
        return svc.deposit(holder, amount)


def test_rollback_reapplies_reversal_over_a_concurrent_writer(bank, monkeypatch) -> None:
    def _user2_minted(current: VaultState) -> VaultState:
        return current.bumped(supply=current.supply.increase(7), holders=current.holders.credit(USER2, 7))

    # save 1: deposit, save 2: burn, save 3: first reversal attempt (stale after USER2's write).
    store = InterleavingStore(fail_from=3, failures=1, interleave=_user2_minted)
    svc = _service_with(store, bank)
    _host_deposit(bank, svc, USER, 1_000)

    monkeypatch.setattr(bank, "pay", _refuse)
    with pytest.raises(ExternalPayoutFailure) as ei:
        svc.redeem(USER, 400)
    assert ei.value.__cause__ is None

    st = svc.state()
    assert st.balance_of(USER) == 1_000
    assert st.balance_of(USER2) == 7
    assert st.total_supply == 1_007
    assert st.net_assets == 1_000
    assert st.is_consistent()
    assert bank.balance(USER) == 9_000


def test_rollback_that_cannot_be_saved_still_reports_payout_failure(bank, monkeypatch, caplog) -> None:
    caplog.set_level(logging.INFO, logger="sharevault.vault.service")
    store = InterleavingStore(fail_from=3, failures=100)
    svc = _service_with(store, bank)
    _host_deposit(bank, svc, USER, 1_000)

    monkeypatch.setattr(bank, "pay", _refuse)
    with pytest.raises(ExternalPayoutFailure) as ei:
        svc.redeem(USER, 400)

    # Chained to the store error, which itself happened while handling the refused payout.
    assert isinstance(ei.value.__cause__, StaleVaultState)
    assert isinstance(ei.value.__cause__.__context__, ExternalPayoutFailure)
    assert store.saves == 2 + svc.rollback_attempts

    events = [getattr(r, "event_type", None) for r in caplog.records if r.name == "sharevault.vault.service"]
    assert "vault.rollback_failed" in events
    assert "vault.state_rolled_back" not in events
    assert events[-1] == "vault.redeem_rejected"


def test_deposit_larger_than_the_pool_holds_is_invalid(bank, vault, deposit) -> None:
    deposit(USER, 100)
    with pytest.raises(InvalidDeposit):
        vault.deposit(USER2, 101)
    assert vault.total_supply() == 100
