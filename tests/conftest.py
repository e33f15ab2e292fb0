from __future__ import annotations

from typing import Callable

import pytest

from sharevault.common.config import VaultConfig
from sharevault.vault.memory_bank import InMemoryBank
from sharevault.vault.service import VaultService
from tests.holders import USER, USER2

VAULT_ENV_VARS = (
    "VAULT_ID",
    "VAULT_POOL_ADDRESS",
    "VAULT_DENOM",
    "VAULT_MIN_DEPOSIT",
    "VAULT_ASSET_SOURCE",
)


@pytest.fixture(autouse=True)
def _isolate_vault_env(monkeypatch) -> None:
    # Developer shells may export VAULT_*; tests build their config explicitly.
    for name in VAULT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> VaultConfig:
    return VaultConfig()


@pytest.fixture
def bank(config: VaultConfig) -> InMemoryBank:
    b = InMemoryBank(pool=config.pool_address, denom=config.denom)
    b.mint(USER, 10_000)
    b.mint(USER2, 10_000)
    return b


@pytest.fixture
def vault(config: VaultConfig, bank: InMemoryBank) -> VaultService:
    return VaultService(config=config, balances=bank, transfers=bank)


@pytest.fixture
def deposit(bank: InMemoryBank, vault: VaultService) -> Callable[[str, int], int]:
    """
    Host-style deposit: send funds to the pool and mint in one all-or-nothing step.
    """

    def _deposit(holder: str, amount: int) -> int:
        with bank.transaction():
            bank.send_to_pool(holder, amount)
            return vault.deposit(holder, amount)

    return _deposit


@pytest.fixture
def host_execute(bank: InMemoryBank, vault: VaultService) -> Callable[..., dict]:
    """
    Host-style execute: move the attached funds from the sender into the pool,
    then run the message, all-or-nothing.
    """

    def _execute(sender: str, payload, funds=None) -> dict:  # type: ignore[no-untyped-def]
        with bank.transaction():
            for denom, amount in (funds or {}).items():
                bank.send_to_pool(sender, int(amount), denom)
            return vault.execute(sender, payload, funds=funds)

    return _execute
