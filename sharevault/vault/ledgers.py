"""
Share ledgers and the vault state snapshot.

All three types are immutable: every mutator returns a new instance. A
transition therefore either produces a complete new `VaultState` or raises,
and the caller decides when (and whether) to commit it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

from sharevault.vault.errors import InsufficientShareBalance
from sharevault.vault.uint import checked_add, checked_sub, require_uint


@dataclass(frozen=True, slots=True)
class SupplyLedger:
    """Total shares outstanding."""

    total: int = 0

    def __post_init__(self) -> None:
        require_uint(self.total, name="total_supply")

    def increase(self, amount: int) -> "SupplyLedger":
        return SupplyLedger(total=checked_add(self.total, require_uint(amount, name="amount")))

    def decrease(self, amount: int) -> "SupplyLedger":
        return SupplyLedger(total=checked_sub(self.total, require_uint(amount, name="amount")))


@dataclass(frozen=True)
class HolderLedger:
    """
    Holder identity -> share balance.

    Holders appear on first credit. A balance that drops to zero is kept.
    """

    balances: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen: Dict[str, int] = {}
        for holder, amount in dict(self.balances).items():
            frozen[str(holder)] = require_uint(amount, name=f"balance[{holder}]")
        object.__setattr__(self, "balances", MappingProxyType(frozen))

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def credit(self, holder: str, amount: int) -> "HolderLedger":
        new_balances = dict(self.balances)
        new_balances[holder] = checked_add(self.balance_of(holder), require_uint(amount, name="amount"))
        return HolderLedger(balances=new_balances)

    def debit(self, holder: str, amount: int) -> "HolderLedger":
        require_uint(amount, name="amount")
        current = self.balance_of(holder)
        if amount > current:
            raise InsufficientShareBalance(f"{holder} holds {current} shares, cannot debit {amount}")
        new_balances = dict(self.balances)
        new_balances[holder] = current - amount
        return HolderLedger(balances=new_balances)

    def total(self) -> int:
        return sum(self.balances.values())

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(sorted(self.balances.items()))

    def __len__(self) -> int:
        return len(self.balances)


@dataclass(frozen=True)
class VaultState:
    """
    Snapshot of a single vault.

    - `supply` / `holders`: the share ledgers; supply.total == holders.total() always.
    - `net_assets`: assets that entered through deposits minus assets paid out.
      Maintained in every mode; only the ledgered asset source prices with it.
    - `version`: bumped by every committed transition (compare-and-set key for stores).
    """

    supply: SupplyLedger = field(default_factory=SupplyLedger)
    holders: HolderLedger = field(default_factory=HolderLedger)
    net_assets: int = 0
    version: int = 0

    def __post_init__(self) -> None:
        require_uint(self.net_assets, name="net_assets")
        if self.version < 0:
            raise ValueError("version must be >= 0")

    @staticmethod
    def empty() -> "VaultState":
        return VaultState()

    @property
    def total_supply(self) -> int:
        return self.supply.total

    def balance_of(self, holder: str) -> int:
        return self.holders.balance_of(holder)

    def is_consistent(self) -> bool:
        return self.supply.total == self.holders.total()

    def bumped(self, **changes) -> "VaultState":  # type: ignore[no-untyped-def]
        return replace(self, version=self.version + 1, **changes)
