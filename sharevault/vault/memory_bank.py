"""
In-process bank: balance authority + transfer authority for one pool.

Used for local simulation and tests. `transaction()` emulates a host that
executes a message sequence all-or-nothing: balances are snapshotted on entry
and restored if the body raises, and the bank lock is held throughout so
sequences from different threads never interleave. When threads share a bank,
run every vault operation inside `transaction()` so the bank lock is always
taken before the vault lock.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from sharevault.common.config import DEFAULT_DENOM
from sharevault.vault.errors import InvalidDeposit
from sharevault.vault.interfaces import BalanceAuthority, TransferAuthority
from sharevault.vault.uint import checked_add, checked_sub, require_uint

logger = logging.getLogger(__name__)

_Key = Tuple[str, str]


class InsufficientFunds(RuntimeError):
    pass


class InMemoryBank(BalanceAuthority, TransferAuthority):
    def __init__(self, *, pool: str, denom: str = DEFAULT_DENOM) -> None:
        self.pool = pool
        self.denom = denom
        self._balances: Dict[_Key, int] = {}
        self._lock = threading.RLock()

    def balance(self, address: str, denom: str | None = None) -> int:
        with self._lock:
            return self._balances.get((address, denom or self.denom), 0)

    def mint(self, address: str, amount: int, denom: str | None = None) -> None:
        """Create funds out of thin air (test/simulation faucet)."""
        key = (address, denom or self.denom)
        with self._lock:
            self._balances[key] = checked_add(self._balances.get(key, 0), require_uint(amount, name="amount"))

    def transfer(self, source: str, target: str, amount: int, denom: str | None = None) -> None:
        d = denom or self.denom
        require_uint(amount, name="amount")
        with self._lock:
            have = self._balances.get((source, d), 0)
            if amount > have:
                raise InsufficientFunds(f"{source} has {have}{d}, cannot send {amount}{d}")
            self._balances[(source, d)] = checked_sub(have, amount)
            self._balances[(target, d)] = checked_add(self._balances.get((target, d), 0), amount)

    def send_to_pool(self, source: str, amount: int, denom: str | None = None) -> None:
        """Funds-attached-to-message: move `amount` from `source` into the pool."""
        if amount <= 0:
            raise InvalidDeposit(f"no funds sent (amount={amount})")
        self.transfer(source, self.pool, amount, denom)

    # BalanceAuthority
    def total_held(self, pool: str, denom: str) -> int:
        return self.balance(pool, denom)

    # TransferAuthority
    def pay(self, to: str, denom: str, amount: int) -> bool:
        self.transfer(self.pool, to, amount, denom)
        logger.debug("bank.pay to=%s denom=%s amount=%s", to, denom, amount)
        return True

    @contextmanager
    def transaction(self) -> Iterator["InMemoryBank"]:
        with self._lock:
            snapshot = dict(self._balances)
            try:
                yield self
            except BaseException:
                self._balances = snapshot
                raise
