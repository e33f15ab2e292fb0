from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from sharevault.vault.errors import StaleVaultState
from sharevault.vault.ledgers import VaultState


class VaultStateStore(ABC):
    """
    Where the committed `VaultState` lives.

    `save` is compare-and-set on `VaultState.version`: it succeeds only when the
    stored version still equals `expected_version`.
    """

    @abstractmethod
    def load(self) -> VaultState:
        ...

    @abstractmethod
    def save(self, state: VaultState, *, expected_version: int) -> None:
        ...


class InMemoryVaultStore(VaultStateStore):
    def __init__(self, initial: VaultState | None = None) -> None:
        self._state = initial or VaultState.empty()
        self._lock = threading.Lock()

    def load(self) -> VaultState:
        with self._lock:
            return self._state

    def save(self, state: VaultState, *, expected_version: int) -> None:
        with self._lock:
            if self._state.version != expected_version:
                raise StaleVaultState(
                    f"stored version {self._state.version} != expected {expected_version}; refusing to overwrite"
                )
            self._state = state
