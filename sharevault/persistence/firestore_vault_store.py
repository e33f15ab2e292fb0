"""
Firestore-backed VaultStateStore.

Firestore schema:
- Vault doc:
    vaults/{vault_id}
      - total_supply (string, Uint128)
      - net_assets (string, Uint128)
      - version (int)
      - updated_at (timestamp)
- Holder docs:
    vaults/{vault_id}/holders/{holder}
      - holder (string)
      - shares (string, Uint128)

Uint128 values are stored as decimal strings: Firestore integers are 64-bit.

`save` runs inside a Firestore transaction: it re-reads the vault doc, refuses
to write unless the stored version equals `expected_version`, then writes the
vault doc and every holder doc whose balance changed since the last load.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from firebase_admin import firestore as admin_firestore

from sharevault.common.logging import log_event
from sharevault.persistence.firestore_retry import with_firestore_retry
from sharevault.vault.errors import StaleVaultState
from sharevault.vault.ledgers import HolderLedger, SupplyLedger, VaultState
from sharevault.vault.store import VaultStateStore

logger = logging.getLogger(__name__)


def _uint_from_doc(v: Any) -> int:
    if v is None:
        return 0
    if isinstance(v, bool):
        raise TypeError("expected Uint128 string, got bool")
    if isinstance(v, int):
        return v
    s = str(v).strip()
    return int(s) if s else 0


def state_from_docs(vault_doc: Optional[Mapping[str, Any]], holder_docs: Iterable[Mapping[str, Any]]) -> VaultState:
    if not vault_doc:
        return VaultState.empty()
    balances: Dict[str, int] = {}
    for doc in holder_docs:
        holder = str(doc.get("holder") or "").strip()
        if not holder:
            continue
        balances[holder] = _uint_from_doc(doc.get("shares"))
    return VaultState(
        supply=SupplyLedger(total=_uint_from_doc(vault_doc.get("total_supply"))),
        holders=HolderLedger(balances=balances),
        net_assets=_uint_from_doc(vault_doc.get("net_assets")),
        version=int(vault_doc.get("version") or 0),
    )


def vault_doc_from_state(state: VaultState) -> Dict[str, Any]:
    return {
        "total_supply": str(state.total_supply),
        "net_assets": str(state.net_assets),
        "version": int(state.version),
    }


def changed_holder_docs(previous: Optional[VaultState], state: VaultState) -> Dict[str, Dict[str, Any]]:
    """Holder docs to write: every holder whose balance differs from `previous` (all of them if unknown)."""
    out: Dict[str, Dict[str, Any]] = {}
    for holder, shares in state.holders:
        if previous is not None and previous.holders.balances.get(holder) == shares:
            continue
        out[holder] = {"holder": holder, "shares": str(shares)}
    return out


class FirestoreVaultStore(VaultStateStore):
    def __init__(self, *, vault_id: str, db: Any | None = None, collection_name: str = "vaults") -> None:
        vid = str(vault_id or "").strip()
        if not vid:
            raise ValueError("vault_id is required")
        if db is None:
            # Lazy import: constructing a client resolves credentials and project id.
            from sharevault.persistence.firebase_client import get_firestore_client

            db = get_firestore_client()
        self._db = db
        self._vault_id = vid
        self._collection_name = str(collection_name).strip() or "vaults"
        self._last_loaded: Optional[VaultState] = None

    def _vault_ref(self):
        return self._db.collection(self._collection_name).document(self._vault_id)

    def load(self) -> VaultState:
        vault_ref = self._vault_ref()

        def _read() -> Tuple[Optional[Dict[str, Any]], list]:
            snap = vault_ref.get()
            vault_doc = snap.to_dict() if getattr(snap, "exists", False) else None
            holders = [h.to_dict() or {} for h in vault_ref.collection("holders").stream()]
            return vault_doc, holders

        vault_doc, holder_docs = with_firestore_retry(_read)
        state = state_from_docs(vault_doc, holder_docs)
        self._last_loaded = state
        return state

    def save(self, state: VaultState, *, expected_version: int) -> None:
        vault_ref = self._vault_ref()
        holders_ref = vault_ref.collection("holders")
        previous = self._last_loaded if self._last_loaded is not None and self._last_loaded.version == expected_version else None
        holder_writes = changed_holder_docs(previous, state)

        transaction = self._db.transaction()

        @admin_firestore.transactional
        def _txn_body(txn):  # type: ignore[no-untyped-def]
            snap = vault_ref.get(transaction=txn)
            stored_version = int((snap.to_dict() or {}).get("version") or 0) if getattr(snap, "exists", False) else 0
            if stored_version != expected_version:
                raise StaleVaultState(
                    f"vault {self._vault_id} stored version {stored_version} != expected {expected_version}"
                )
            txn.set(
                vault_ref,
                {
                    "vault_id": self._vault_id,
                    **vault_doc_from_state(state),
                    "updated_at": admin_firestore.SERVER_TIMESTAMP,
                },
                merge=True,
            )
            for holder, doc in holder_writes.items():
                txn.set(holders_ref.document(holder), doc)

        with_firestore_retry(lambda: _txn_body(transaction))
        self._last_loaded = state
        log_event(
            logger,
            "vault.state_saved",
            severity="DEBUG",
            vault_id=self._vault_id,
            state_version=state.version,
            holders_written=len(holder_writes),
        )
