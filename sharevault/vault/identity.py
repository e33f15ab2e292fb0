from __future__ import annotations

import re

from sharevault.vault.errors import InvalidHolderIdentity
from sharevault.vault.interfaces import IdentityValidator

_ADDRESS_RE = re.compile(r"^[a-z0-9][a-z0-9_\-]{2,89}$")


class AddressValidator(IdentityValidator):
    """
    Accepts already-normalized addresses only.

    Mixed case is rejected rather than folded: two spellings of one address
    must never map to two holder accounts.
    """

    def validate(self, raw: str) -> str:
        addr = str(raw or "").strip()
        if not addr:
            raise InvalidHolderIdentity("holder address is required")
        if addr != addr.lower():
            raise InvalidHolderIdentity(f"holder address {addr!r} is not normalized (lowercase)")
        if not _ADDRESS_RE.match(addr):
            raise InvalidHolderIdentity(f"holder address {addr!r} is malformed")
        return addr
