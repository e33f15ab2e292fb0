"""
Vault configuration.

Environment-driven. Values are validated once at load time; an invalid value
raises instead of falling back to a default.

Env:
    VAULT_ID            (default: "default")
    VAULT_POOL_ADDRESS  (default: "vault-pool")
    VAULT_DENOM         (default: "uawesome")
    VAULT_MIN_DEPOSIT   (default: 1)
    VAULT_ASSET_SOURCE  ("external" | "ledgered", default: "external")
"""

from __future__ import annotations

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sharevault.vault.uint import MAX_UINT128

AssetSource = Literal["external", "ledgered"]

DEFAULT_DENOM = "uawesome"
DEFAULT_POOL_ADDRESS = "vault-pool"


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = str(env.get(name) or "").strip()
    return raw or default


class VaultConfig(BaseModel):
    """
    Static configuration for a single vault (one pool, one denom, one share class).

    `asset_source` selects where the burn/mint pricing reads the pool total from:
    - external: the balance authority (custodial balance, donations included)
    - ledgered: the vault's own deposits-minus-payouts ledger
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    vault_id: str = Field(default="default", min_length=1, description="Stable vault identifier")
    pool_address: str = Field(default=DEFAULT_POOL_ADDRESS, min_length=1, description="Custodial pool identity")
    denom: str = Field(default=DEFAULT_DENOM, min_length=1, description="The single recognized asset denom")
    min_deposit: int = Field(default=1, ge=1, le=MAX_UINT128, description="Smallest accepted deposit amount")
    asset_source: AssetSource = Field(default="external", description="Pool total source for pricing")

    @field_validator("vault_id", "pool_address", "denom")
    @classmethod
    def strip_required(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("must be non-empty")
        return s

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "VaultConfig":
        e = os.environ if env is None else env
        raw_min = _env_str(e, "VAULT_MIN_DEPOSIT", "1")
        try:
            min_deposit = int(raw_min)
        except ValueError as ex:
            raise ValueError(f"VAULT_MIN_DEPOSIT must be an integer, got {raw_min!r}") from ex
        try:
            return cls(
                vault_id=_env_str(e, "VAULT_ID", "default"),
                pool_address=_env_str(e, "VAULT_POOL_ADDRESS", DEFAULT_POOL_ADDRESS),
                denom=_env_str(e, "VAULT_DENOM", DEFAULT_DENOM),
                min_deposit=min_deposit,
                asset_source=_env_str(e, "VAULT_ASSET_SOURCE", "external").lower(),
            )
        except ValidationError as ex:
            raise ValueError(f"invalid vault configuration: {ex}") from ex
