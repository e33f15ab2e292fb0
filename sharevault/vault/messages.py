"""
Execute / query message models.

Wire shape (one top-level key naming the operation):
  {"deposit": {}}
  {"redeem": {"shares": "9"}}
  {"config": {}}
  {"balance": {"address": "user1"}}

A deposit carries no amount: the amount is whatever the host attached as
funds to the message (see `single_payment`). Amounts are accepted as ints or
decimal strings (Uint128 values do not survive a JSON float). Anything that
does not parse into exactly one known message raises UnrecognizedOperation.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sharevault.vault.errors import InvalidDeposit, UnrecognizedOperation
from sharevault.vault.uint import MAX_UINT128


def _uint_from_wire(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError("amount must be an integer, not a bool")
    if isinstance(v, int):
        out = v
    elif isinstance(v, str) and v.strip().isdigit():
        out = int(v.strip())
    else:
        raise ValueError(f"amount must be an integer or a decimal string, got {v!r}")
    if out < 0 or out > MAX_UINT128:
        raise ValueError(f"amount {out} is outside the Uint128 range")
    return out


class _Msg(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class DepositMsg(_Msg):
    """Mint shares for the funds attached to the message."""


class RedeemMsg(_Msg):
    shares: int = Field(..., description="Shares to burn")

    @field_validator("shares", mode="before")
    @classmethod
    def shares_is_uint(cls, v: Any) -> int:
        return _uint_from_wire(v)


class ConfigQuery(_Msg):
    pass


class BalanceQuery(_Msg):
    address: str = Field(..., min_length=1)


ExecuteMsg = Union[DepositMsg, RedeemMsg]
QueryMsg = Union[ConfigQuery, BalanceQuery]

EXECUTE_MESSAGES: Dict[str, Type[_Msg]] = {"deposit": DepositMsg, "redeem": RedeemMsg}
QUERY_MESSAGES: Dict[str, Type[_Msg]] = {"config": ConfigQuery, "balance": BalanceQuery}


def _parse(payload: Any, registry: Dict[str, Type[_Msg]], kind: str) -> _Msg:
    if not isinstance(payload, dict) or len(payload) != 1:
        raise UnrecognizedOperation(f"{kind} message must be an object with exactly one operation key")
    (name, body), = payload.items()
    model = registry.get(str(name))
    if model is None:
        raise UnrecognizedOperation(f"unknown {kind} operation {name!r}; known: {sorted(registry)}")
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise UnrecognizedOperation(f"{kind} operation {name!r} body must be an object")
    try:
        return model.model_validate(body)
    except ValidationError as e:
        raise UnrecognizedOperation(f"malformed {kind} operation {name!r}: {e}") from e


def parse_execute_msg(payload: Any) -> ExecuteMsg:
    return _parse(payload, EXECUTE_MESSAGES, "execute")  # type: ignore[return-value]


def parse_query_msg(payload: Any) -> QueryMsg:
    return _parse(payload, QUERY_MESSAGES, "query")  # type: ignore[return-value]


def single_payment(funds: Optional[Mapping[str, Any]], denom: str) -> int:
    """
    The amount of `denom` attached to a message.

    Exactly one non-zero coin of the vault denom must be attached; no funds,
    zero funds, several denoms, or a foreign denom raise InvalidDeposit.
    """
    coins = {str(d): v for d, v in (funds or {}).items()}
    if not coins:
        raise InvalidDeposit("no funds sent")
    if len(coins) > 1:
        raise InvalidDeposit(f"sent more than one denom: {sorted(coins)}")
    (sent_denom, raw), = coins.items()
    if sent_denom != denom:
        raise InvalidDeposit(f"must send {denom!r}, got {sent_denom!r}")
    try:
        amount = _uint_from_wire(raw)
    except ValueError as e:
        raise InvalidDeposit(f"invalid {denom} amount: {e}") from e
    if amount == 0:
        raise InvalidDeposit("no funds sent")
    return amount
