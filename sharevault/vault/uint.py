"""
Checked unsigned 128-bit arithmetic.

Python ints never wrap, so every ledger value is range-checked explicitly:
anything that would leave [0, MAX_UINT128] raises instead of being stored.
"""

from __future__ import annotations

from typing import Any

from sharevault.vault.errors import ArithmeticOverflow, ArithmeticUnderflow, DivisionByZero

MIN_UINT = 0
MAX_UINT128 = 2**128 - 1


def require_uint(value: Any, *, name: str = "value") -> int:
    """Return `value` if it is an int inside the Uint128 range."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < MIN_UINT:
        raise ArithmeticUnderflow(f"{name}={value} is below {MIN_UINT}")
    if value > MAX_UINT128:
        raise ArithmeticOverflow(f"{name}={value} exceeds MAX_UINT128")
    return value


def checked_add(a: int, b: int) -> int:
    if a + b > MAX_UINT128:
        raise ArithmeticOverflow(f"overflow: {a} + {b}")
    return a + b


def checked_sub(a: int, b: int) -> int:
    if a - b < MIN_UINT:
        raise ArithmeticUnderflow(f"underflow: {a} - {b}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    if a * b > MAX_UINT128:
        raise ArithmeticOverflow(f"overflow: {a} * {b}")
    return a * b


def checked_floor_div(a: int, b: int) -> int:
    if b == 0:
        raise DivisionByZero(f"division by zero: {a} / {b}")
    return a // b
