"""
Rounding policy for share/asset conversions.

The policy is the single lever every known share-vault exploit pulls, so it is
an explicit, named strategy instead of an inline `//`. There is one
implementation: floor (truncate toward zero), which never rounds in favour of
the caller on either side of the exchange.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sharevault.vault.errors import ArithmeticOverflow, DivisionByZero
from sharevault.vault.uint import MAX_UINT128


class RoundingPolicy(ABC):
    name: str = "abstract"

    @abstractmethod
    def multiply_ratio(self, value: int, numerator: int, denominator: int) -> int:
        """
        Compute `value * numerator / denominator` rounded by this policy.

        The intermediate product is unbounded; only the result must fit Uint128.
        """


class FloorRounding(RoundingPolicy):
    name = "floor"

    def multiply_ratio(self, value: int, numerator: int, denominator: int) -> int:
        if denominator == 0:
            raise DivisionByZero(f"ratio {value} * {numerator} / 0")
        if numerator == denominator:
            return value
        out = (value * numerator) // denominator
        if out > MAX_UINT128:
            raise ArithmeticOverflow(f"ratio result {value} * {numerator} / {denominator} exceeds MAX_UINT128")
        return out


FLOOR = FloorRounding()
