# sheetcalc/errors.py
"""
Typed failures raised by the financial functions.

Every error derives from FinanceError (itself a ValueError) so callers can
catch the whole family, or a single kind when they need to map it onto their
own display convention.
"""
from __future__ import annotations

from typing import Optional


class FinanceError(ValueError):
    """Base class for every calculation failure."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidRate(FinanceError):
    """The rate would divide by zero or has no real discount factor."""


class InvalidArgument(FinanceError):
    """A non-rate argument is unusable (zero present value, NaN, text...)."""


class DegenerateInput(FinanceError):
    """The cash-flow series cannot have a distinguishable root."""


class NoConvergence(FinanceError):
    """
    The IRR solver used up its iteration budget.

    Carries the last iterate so callers can inspect how far it got.
    """

    def __init__(
        self,
        message: str,
        *,
        rate: Optional[float] = None,
        iterations: int = 0,
        npv: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.rate = rate
        self.iterations = iterations
        self.npv = npv


__all__ = [
    "FinanceError",
    "InvalidRate",
    "InvalidArgument",
    "DegenerateInput",
    "NoConvergence",
]
