"""
NPV profile: NPV of one cash-flow series evaluated over a grid of rates.

Useful to see where (and whether) a series crosses zero before asking for an
IRR, and to spot series with several roots where the solver's answer depends
on the initial guess.
"""
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..errors import FinanceError, InvalidArgument
from ..validate import to_number
from .tvm import npv


def rate_grid(start: float = -0.5, stop: float = 1.0, num: int = 31) -> np.ndarray:
    """Evenly spaced rates, both ends included."""
    lo = to_number(start, what="start")
    hi = to_number(stop, what="stop")
    n = to_number(num, what="num")
    if not n.is_integer() or n < 2:
        raise InvalidArgument(f"num must be an integer >= 2, got {num}")
    if hi <= lo:
        raise InvalidArgument(f"need finite start < stop, got [{start}, {stop}]")
    return np.linspace(lo, hi, int(n))


def _brackets(rates: np.ndarray, values: np.ndarray) -> List[Tuple[float, float]]:
    """Adjacent grid points where NPV changes sign, skipping the pole at -1."""
    out: List[Tuple[float, float]] = []
    for i in range(len(rates) - 1):
        lo, hi = float(rates[i]), float(rates[i + 1])
        a, b = values[i], values[i + 1]
        if np.isnan(a) or np.isnan(b):
            continue
        if (lo + 1.0) * (hi + 1.0) < 0:
            continue
        if a * b < 0:
            out.append((lo, hi))
    return out


def npv_profile(
    cashflows: Iterable[float],
    rates: Optional[Iterable[float]] = None,
    *,
    start: float = -0.5,
    stop: float = 1.0,
    num: int = 31,
) -> pd.DataFrame:
    """
    Evaluate NPV over `rates` (or an evenly spaced grid from start to stop).

    Args:
        cashflows: CashFlowSeries, first flow one period out
        rates: explicit rates; overrides start/stop/num
        start, stop, num: grid used when `rates` is None

    Returns:
        DataFrame with columns rate, npv, error. Rates where NPV is undefined
        (e.g. -1) get npv=NaN and the error kind. attrs['brackets'] lists the
        (lo, hi) rate pairs between which NPV changes sign.
    """
    flows = tuple(to_number(cf, what="cash flow") for cf in cashflows)
    if rates is None:
        grid = rate_grid(start, stop, num)
    else:
        grid = np.asarray(list(rates), dtype=float)
    if grid.ndim != 1:
        raise InvalidArgument("rates must be one-dimensional")

    out_data = []
    for r in grid:
        try:
            value, err = npv(float(r), flows), None
        except FinanceError as e:
            value, err = float("nan"), e.kind
        out_data.append({"rate": float(r), "npv": value, "error": err})

    df = pd.DataFrame(out_data, columns=["rate", "npv", "error"])

    brackets = _brackets(df["rate"].to_numpy(), df["npv"].to_numpy(dtype=float))
    df.attrs["brackets"] = brackets
    df.attrs["sign_changes"] = len(brackets)
    return df


__all__ = ["rate_grid", "npv_profile"]
