"""
Financial functions façade.

Design:
- PV/NPV/IRR/RATE implementations live only in sheetcalc.finance.tvm (singleton).
- This module must not *define* them (no 'def irr' / 'def npv' here).
- Front ends (CLI, batch runner) import the grouping from here.
"""
from .tvm import pv as pv, npv as npv, irr as irr, solve_irr as solve_irr, rate as rate  # re-exports only
from .tvm import IRRResult as IRRResult

__all__ = ["pv", "npv", "irr", "solve_irr", "rate", "IRRResult"]
