# sheetcalc/finance/tvm.py
"""
Time-value-of-money functions: PV, NPV, IRR and RATE.

This module is the only place where NPV/IRR are defined; everything else
(CLI, batch runner, NPV profile) calls through here.

Conventions:
- Rates are per-period decimals (0.05 = 5%).
- A cash-flow series starts one full period in the future: entry 0 is
  discounted once, entry 1 twice, and so on. There is no period-0 term.
- Failures raise a sheetcalc.errors.FinanceError subclass; no function ever
  returns NaN/inf in place of an answer.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple

from ..errors import DegenerateInput, InvalidArgument, InvalidRate, NoConvergence

logger = logging.getLogger("sheetcalc.finance.tvm")

# IRR solver defaults
IRR_GUESS = 0.1
IRR_TOLERANCE = 1e-4
IRR_MAX_ITERATIONS = 100
IRR_STEP = 0.01


def _finite(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v):
        raise InvalidArgument(f"{name} must be finite, got {v}")
    return v


def _series(cashflows: Iterable[float]) -> Tuple[float, ...]:
    return tuple(_finite("cashflow", cf) for cf in cashflows)


# ---------- PV ----------
def pv(rate: float, periods: float, payment: float) -> float:
    """
    Present value of an ordinary annuity paying `payment` at the end of each
    of `periods` periods:
        PV = payment * (1 - (1+rate)^-periods) / rate

    `periods` is conventionally a whole count but any finite value is
    accepted and fed straight into the closed form (2.5 periods is a valid
    mathematical input). A rate below -1 only has a real discount factor for
    whole period counts.

    Raises InvalidRate for rate == 0 or rate == -1.
    """
    r = _finite("rate", rate)
    n = _finite("periods", periods)
    pmt = _finite("payment", payment)
    if r == 0.0:
        raise InvalidRate("PV is undefined at rate 0 (division by zero)")
    base = 1.0 + r
    if base == 0.0:
        raise InvalidRate("PV is undefined at rate -1 (division by zero)")
    if base < 0.0 and not n.is_integer():
        raise InvalidRate(f"rate {r} has no real discount factor over {n} periods")
    try:
        factor = base ** -n
    except OverflowError:
        raise InvalidArgument(f"discount factor out of range for rate={r}, periods={n}") from None
    value = pmt * (1.0 - factor) / r
    if not math.isfinite(value):
        raise InvalidArgument(f"present value out of range for rate={r}, periods={n}")
    return value


# ---------- NPV ----------
def npv(rate: float, cashflows: Iterable[float]) -> float:
    """
    Discounted sum of a cash-flow series, first flow one period out:
        NPV(r) = sum_{t=1..N} CF[t-1] / (1+r)^t

    An empty series has NPV 0 at every valid rate.
    """
    r = _finite("rate", rate)
    base = 1.0 + r
    if base == 0.0:
        raise InvalidRate("NPV is undefined at rate -1 (division by zero)")
    total = 0.0
    for t, cf in enumerate(cashflows, start=1):
        v = _finite("cashflow", cf)
        try:
            total += v / (base ** t)
        except (OverflowError, ZeroDivisionError):
            raise InvalidRate(f"discount factor out of range at rate {r}, period {t}") from None
    return total


# ---------- IRR ----------
@dataclass(frozen=True)
class IRRResult:
    """A converged IRR: the rate, the Newton steps taken and the residual NPV."""

    rate: float
    iterations: int
    npv: float


def check_solver_settings(tolerance: float, max_iterations: int, step: float) -> None:
    if not (math.isfinite(tolerance) and tolerance > 0):
        raise InvalidArgument(f"tolerance must be a positive number, got {tolerance}")
    if isinstance(max_iterations, bool) or not isinstance(max_iterations, (int, float)) \
            or not math.isfinite(max_iterations) or int(max_iterations) != max_iterations or max_iterations < 1:
        raise InvalidArgument(f"max_iterations must be a positive integer, got {max_iterations}")
    if not math.isfinite(step) or step == 0:
        raise InvalidArgument(f"step must be a non-zero number, got {step}")


def _has_sign_change(flows: Sequence[float]) -> bool:
    return any(cf > 0 for cf in flows) and any(cf < 0 for cf in flows)


def solve_irr(
    cashflows: Iterable[float],
    *,
    guess: float = IRR_GUESS,
    tolerance: float = IRR_TOLERANCE,
    max_iterations: int = IRR_MAX_ITERATIONS,
    step: float = IRR_STEP,
) -> IRRResult:
    """
    Newton iteration on NPV(r) = 0 with a forward-difference slope:

        slope   = (NPV(r + step) - NPV(r)) / step
        r_next  = r - NPV(r) / slope

    starting from `guess` and stopping once |NPV(r)| < tolerance.

    Raises:
        DegenerateInput  empty series, no sign change among the flows, or a
                         zero finite-difference slope at some iterate
        NoConvergence    `max_iterations` steps without meeting tolerance,
                         or the iterate left the real line
        InvalidRate      an iterate landed on -1
    """
    flows = _series(cashflows)
    tol = _finite("tolerance", tolerance)
    h = _finite("step", step)
    check_solver_settings(tol, max_iterations, h)

    if not flows:
        raise DegenerateInput("IRR of an empty series is undefined (NPV is 0 at every rate)")
    if not _has_sign_change(flows):
        raise DegenerateInput("IRR needs at least one positive and one negative cash flow")

    r = _finite("guess", guess)
    for k in range(int(max_iterations)):
        try:
            value = npv(r, flows)
            if abs(value) < tol:
                logger.debug("IRR converged to %.10f after %d step(s)", r, k)
                return IRRResult(rate=r, iterations=k, npv=value)
            delta = npv(r + h, flows) - value
        except InvalidRate:
            if 1.0 + r == 0.0 or 1.0 + (r + h) == 0.0:
                raise
            # discount factor over/underflowed: the iterate ran away
            raise NoConvergence(
                f"IRR iterate {r} diverged after {k} step(s)", rate=r, iterations=k
            ) from None
        if delta == 0.0:
            logger.warning("IRR slope vanished at rate %.10f (step %d)", r, k)
            raise DegenerateInput(f"NPV is flat around rate {r}; finite-difference slope is zero")
        r = r - value / (delta / h)
        logger.debug("IRR step %d: npv=%.6g -> rate=%.10f", k + 1, value, r)
        if not math.isfinite(r):
            raise NoConvergence(
                f"IRR iterate diverged after {k + 1} step(s)", rate=r, iterations=k + 1, npv=value
            )

    try:
        value = npv(r, flows)
    except InvalidRate:
        if 1.0 + r == 0.0:
            raise
        raise NoConvergence(
            f"IRR iterate {r} diverged after {max_iterations} step(s)",
            rate=r,
            iterations=int(max_iterations),
        ) from None
    if abs(value) < tol:
        return IRRResult(rate=r, iterations=int(max_iterations), npv=value)
    logger.warning("IRR did not converge in %d steps (rate=%.10f, npv=%.6g)", max_iterations, r, value)
    raise NoConvergence(
        f"IRR did not converge within {max_iterations} iterations (last rate {r}, NPV {value})",
        rate=r,
        iterations=int(max_iterations),
        npv=value,
    )


def irr(
    cashflows: Iterable[float],
    *,
    guess: float = IRR_GUESS,
    tolerance: float = IRR_TOLERANCE,
    max_iterations: int = IRR_MAX_ITERATIONS,
    step: float = IRR_STEP,
) -> float:
    """
    Periodic IRR as a decimal rate. Same solver and failures as solve_irr();
    only the converged rate is returned.
    """
    return solve_irr(
        cashflows, guess=guess, tolerance=tolerance, max_iterations=max_iterations, step=step
    ).rate


# ---------- RATE ----------
def rate(periods: float, payment: float, present_value: float) -> float:
    """
    Approximate per-period rate implied by an annuity, in one closed-form step:
        x    = payment / present_value
        RATE ~ x * (1 - (1 + x)^-periods)

    This is NOT an inverse of pv(): pv(rate(n, p, v), n, p) is generally not
    v. For example rate(10, 100, 772.17) gives roughly 0.0912 while the exact
    rate is 0.05. Use it only where compatibility with this approximation is
    wanted; irr() on [-v] + [p] * n gives the exact rate.

    Raises InvalidArgument for a zero present value.
    """
    n = _finite("periods", periods)
    pmt = _finite("payment", payment)
    v = _finite("present_value", present_value)
    if v == 0.0:
        raise InvalidArgument("RATE needs a non-zero present value")
    x = pmt / v
    base = 1.0 + x
    if base == 0.0:
        raise InvalidArgument("RATE is undefined when payment == -present_value")
    if base < 0.0 and not n.is_integer():
        raise InvalidArgument(f"payment/present_value ratio {x} has no real power over {n} periods")
    try:
        value = x * (1.0 - base ** -n)
    except OverflowError:
        raise InvalidArgument(f"RATE out of range for periods={n}, ratio={x}") from None
    if not math.isfinite(value):
        raise InvalidArgument(f"RATE out of range for periods={n}, ratio={x}")
    return value


__all__ = [
    "IRRResult",
    "IRR_GUESS",
    "IRR_TOLERANCE",
    "IRR_MAX_ITERATIONS",
    "IRR_STEP",
    "check_solver_settings",
    "pv",
    "npv",
    "solve_irr",
    "irr",
    "rate",
]
