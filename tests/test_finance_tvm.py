import math

import pytest

from sheetcalc.errors import InvalidArgument, InvalidRate
from sheetcalc.finance.tvm import npv, pv, rate


# ---------- PV ----------
def test_pv_matches_documented_example():
    assert pv(0.05, 10, 100) == pytest.approx(772.17, abs=0.01)


def test_pv_agrees_with_numpy_financial():
    npf = pytest.importorskip("numpy_financial")
    for r, n, pmt in [(0.05, 10, 100), (0.01, 360, 1200.0), (0.2, 3, -50.0)]:
        # numpy-financial uses the opposite cash sign convention
        assert pv(r, n, pmt) == pytest.approx(float(npf.pv(r, n, -pmt)), rel=1e-12)


def test_pv_strictly_decreasing_in_rate():
    values = [pv(r / 100.0, 10, 100) for r in range(1, 31)]
    assert all(a > b for a, b in zip(values, values[1:]))


@pytest.mark.parametrize("bad_rate", [0.0, -1.0])
def test_pv_division_by_zero_rates_raise(bad_rate):
    with pytest.raises(InvalidRate):
        pv(bad_rate, 10, 100)


def test_pv_accepts_fractional_periods():
    value = pv(0.05, 2.5, 100)
    assert value == pytest.approx(100 * (1 - 1.05 ** -2.5) / 0.05)
    assert pv(0.05, 2, 100) < value < pv(0.05, 3, 100)


def test_pv_negative_periods_follow_the_formula():
    assert pv(0.05, -1, 100) == pytest.approx(-100.0)


def test_pv_rate_below_minus_one_with_fractional_periods_raises():
    with pytest.raises(InvalidRate):
        pv(-2.0, 2.5, 100)


@pytest.mark.parametrize("args", [(math.nan, 10, 100), (0.05, math.inf, 100), (0.05, 10, "x")])
def test_pv_rejects_non_finite_or_non_numeric(args):
    with pytest.raises(InvalidArgument):
        pv(*args)


# ---------- NPV ----------
def test_npv_matches_documented_example():
    assert npv(0.1, [100, 200, 300]) == pytest.approx(481.59, abs=0.01)


def test_npv_first_flow_is_discounted_one_period():
    assert npv(0.1, [110]) == pytest.approx(100.0)


@pytest.mark.parametrize("r", [-0.5, 0.0, 0.1, 3.0])
def test_npv_of_empty_series_is_zero(r):
    assert npv(r, []) == 0.0


def test_npv_at_zero_rate_is_plain_sum():
    flows = [-1000.0, 300.5, 420.25, 680.125, -12.0]
    assert npv(0.0, flows) == pytest.approx(sum(flows), rel=0, abs=1e-12)


@pytest.mark.parametrize("flows", [[], [1.0], [-5.0, 5.0]])
def test_npv_at_minus_one_raises(flows):
    with pytest.raises(InvalidRate):
        npv(-1.0, flows)


def test_npv_overflowing_discount_factor_raises():
    with pytest.raises(InvalidRate):
        npv(1e200, [1.0, 1.0, 1.0])


def test_npv_below_minus_one_uses_whole_period_powers():
    # 2 / (-2) + 4 / 4
    assert npv(-3.0, [2.0, 4.0]) == pytest.approx(0.0)


def test_npv_rejects_nan_cashflow():
    with pytest.raises(InvalidArgument):
        npv(0.1, [1.0, math.nan])


def test_npv_does_not_mutate_and_accepts_iterables():
    flows = [100.0, 200.0, 300.0]
    before = list(flows)
    a = npv(0.1, flows)
    b = npv(0.1, (x for x in flows))
    assert flows == before
    assert a == b


# ---------- RATE ----------
def test_rate_closed_form_small_cases():
    assert rate(1, 1, 1) == 0.5
    assert rate(2, 1, 1) == 0.75


def test_rate_zero_present_value_raises():
    with pytest.raises(InvalidArgument):
        rate(10, 100, 0)


def test_rate_is_an_approximation_not_an_inverse_of_pv():
    approx_rate = rate(10, 100, 772.17)
    assert approx_rate == pytest.approx(0.0912, abs=1e-3)
    # The exact annuity rate for these terms is 5%
    assert abs(approx_rate - 0.05) > 0.03
    assert pv(approx_rate, 10, 100) < 700.0


def test_rate_payment_cancelling_present_value_raises():
    with pytest.raises(InvalidArgument):
        rate(10, -100, 100)


def test_rate_negative_base_with_fractional_periods_raises():
    with pytest.raises(InvalidArgument):
        rate(2.5, -300, 100)


# ---------- purity ----------
def test_repeat_calls_are_bit_identical():
    flows = [-1000.0, 300.0, 420.0, 680.0]
    assert pv(0.07, 12, 250) == pv(0.07, 12, 250)
    assert npv(0.07, flows) == npv(0.07, flows)
    assert rate(12, 250, 2000) == rate(12, 250, 2000)
