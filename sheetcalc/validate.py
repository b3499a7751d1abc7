# sheetcalc/validate.py
"""
Turn caller-supplied cell values into the numeric inputs the financial
functions expect, and check batch request files before they are run.

Two modes, picked by argument or the VALIDATION_MODE environment variable:
  - relaxed (default): blanks, text and logical values inside a cash-flow
    range are skipped, like spreadsheet NPV/IRR ignore them
  - strict: anything that is not a number raises InvalidArgument
Non-finite numbers (NaN, inf) are rejected in both modes.
"""
from __future__ import annotations
import os, sys, json, math, logging
from collections.abc import Iterable as IterableABC, Mapping
from decimal import Decimal
from numbers import Real
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
import numpy as np
import yaml

from .errors import InvalidArgument

logger = logging.getLogger("sheetcalc.validate")

# function -> (required args, optional args)
REQUEST_ARGS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "pv": (("rate", "periods", "payment"), ()),
    "npv": (("rate", "cashflows"), ()),
    "irr": (("cashflows",), ("guess", "tolerance", "max_iterations", "step")),
    "rate": (("periods", "payment", "present_value"), ()),
}


def mode_from_env_or_flag(flag: str | None) -> str:
    if flag in ("strict", "relaxed"):
        return flag
    env = (os.environ.get("VALIDATION_MODE") or "").lower()
    return env if env in ("strict", "relaxed") else "relaxed"


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _flatten(values: Any) -> Iterator[Any]:
    if hasattr(values, "to_numpy"):
        # pandas Series/DataFrame: cells, not labels
        values = values.to_numpy()
    if isinstance(values, np.ndarray):
        values = values.ravel().tolist()
    if isinstance(values, IterableABC) and not isinstance(values, (str, bytes, Mapping)):
        for v in values:
            yield from _flatten(v)
    else:
        yield values


def _number_or_none(v: Any, *, what: str) -> Optional[float]:
    """float for numbers and numeric text, None for anything else."""
    if isinstance(v, (bool, np.bool_)):
        return None
    if isinstance(v, (Real, Decimal)):
        try:
            x = float(v)
        except OverflowError:
            raise InvalidArgument(f"{what} is out of range: {v!r}") from None
        except ValueError:
            raise InvalidArgument(f"{what} must be finite, got {v!r}") from None
    elif isinstance(v, str):
        s = v.strip()
        # Python literal underscores ("1_000") are not spreadsheet numbers
        if "_" in s:
            return None
        try:
            x = float(s)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(x):
        raise InvalidArgument(f"{what} must be finite, got {v!r}")
    return x


def to_number(value: Any, *, what: str = "value") -> float:
    x = _number_or_none(value, what=what)
    if x is None:
        raise InvalidArgument(f"{what} must be a number, got {value!r}")
    return x


def to_rate(value: Any) -> float:
    return to_number(value, what="rate")


def to_cashflows(values: Any, *, mode: Optional[str] = None) -> Tuple[float, ...]:
    """
    Flatten a (possibly nested) range of cell values into a CashFlowSeries.
    Lists, tuples, numpy arrays and pandas Series all count as ranges.
    Order is kept; a scalar counts as a one-cell range.
    """
    mode = mode_from_env_or_flag(mode)
    out: List[float] = []
    for i, v in enumerate(_flatten(values), start=1):
        what = f"cash flow #{i}"
        if _is_blank(v):
            if mode == "strict":
                raise InvalidArgument(f"{what} is blank (strict mode)")
            continue
        x = _number_or_none(v, what=what)
        if x is None:
            if mode == "strict":
                raise InvalidArgument(f"{what} is not a number: {v!r} (strict mode)")
            logger.debug("skipping non-numeric %s: %r", what, v)
            continue
        out.append(x)
    return tuple(out)


def validate_request(req: Any, *, mode: str = "relaxed") -> None:
    """
    A request is a mapping {function: pv|npv|irr|rate, name?: str, ...args}.
      - relaxed: require the function's arguments
      - strict : also reject keys the function does not take
    """
    if not isinstance(req, dict):
        raise InvalidArgument(f"request must be a mapping, got {type(req).__name__}")
    fn = str(req.get("function", "")).lower()
    if fn not in REQUEST_ARGS:
        raise InvalidArgument(f"unknown function: {req.get('function')!r}")
    required, optional = REQUEST_ARGS[fn]
    missing = [k for k in required if k not in req]
    if missing:
        raise InvalidArgument(f"{fn}: missing required keys: {missing}")
    if mode == "strict":
        allowed = set(required) | set(optional) | {"function", "name"}
        unknown = sorted(k for k in req if k not in allowed)
        if unknown:
            raise InvalidArgument(f"{fn}: unknown keys (strict mode): {unknown}")


def load_requests_from_file(path: Path) -> List[Dict[str, Any]]:
    """
    Read a YAML/JSON request file. Either a top-level list of requests or a
    mapping with a `calculations` list.
    """
    p = Path(path)
    if p.is_dir():
        # scenario_runner handles directories; keep this function file-only
        raise InvalidArgument(f"{p} is a directory (expected a file)")
    try:
        text = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidArgument(f"{p}: not UTF-8 text: {e}") from e
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text or "null")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise InvalidArgument(f"{p}: cannot parse: {e}") from e
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("calculations", [])
    if not isinstance(data, list):
        raise InvalidArgument(f"{p}: 'calculations' must be a list")
    return data


def _iter_input_files(p: Path) -> Iterable[Path]:
    if p.is_file():
        yield p
    elif p.is_dir():
        for ext in ("*.yaml", "*.yml", "*.json"):
            yield from sorted(p.rglob(ext))


def _main(argv: List[str] | None = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(prog="sheetcalc.validate", add_help=True)
    parser.add_argument("paths", nargs="+", help="YAML/JSON request files or directories to validate")
    parser.add_argument("--mode", choices=["strict", "relaxed"], default=None, help="validation mode")
    args = parser.parse_args(argv)

    mode = mode_from_env_or_flag(args.mode)
    had_error = False

    for raw in args.paths:
        target = Path(raw)
        any_seen = False
        for f in _iter_input_files(target):
            if not f.is_file():
                continue
            any_seen = True
            try:
                for i, req in enumerate(load_requests_from_file(f), start=1):
                    try:
                        validate_request(req, mode=mode)
                    except InvalidArgument as e:
                        raise InvalidArgument(f"request #{i}: {e}") from e
                print(f"OK: {f}")
            except (InvalidArgument, OSError) as e:
                print(f"{f}: {e}", file=sys.stderr)
                had_error = True
        if not any_seen:
            print(f"{target}: no YAML/JSON files found", file=sys.stderr)
            had_error = True

    return 1 if had_error else 0


if __name__ == "__main__":
    raise SystemExit(_main())
