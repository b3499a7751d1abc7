# sheetcalc/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .config import load_solver_settings
from .errors import FinanceError
from .finance.metrics import npv, pv, rate, solve_irr
from .validate import to_cashflows


def _add_flows(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "flows",
        nargs="+",
        help="Cash flows, first one a full period out (negative numbers are fine: irr -100 60 60).",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sheetcalc",
        description="Spreadsheet-style time-value-of-money functions (PV, NPV, IRR, RATE)",
    )
    p.add_argument(
        "--config",
        default=None,
        help="YAML file with IRR solver settings (guess, tolerance, max_iterations, step).",
    )
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format for single results (default: text).",
    )
    p.add_argument("--verbose", "-v", action="store_true", help="Log solver iterations.")
    v = p.add_mutually_exclusive_group()
    v.add_argument(
        "--strict",
        action="store_true",
        help="Enable strict validation (non-numeric cash flows raise).",
    )
    v.add_argument(
        "--relaxed",
        action="store_true",
        help="Enable relaxed validation (blank/text cash flows skipped).",
    )

    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("pv", help="Present value of an ordinary annuity")
    s.add_argument("--rate", type=float, required=True)
    s.add_argument("--periods", type=float, required=True)
    s.add_argument("--payment", type=float, required=True)

    s = sub.add_parser("npv", help="Net present value of a cash-flow series")
    s.add_argument("--rate", type=float, required=True)
    _add_flows(s)

    s = sub.add_parser("irr", help="Internal rate of return of a cash-flow series")
    _add_flows(s)
    s.add_argument("--guess", type=float, default=None)
    s.add_argument("--tolerance", type=float, default=None)
    s.add_argument("--max-iterations", type=int, default=None)

    s = sub.add_parser("rate", help="Approximate periodic rate (closed-form approximation)")
    s.add_argument("--periods", type=float, required=True)
    s.add_argument("--payment", type=float, required=True)
    s.add_argument("--present-value", type=float, required=True)

    s = sub.add_parser("profile", help="NPV over a grid of rates")
    _add_flows(s)
    s.add_argument("--start", type=float, default=-0.5)
    s.add_argument("--stop", type=float, default=1.0)
    s.add_argument("--num", type=int, default=31)

    s = sub.add_parser("batch", help="Evaluate a request file or a directory of request files")
    s.add_argument("path", help="YAML/JSON request file, or a directory of them.")
    s.add_argument(
        "--outputs-dir",
        default="outputs",
        help="Directory to write result files (default: outputs). Will be created if missing.",
    )
    s.add_argument(
        "--results-format",
        dest="results_fmt",
        default="jsonl",
        choices=["csv", "jsonl"],
        help="Per-request results file format (default: jsonl).",
    )
    return p


def parse_args(argv: list[str] | None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _apply_validation_mode(ns: argparse.Namespace) -> None:
    # Default: leave env as-is; flags override explicitly.
    if ns.strict:
        os.environ["VALIDATION_MODE"] = "strict"
    elif ns.relaxed:
        os.environ["VALIDATION_MODE"] = "relaxed"


def _emit(ns: argparse.Namespace, payload: dict) -> None:
    if ns.fmt == "json":
        print(json.dumps(payload))
    else:
        print(f"{payload['value']:.10g}")


def _run(ns: argparse.Namespace) -> int:
    settings = load_solver_settings(ns.config)

    if ns.command == "pv":
        _emit(ns, {"function": "pv", "value": pv(ns.rate, ns.periods, ns.payment)})
    elif ns.command == "npv":
        _emit(ns, {"function": "npv", "value": npv(ns.rate, to_cashflows(ns.flows))})
    elif ns.command == "irr":
        kwargs = settings.as_kwargs()
        for key in ("guess", "tolerance", "max_iterations"):
            if getattr(ns, key) is not None:
                kwargs[key] = getattr(ns, key)
        res = solve_irr(to_cashflows(ns.flows), **kwargs)
        _emit(ns, {"function": "irr", "value": res.rate, "iterations": res.iterations})
    elif ns.command == "rate":
        _emit(ns, {"function": "rate", "value": rate(ns.periods, ns.payment, ns.present_value)})
    elif ns.command == "profile":
        from .finance.profile import npv_profile

        df = npv_profile(to_cashflows(ns.flows), start=ns.start, stop=ns.stop, num=ns.num)
        if ns.fmt == "json":
            print(df.to_json(orient="records"))
        else:
            print(df.to_string(index=False))
            for lo, hi in df.attrs["brackets"]:
                print(f"sign change between {lo:.4g} and {hi:.4g}")
    elif ns.command == "batch":
        from .scenario_runner import run_dir

        outputs_dir = Path(ns.outputs_dir).resolve()
        res = run_dir(Path(ns.path).resolve(), outputs_dir, fmt=ns.results_fmt, settings=settings)
        if ns.fmt == "json":
            print(json.dumps(res.summary, indent=2))
        else:
            s = res.summary
            print(f"Ran {s['requests']} request(s): {s['ok']} ok, {s['failed']} failed -> {res.results_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    try:
        ns = parse_args(argv)
    except SystemExit as e:
        # argparse usage errors (and --help) exit through here
        return int(e.code) if isinstance(e.code, int) else 2

    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    _apply_validation_mode(ns)

    try:
        return _run(ns)
    except FinanceError as e:
        print(f"ERROR: {e.kind}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


__all__ = ["main", "parse_args"]
