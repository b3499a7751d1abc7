# sheetcalc/scenario_runner.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional
import json, csv, logging

from .config import SolverSettings
from .errors import FinanceError, InvalidArgument
from .finance.metrics import npv, pv, rate, solve_irr
from .validate import (
    REQUEST_ARGS,
    load_requests_from_file,
    mode_from_env_or_flag,
    to_cashflows,
    to_number,
    to_rate,
    validate_request,
)

logger = logging.getLogger("sheetcalc.scenario_runner")

RESULT_COLUMNS = ["source", "name", "function", "value", "iterations", "error", "message"]


@dataclass
class RunResult:
    summary: Dict[str, Any]
    summary_path: Path
    results_path: Optional[Path] = None
    rows: Optional[List[Dict[str, Any]]] = None


def _write_jsonl(path: Path, rows: List[Dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row) + "\n")


def _write_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=RESULT_COLUMNS)
        w.writeheader()
        for row in rows:
            w.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in RESULT_COLUMNS})


def evaluate_request(
    req: Dict[str, Any],
    *,
    settings: Optional[SolverSettings] = None,
    mode: str = "relaxed",
) -> Dict[str, Any]:
    """
    Run one request and return its result row. Calculation failures are
    recorded in the row (error kind + message); they never abort the batch.
    """
    row: Dict[str, Any] = {
        "name": req.get("name") if isinstance(req, dict) else None,
        "function": str(req.get("function", "")).lower() if isinstance(req, dict) else None,
        "value": None,
        "iterations": None,
        "error": None,
        "message": None,
    }
    try:
        validate_request(req, mode=mode)
        fn = row["function"]
        if fn == "pv":
            row["value"] = pv(
                to_rate(req["rate"]),
                to_number(req["periods"], what="periods"),
                to_number(req["payment"], what="payment"),
            )
        elif fn == "npv":
            row["value"] = npv(to_rate(req["rate"]), to_cashflows(req["cashflows"], mode=mode))
        elif fn == "irr":
            kwargs = (settings or SolverSettings()).as_kwargs()
            overrides = {k: req[k] for k in REQUEST_ARGS["irr"][1] if k in req}
            if overrides:
                kwargs = SolverSettings(**{**kwargs, **overrides}).as_kwargs()
            res = solve_irr(to_cashflows(req["cashflows"], mode=mode), **kwargs)
            row["value"] = res.rate
            row["iterations"] = res.iterations
        elif fn == "rate":
            row["value"] = rate(
                to_number(req["periods"], what="periods"),
                to_number(req["payment"], what="payment"),
                to_number(req["present_value"], what="present_value"),
            )
    except FinanceError as e:
        row["error"] = e.kind
        row["message"] = str(e)
        iterations = getattr(e, "iterations", None)
        if iterations:
            row["iterations"] = iterations
        logger.info("request %s (%s) failed: %s: %s", row["name"], row["function"], e.kind, e)
    return row


def _request_files(cfg_path: Path) -> List[Path]:
    if cfg_path.is_dir():
        files = sorted(
            f for ext in ("*.yaml", "*.yml", "*.json") for f in cfg_path.glob(ext) if f.is_file()
        )
        if not files:
            raise InvalidArgument(f"{cfg_path}: no request files found")
        return files
    if not cfg_path.is_file():
        raise InvalidArgument(f"{cfg_path}: no such file or directory")
    return [cfg_path]


def run_dir(
    config: str | Path,
    out_dir: str | Path,
    *,
    fmt: str = "jsonl",
    mode: Optional[str] = None,
    settings: Optional[SolverSettings] = None,
) -> RunResult:
    """
    Evaluate every request in a request file, or in every YAML/JSON file of a
    directory, and write:
      - summary.json            counts of requests, successes and failures
      - results.jsonl|csv       one row per request
    """
    if fmt not in ("jsonl", "csv"):
        raise InvalidArgument(f"unknown fmt: {fmt}")
    mode = mode_from_env_or_flag(mode)
    cfg_path = Path(config)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    rows: List[Dict[str, Any]] = []
    for f in _request_files(cfg_path):
        for req in load_requests_from_file(f):
            row = evaluate_request(req, settings=settings, mode=mode)
            rows.append({"source": f.name, **row})

    failed = sum(1 for r in rows if r["error"])
    results_path = out / f"results.{fmt}"
    if fmt == "jsonl":
        _write_jsonl(results_path, rows)
    else:
        _write_csv(results_path, rows)

    summary = {
        "requests": len(rows),
        "ok": len(rows) - failed,
        "failed": failed,
        "validation_mode": mode,
        "results_path": str(results_path),
    }
    summary_path = out / "summary.json"
    summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
    logger.info("ran %d request(s): %d ok, %d failed", len(rows), len(rows) - failed, failed)

    return RunResult(summary=summary, summary_path=summary_path, results_path=results_path, rows=rows)


__all__ = ["RunResult", "evaluate_request", "run_dir"]
