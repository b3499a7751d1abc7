import re
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]  # repo root
TVM = ROOT / "sheetcalc" / "finance" / "tvm.py"

EXCLUDE_DIRS = {
    ".venv", "venv", ".git", ".pytest_cache", "build",
    "dist", "__pycache__", ".mypy_cache", ".tox", ".eggs"
}

def _skip(p: Path) -> bool:
    parts = set(p.parts)
    if "site-packages" in parts or "dist-packages" in parts:
        return True
    if any(d in parts for d in EXCLUDE_DIRS):
        return True
    return False

def test_only_tvm_module_defines_the_financial_functions():
    assert TVM.exists()
    pattern = re.compile(r"\bdef\s+(irr|solve_irr|npv|pv|rate)\s*\(")
    hits = []
    for p in ROOT.rglob("*.py"):
        if _skip(p):
            continue
        if p == TVM:
            continue
        text = p.read_text(encoding="utf-8", errors="ignore")
        if pattern.search(text):
            hits.append(str(p))
    assert not hits, f"Found PV/NPV/IRR/RATE defs outside finance/tvm.py: {hits}"


def test_metrics_facade_only_reexports():
    metrics = ROOT / "sheetcalc" / "finance" / "metrics.py"
    text = metrics.read_text(encoding="utf-8")
    assert not re.search(r"^\s*def\s", text, re.MULTILINE), "metrics.py must not define functions"
    assert "from .tvm import" in text
