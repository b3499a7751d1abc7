from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional
import io
import logging
import math
import os

import yaml

from .errors import InvalidArgument
from .finance.tvm import (
    IRR_GUESS,
    IRR_MAX_ITERATIONS,
    IRR_STEP,
    IRR_TOLERANCE,
    check_solver_settings,
)
from .validate import mode_from_env_or_flag

logger = logging.getLogger("sheetcalc.config")


@dataclass(frozen=True)
class SolverSettings:
    """IRR solver knobs; defaults are the documented contract."""

    guess: float = IRR_GUESS
    tolerance: float = IRR_TOLERANCE
    max_iterations: int = IRR_MAX_ITERATIONS
    step: float = IRR_STEP

    def __post_init__(self) -> None:
        flags = [f.name for f in fields(self) if isinstance(getattr(self, f.name), bool)]
        if flags:
            raise InvalidArgument(f"solver settings must be numbers, not true/false: {flags}")
        try:
            object.__setattr__(self, "guess", float(self.guess))
            object.__setattr__(self, "tolerance", float(self.tolerance))
            object.__setattr__(self, "step", float(self.step))
            if float(self.max_iterations) != int(self.max_iterations):
                raise ValueError(self.max_iterations)
            object.__setattr__(self, "max_iterations", int(self.max_iterations))
        except (TypeError, ValueError, OverflowError):
            raise InvalidArgument(f"solver settings must be numeric: {self!r}") from None
        if not math.isfinite(self.guess):
            raise InvalidArgument(f"guess must be finite, got {self.guess}")
        check_solver_settings(self.tolerance, self.max_iterations, self.step)

    def as_kwargs(self) -> Dict[str, Any]:
        return asdict(self)


_KEYS = tuple(f.name for f in fields(SolverSettings))


def _flatten_grouped(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge an `irr:` group into the top level. Grouped keys win over flat ones,
    since the group is the explicit form.
    """
    flat: Dict[str, Any] = {k: v for k, v in cfg.items() if k != "irr"}
    group = cfg.get("irr")
    if group is not None:
        if not isinstance(group, dict):
            raise InvalidArgument("'irr' section must be a mapping")
        flat.update(group)
    return flat


def settings_from_dict(cfg: Dict[str, Any], *, mode: Optional[str] = None) -> SolverSettings:
    flat = _flatten_grouped(cfg or {})
    unknown = sorted(k for k in flat if k not in _KEYS)
    if unknown:
        if mode_from_env_or_flag(mode) == "strict":
            raise InvalidArgument(f"unknown solver settings (strict mode): {unknown}")
        logger.info("ignoring unknown solver settings: %s", unknown)
    return SolverSettings(**{k: flat[k] for k in _KEYS if k in flat})


def load_solver_settings(
    source: str | os.PathLike | io.StringIO | None,
    *,
    mode: Optional[str] = None,
) -> SolverSettings:
    """
    Load solver settings from a YAML path or text stream. None gives defaults.

    Accepted shapes:
        irr: {guess: 0.1, tolerance: 0.0001, max_iterations: 100, step: 0.01}
    or the same keys at top level.
    """
    if source is None:
        return SolverSettings()

    text: str
    if hasattr(source, "read"):
        text = str(source.read())
    else:
        p = os.fspath(source)
        try:
            with open(p, "r", encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise InvalidArgument(f"{p}: not UTF-8 text: {e}") from e

    try:
        cfg = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise InvalidArgument(f"solver settings are not valid YAML: {e}") from e
    if not isinstance(cfg, dict):
        raise InvalidArgument("solver settings must be a YAML mapping")
    return settings_from_dict(cfg, mode=mode)


__all__ = ["SolverSettings", "settings_from_dict", "load_solver_settings"]
