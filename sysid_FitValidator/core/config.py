# sysid_FitValidator/core/config.py
from __future__ import annotations
import logging
from pathlib import Path
import yaml

# ----- defaults (used if configure_from_config isn't called) -----
MAX_POINTS: int = 2048          # visualization budget per plotted series
STEP_SCALE: float = 4.0         # stride = ceil(n / MAX_POINTS * STEP_SCALE)
DT_OUTLIER_MS: float = 500.0    # dt at or above this is ignored for the mean
ARM_RTOL: float = 1e-6
ARM_ATOL: float = 1e-6

_LOG = logging.getLogger(__name__)


def load_config(cfg_path: Path) -> dict:
    with Path(cfg_path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def configure_from_config(cfg: dict) -> None:
    """
    Optional: call once at startup to override defaults from config.yaml.
    Reads the ``analysis`` section; unknown keys are ignored.
    """
    global MAX_POINTS, STEP_SCALE, DT_OUTLIER_MS, ARM_RTOL, ARM_ATOL

    # reset to defaults each call so repeated invocations do not accumulate
    MAX_POINTS = 2048
    STEP_SCALE = 4.0
    DT_OUTLIER_MS = 500.0
    ARM_RTOL = 1e-6
    ARM_ATOL = 1e-6

    ana = (cfg or {}).get("analysis", {}) or {}
    MAX_POINTS    = int(ana.get("max_points", MAX_POINTS))
    STEP_SCALE    = float(ana.get("step_scale", STEP_SCALE))
    DT_OUTLIER_MS = float(ana.get("dt_outlier_ms", DT_OUTLIER_MS))
    ARM_RTOL      = float(ana.get("arm_rtol", ARM_RTOL))
    ARM_ATOL      = float(ana.get("arm_atol", ARM_ATOL))

    if MAX_POINTS <= 0:
        raise ValueError(f"analysis.max_points must be positive, got {MAX_POINTS}")
    if STEP_SCALE <= 0:
        raise ValueError(f"analysis.step_scale must be positive, got {STEP_SCALE}")
    _LOG.debug("configured max_points=%d step_scale=%g dt_outlier_ms=%g",
               MAX_POINTS, STEP_SCALE, DT_OUTLIER_MS)
