# sysid_FitValidator/core/decomposition.py
from __future__ import annotations
import math
from typing import Iterable, Sequence
import numpy as np

from . import config
from .errors import EmptyRunError
from .model import FeedforwardGains, MechanismKind, PreparedData, Storage
from .simulation import Point, check_abort


def compute_step(n: int, max_points: int | None = None, scale: float | None = None) -> int:
    """Stride that keeps a series of ``n`` samples within the plot budget."""
    max_points = config.MAX_POINTS if max_points is None else max_points
    scale = config.STEP_SCALE if scale is None else scale
    return max(1, math.ceil(n / max_points * scale))


def gravity_term(rec: PreparedData, gains: FeedforwardGains, kind: MechanismKind) -> float:
    if kind == "elevator":
        return gains.kg_or_kcos
    if kind == "arm":
        return gains.kg_or_kcos * rec.cos
    return 0.0


def velocity_portion_voltage(rec: PreparedData, gains: FeedforwardGains, kind: MechanismKind) -> float:
    """Voltage left for the Kv term once friction, Ka and gravity are taken out."""
    return float(rec.voltage - np.sign(rec.velocity) * gains.ks
                 - gains.ka * rec.acceleration - gravity_term(rec, gains, kind))


def acceleration_portion_voltage(rec: PreparedData, gains: FeedforwardGains, kind: MechanismKind) -> float:
    """Voltage left for the Ka term once friction, Kv and gravity are taken out."""
    return float(rec.voltage - np.sign(rec.velocity) * gains.ks
                 - gains.kv * rec.velocity - gravity_term(rec, gains, kind))


def _fit_line(values: Sequence[float], gain: float) -> tuple[Point, Point]:
    lo, hi = min(values), max(values)
    return (gain * lo, lo), (gain * hi, hi)


def kv_fit_line(slow: Sequence[PreparedData], kv: float) -> tuple[Point, Point]:
    if not slow:
        raise EmptyRunError("slow run is empty")
    return _fit_line([r.velocity for r in slow], kv)


def ka_fit_line(fast: Sequence[PreparedData], ka: float) -> tuple[Point, Point]:
    if not fast:
        raise EmptyRunError("fast run is empty")
    return _fit_line([r.acceleration for r in fast], ka)


def voltage_domain_points(run: Sequence[PreparedData], gains: FeedforwardGains,
                          kind: MechanismKind, step: int, portion, state: str,
                          abort=None) -> list[Point]:
    """(portion voltage, record.<state>) scatter; ``portion`` is one of the *_portion_voltage functions."""
    out: list[Point] = []
    for i in range(0, len(run), step):
        check_abort(abort)
        out.append((portion(run[i], gains, kind), getattr(run[i], state)))
    return out


def time_series_points(run: Sequence[PreparedData], step: int, attr: str, abort=None) -> list[Point]:
    out: list[Point] = []
    for i in range(0, len(run), step):
        check_abort(abort)
        out.append((run[i].timestamp, getattr(run[i], attr)))
    return out


def timestep_points(run: Sequence[PreparedData], start_times: Iterable[float],
                    step: int, abort=None) -> list[Point]:
    """
    (timestamp, dt in ms) for strided samples after the first. Samples that
    start a test are left out even with dt > 0: their dt spans the seam
    between two tests.
    """
    starts = set(start_times)
    out: list[Point] = []
    for i in range(0, len(run), step):
        check_abort(abort)
        if i == 0:
            continue
        rec = run[i]
        if rec.dt > 0.0 and rec.timestamp not in starts:
            out.append((rec.timestamp, rec.dt * 1000.0))
    return out


def mean_dt_line(data: Storage, dt_mean: float) -> list[Point]:
    """Constant mean-dt (ms) reference line across the full time range of both runs."""
    if not data.slow or not data.fast:
        raise EmptyRunError("slow and fast runs must both be non-empty")
    t_min = min(data.slow[0].timestamp, data.fast[0].timestamp)
    t_max = max(data.slow[-1].timestamp, data.fast[-1].timestamp)
    return [(t_min, dt_mean * 1000.0), (t_max, dt_mean * 1000.0)]
