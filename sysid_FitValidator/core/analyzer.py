# sysid_FitValidator/core/analyzer.py
"""
Plot-ready output of one validation pass and the lock that guards it.

A background thread calls ``AnalyzerPlot.set_data`` (or ``set_raw_data``);
the pass holds the lock from start to finish and builds a brand-new
``PlotData`` that only replaces the published one once the pass completes.
A rendering thread calls ``try_snapshot`` which never blocks: ``None`` means
a pass is in progress and the caller should show ``busy_indicator`` and try
again on the next frame.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import logging
import threading
from typing import Sequence

from .decomposition import (
    acceleration_portion_voltage, compute_step, ka_fit_line, kv_fit_line,
    mean_dt_line, time_series_points, timestep_points, velocity_portion_voltage,
    voltage_domain_points,
)
from .errors import EmptyRunError, PassCancelled
from .mechanisms import make_model
from .metrics import FitMetrics
from .model import FeedforwardGains, MechanismKind, Storage, get_mean_time_delta, parse_mechanism_kind
from .simulation import Point, populate_time_domain_sim
from .units import get_abbreviation

_LOG = logging.getLogger(__name__)

CHART_TITLES: tuple[str, ...] = (
    "Quasistatic Velocity vs. Velocity-Portion Voltage",
    "Dynamic Acceleration vs. Acceleration-Portion Voltage",
    "Quasistatic Velocity vs. Time",
    "Quasistatic Acceleration vs. Time",
    "Dynamic Velocity vs. Time",
    "Dynamic Acceleration vs. Time",
    "Timesteps vs. Time",
)
MAX_START_TIMES = 4
_SPINNER = "|/-\\"


class AnalyzerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLING = "cancelling"
    PUBLISHED = "published"


def _empty_series() -> dict[str, list[Point]]:
    return {title: [] for title in CHART_TITLES}


@dataclass
class PlotData:
    filtered: dict[str, list[Point]] = field(default_factory=_empty_series)
    raw: dict[str, list[Point]] = field(default_factory=_empty_series)
    kv_fit: tuple[Point, Point] = ((0.0, 0.0), (0.0, 0.0))
    ka_fit: tuple[Point, Point] = ((0.0, 0.0), (0.0, 0.0))
    dt_mean_line: list[Point] = field(default_factory=list)
    quasistatic_sim: list[list[Point]] = field(default_factory=list)
    dynamic_sim: list[list[Point]] = field(default_factory=list)
    rmse: float | None = None
    r_squared: float | None = None
    n_points: int = 0
    velocity_label: str = "Velocity"
    acceleration_label: str = "Acceleration"


class _AnyFlag:
    def __init__(self, *flags):
        self._flags = [f for f in flags if f is not None]

    def is_set(self) -> bool:
        return any(f.is_set() for f in self._flags)


def _check_start_times(start_times: Sequence[float]) -> tuple[float, ...]:
    starts = tuple(float(t) for t in start_times)
    if len(starts) > MAX_START_TIMES:
        raise ValueError(f"at most {MAX_START_TIMES} start timestamps are supported, got {len(starts)}")
    return starts


def _labels(unit: str) -> tuple[str, str]:
    abbr = get_abbreviation(unit)
    return f"Velocity ({abbr} / s)", f"Acceleration ({abbr} / s^2)"


class AnalyzerPlot:
    def __init__(self):
        self._lock = threading.Lock()
        # held only for state transitions; _lock is held for a whole pass
        self._state_lock = threading.Lock()
        self._cancel = threading.Event()
        self._plot = PlotData()
        self._has_published = False
        self.state = AnalyzerState.IDLE

    # ----- consumer side -----
    def try_snapshot(self) -> PlotData | None:
        """Most recently published output, or None while a pass holds the lock."""
        if not self._lock.acquire(blocking=False):
            return None
        try:
            return self._plot
        finally:
            self._lock.release()

    @staticmethod
    def busy_indicator(now: float) -> str:
        return f"Loading {_SPINNER[int(now / 0.05) & 3]}"

    def cancel(self) -> None:
        """Ask a running pass to stop at its next sample; published output is kept."""
        with self._state_lock:
            if self.state is AnalyzerState.RUNNING:
                self.state = AnalyzerState.CANCELLING
                self._cancel.set()

    # ----- producer side -----
    def reset_data(self) -> None:
        with self._lock, self._state_lock:
            self._plot = PlotData()
            self._has_published = False
            self.state = AnalyzerState.IDLE

    def set_raw_data(self, raw: Storage, unit: str, abort=None) -> bool:
        def build(flag) -> PlotData:
            plot = PlotData()
            plot.velocity_label, plot.acceleration_label = _labels(unit)
            self._fill_raw(plot, raw, flag)
            return plot
        return self._run_pass(build, abort)

    def set_data(self, raw: Storage, filtered: Storage, unit: str,
                 gains: Sequence[float], start_times: Sequence[float],
                 kind: MechanismKind, abort=None) -> bool:
        """
        Recompute every series, fit line, simulated trajectory and metric.

        Contract violations (unknown kind, too few gains, too many start
        times, an empty run) raise before the lock is taken. Returns True
        when the new output was published, False when the pass was cancelled.
        """
        kind = parse_mechanism_kind(kind)
        ff = FeedforwardGains.from_list(gains, kind)
        starts = _check_start_times(start_times)
        for name, run in (("filtered slow", filtered.slow), ("filtered fast", filtered.fast),
                          ("raw slow", raw.slow), ("raw fast", raw.fast)):
            if not run:
                raise EmptyRunError(f"{name} run is empty")

        def build(flag) -> PlotData:
            return self._build(raw, filtered, unit, ff, starts, kind, flag)
        return self._run_pass(build, abort)

    def _run_pass(self, build, abort) -> bool:
        with self._lock:
            with self._state_lock:
                self._cancel.clear()
                self.state = AnalyzerState.RUNNING
            try:
                plot = build(_AnyFlag(self._cancel, abort))
            except PassCancelled:
                _LOG.info("analysis pass cancelled; keeping previously published output")
                self._settle()
                return False
            except Exception:
                self._settle()
                raise
            with self._state_lock:
                self._plot = plot
                self._has_published = True
                self._cancel.clear()
                self.state = AnalyzerState.PUBLISHED
            return True

    def _settle(self) -> None:
        with self._state_lock:
            self._cancel.clear()
            self.state = AnalyzerState.PUBLISHED if self._has_published else AnalyzerState.IDLE

    @staticmethod
    def _fill_raw(plot: PlotData, raw: Storage, flag) -> None:
        slow_step = compute_step(len(raw.slow))
        fast_step = compute_step(len(raw.fast))
        plot.raw[CHART_TITLES[2]] = time_series_points(raw.slow, slow_step, "velocity", flag)
        plot.raw[CHART_TITLES[3]] = time_series_points(raw.slow, slow_step, "acceleration", flag)
        plot.raw[CHART_TITLES[4]] = time_series_points(raw.fast, fast_step, "velocity", flag)
        plot.raw[CHART_TITLES[5]] = time_series_points(raw.fast, fast_step, "acceleration", flag)

    def _build(self, raw: Storage, filtered: Storage, unit: str, ff: FeedforwardGains,
               starts: tuple[float, ...], kind: MechanismKind, flag) -> PlotData:
        slow, fast = filtered.slow, filtered.fast
        plot = PlotData()
        plot.velocity_label, plot.acceleration_label = _labels(unit)

        slow_step = compute_step(len(slow))
        fast_step = compute_step(len(fast))
        _LOG.debug("strides: slow=%d (n=%d) fast=%d (n=%d)", slow_step, len(slow), fast_step, len(fast))

        f = plot.filtered
        f[CHART_TITLES[0]] = voltage_domain_points(slow, ff, kind, slow_step,
                                                   velocity_portion_voltage, "velocity", flag)
        f[CHART_TITLES[1]] = voltage_domain_points(fast, ff, kind, fast_step,
                                                   acceleration_portion_voltage, "acceleration", flag)
        f[CHART_TITLES[2]] = time_series_points(slow, slow_step, "velocity", flag)
        f[CHART_TITLES[3]] = time_series_points(slow, slow_step, "acceleration", flag)
        f[CHART_TITLES[4]] = time_series_points(fast, fast_step, "velocity", flag)
        f[CHART_TITLES[5]] = time_series_points(fast, fast_step, "acceleration", flag)
        f[CHART_TITLES[6]] = (timestep_points(slow, starts, slow_step, flag)
                              + timestep_points(fast, starts, fast_step, flag))

        plot.kv_fit = kv_fit_line(slow, ff.kv)
        plot.ka_fit = ka_fit_line(fast, ff.ka)

        try:
            plot.dt_mean_line = mean_dt_line(filtered, get_mean_time_delta(filtered))
        except EmptyRunError:
            _LOG.warning("no valid dt in filtered data; mean dt line omitted")

        self._fill_raw(plot, raw, flag)

        metrics = FitMetrics()
        model = make_model(kind, ff)
        plot.quasistatic_sim = populate_time_domain_sim(
            raw.slow, starts, model, metrics, flag)
        plot.dynamic_sim = populate_time_domain_sim(
            raw.fast, starts, model, metrics, flag)

        summary = metrics.summary()
        plot.rmse, plot.r_squared, plot.n_points = summary["rmse"], summary["r_squared"], summary["n_points"]
        if plot.r_squared is None:
            _LOG.warning("R^2 not computable (n=%d)", plot.n_points)
        _LOG.info("%s fit: rmse=%s r2=%s over %d points",
                  kind, plot.rmse, plot.r_squared, plot.n_points)
        return plot
