# sysid_FitValidator/core/plotting.py
from __future__ import annotations
import logging
import time
from matplotlib.figure import Figure

from .analyzer import CHART_TITLES, AnalyzerPlot, PlotData

_LOG = logging.getLogger(__name__)


def _xy(points):
    return [p[0] for p in points], [p[1] for p in points]


def _busy(fig: Figure, analyzer: AnalyzerPlot) -> None:
    fig.clear()
    fig.text(0.5, 0.5, analyzer.busy_indicator(time.monotonic()), ha="center", va="center")


def _scatter(ax, points, label: str) -> None:
    x, y = _xy(points)
    ax.scatter(x, y, s=1, label=label)


def draw_voltage_domain(fig: Figure, analyzer: AnalyzerPlot) -> bool:
    """
    Voltage-domain charts: portion voltage vs velocity / acceleration with the
    Kv / Ka fit lines. Returns False (and draws a busy text) while a pass runs.
    """
    plot = analyzer.try_snapshot()
    if plot is None:
        _busy(fig, analyzer)
        return False

    fig.clear()
    axes = fig.subplots(1, 2)
    specs = (
        (0, plot.kv_fit, "Velocity-Portion Voltage", "Quasistatic Velocity"),
        (1, plot.ka_fit, "Acceleration-Portion Voltage", "Dynamic Acceleration"),
    )
    for ax, (idx, fit, xlabel, ylabel) in zip(axes, specs):
        _scatter(ax, plot.filtered[CHART_TITLES[idx]], "Filtered Data")
        x, y = _xy(fit)
        ax.plot(x, y, linewidth=1.5, label="Fit")
        ax.set_title(CHART_TITLES[idx], fontsize=9)
        ax.set_xlabel(xlabel)
        ax.set_ylabel(ylabel)
        ax.legend(fontsize=8, loc="upper left", frameon=False)
    return True


def _draw_sim(ax, sequences) -> None:
    first = True
    for pts in sequences:
        if not pts:
            continue
        x, y = _xy(pts)
        ax.plot(x, y, linewidth=1.5, label="Simulation" if first else None)
        first = False


def draw_time_domain(fig: Figure, analyzer: AnalyzerPlot) -> bool:
    """Time-domain charts (raw, filtered and simulated velocity/acceleration) plus timesteps."""
    plot = analyzer.try_snapshot()
    if plot is None:
        _busy(fig, analyzer)
        return False

    fig.clear()
    axes = fig.subplots(2, 3).ravel()
    for ax, idx in zip(axes, range(2, 6)):
        _scatter(ax, plot.raw[CHART_TITLES[idx]], "Raw Data")
        _scatter(ax, plot.filtered[CHART_TITLES[idx]], "Filtered Data")
        if idx in (2, 4):
            _draw_sim(ax, plot.quasistatic_sim if idx == 2 else plot.dynamic_sim)
        ax.set_title(CHART_TITLES[idx], fontsize=9)
        ax.set_xlabel("Time (s)")
        ax.set_ylabel(plot.velocity_label if idx % 2 == 0 else plot.acceleration_label)
        ax.legend(fontsize=8, loc="upper right", frameon=False)

    ax = axes[4]
    _scatter(ax, plot.filtered[CHART_TITLES[6]], "Timesteps")
    if plot.dt_mean_line:
        x, y = _xy(plot.dt_mean_line)
        ax.plot(x, y, label="Mean dt")
    ax.set_ylim(0, 50)
    ax.set_title(CHART_TITLES[6], fontsize=9)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Change in Time (ms)")
    ax.legend(fontsize=8, loc="upper right", frameon=False)

    axes[5].axis("off")
    axes[5].text(0.05, 0.5, metrics_text(plot), va="center", fontsize=10)
    return True


def metrics_text(plot: PlotData) -> str:
    rmse = "n/a" if plot.rmse is None else f"{plot.rmse:.4g}"
    r2 = "n/a" if plot.r_squared is None else f"{plot.r_squared:.4g}"
    return f"RMSE: {rmse}\nR²: {r2}\nN: {plot.n_points}"


def draw_combined(analyzer: AnalyzerPlot, figsize=(15, 12)) -> Figure | None:
    """Both chart groups on one figure; None while a pass holds the lock."""
    if analyzer.try_snapshot() is None:
        _LOG.debug("analysis busy; combined figure skipped")
        return None
    fig = Figure(figsize=figsize)
    top, bottom = fig.subfigures(2, 1, height_ratios=[1, 2])
    draw_voltage_domain(top, analyzer)
    draw_time_domain(bottom, analyzer)
    return fig
