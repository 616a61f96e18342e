# sysid_FitValidator/core/metrics.py
from __future__ import annotations
from dataclasses import dataclass
import math

from .errors import NotComputableError


@dataclass
class FitMetrics:
    """Running sums for RMSE / R^2 of predicted vs measured velocity.

    One instance per validation pass; it is shared by the slow and fast
    replays so both runs land in the same statistic.
    """
    squared_error_sum: float = 0.0
    squared_velocity_sum: float = 0.0
    count: int = 0

    def add(self, measured: float, predicted: float) -> None:
        self.squared_error_sum += (measured - predicted) ** 2
        self.squared_velocity_sum += measured ** 2
        self.count += 1

    def reset(self) -> None:
        self.squared_error_sum = 0.0
        self.squared_velocity_sum = 0.0
        self.count = 0

    def rmse(self) -> float:
        # sqrt(sum((x_i - x^_i)^2) / N) over every replayed sample
        if self.count == 0:
            raise NotComputableError("RMSE needs at least one replayed sample")
        return math.sqrt(self.squared_error_sum / self.count)

    def r_squared(self) -> float:
        rmse = self.rmse()
        if self.squared_velocity_sum == 0.0:
            raise NotComputableError("R^2 undefined: measured velocity is zero everywhere")
        return 1.0 - rmse / math.sqrt(self.squared_velocity_sum / self.count)

    def summary(self) -> dict:
        out = {"rmse": None, "r_squared": None, "n_points": self.count}
        if self.count:
            out["rmse"] = self.rmse()
            if self.squared_velocity_sum > 0.0:
                out["r_squared"] = self.r_squared()
        return out
