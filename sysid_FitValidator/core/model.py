# sysid_FitValidator/core/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Literal, Sequence
import numpy as np
import pandas as pd

from . import config
from .errors import EmptyRunError, GainsMismatchError

MechanismKind = Literal["generic", "elevator", "arm"]
MECHANISM_KINDS: tuple[str, ...] = ("generic", "elevator", "arm")
_KIND_ALIASES = {"simple": "generic", "simple_motor": "generic", "drivetrain": "generic"}

# number of ordered gains (Ks, Kv, Ka, [Kg|Kcos]) each kind needs
_REQUIRED_GAINS = {"generic": 3, "elevator": 4, "arm": 4}

RECORD_COLUMNS: tuple[str, ...] = (
    "timestamp", "voltage", "position", "velocity",
    "next_velocity", "dt", "acceleration", "cos",
)


@dataclass(frozen=True)
class PreparedData:
    timestamp: float          # seconds, non-decreasing within a run
    voltage: float
    position: float
    velocity: float
    next_velocity: float = 0.0
    dt: float = 0.0           # seconds to the next sample; 0 -> no valid successor
    acceleration: float = 0.0
    # cosine of the position; only arm data fills it (records_from_frame derives it),
    # other kinds leave 0.0 and never read it
    cos: float = 0.0

    def __post_init__(self):
        if self.dt < 0:
            raise ValueError(f"dt must be >= 0, got {self.dt} at t={self.timestamp}")


@dataclass
class Storage:
    slow: list[PreparedData] = field(default_factory=list)   # quasistatic run
    fast: list[PreparedData] = field(default_factory=list)   # dynamic run


@dataclass(frozen=True)
class FeedforwardGains:
    ks: float
    kv: float
    ka: float
    kg_or_kcos: float = 0.0   # Kg for elevator, Kcos for arm, unused for generic

    @classmethod
    def from_list(cls, gains: Sequence[float], kind: MechanismKind) -> "FeedforwardGains":
        need = _REQUIRED_GAINS[parse_mechanism_kind(kind)]
        if len(gains) < need:
            raise GainsMismatchError(
                f"{kind} needs {need} gains (Ks, Kv, Ka{', Kg/Kcos' if need == 4 else ''}), got {len(gains)}"
            )
        extra = float(gains[3]) if need == 4 else 0.0
        return cls(float(gains[0]), float(gains[1]), float(gains[2]), extra)


def parse_mechanism_kind(value: str) -> MechanismKind:
    k = str(value or "").strip().lower()
    k = _KIND_ALIASES.get(k, k)
    if k not in MECHANISM_KINDS:
        raise ValueError(f"unknown mechanism kind {value!r}; expected one of {MECHANISM_KINDS}")
    return k  # type: ignore[return-value]


def records_from_frame(df: pd.DataFrame) -> list[PreparedData]:
    """
    Build records from a DataFrame with canonical columns.

    Required: timestamp, voltage, position, velocity.
    Optional: next_velocity, dt, acceleration, cos. A missing ``dt`` is taken
    from consecutive timestamps (last sample gets 0), a missing ``cos`` from
    cos(position) and a missing ``next_velocity`` from the shifted velocity.
    """
    missing = [c for c in ("timestamp", "voltage", "position", "velocity") if c not in df.columns]
    if missing:
        raise ValueError(f"frame missing required columns: {missing}")
    if df.empty:
        return []

    df = df.sort_values("timestamp", kind="stable").reset_index(drop=True)
    t = df["timestamp"].to_numpy(float)
    cols = {c: df[c].to_numpy(float) for c in ("voltage", "position", "velocity")}
    cols["timestamp"] = t
    cols["dt"] = (df["dt"].to_numpy(float) if "dt" in df.columns
                  else np.append(np.diff(t), 0.0))
    cols["next_velocity"] = (df["next_velocity"].to_numpy(float) if "next_velocity" in df.columns
                             else np.append(cols["velocity"][1:], 0.0))
    cols["acceleration"] = (df["acceleration"].to_numpy(float) if "acceleration" in df.columns
                            else np.zeros(len(df)))
    cols["cos"] = (df["cos"].to_numpy(float) if "cos" in df.columns
                   else np.cos(cols["position"]))

    return [PreparedData(**{c: float(cols[c][i]) for c in RECORD_COLUMNS}) for i in range(len(df))]


def frame_from_records(records: Sequence[PreparedData]) -> pd.DataFrame:
    return pd.DataFrame(
        [[getattr(r, c) for c in RECORD_COLUMNS] for r in records],
        columns=list(RECORD_COLUMNS),
    )


def get_mean_time_delta(data: Storage) -> float:
    """Mean dt (seconds) over slow + fast, counting only 0 < dt < DT_OUTLIER_MS."""
    limit_s = config.DT_OUTLIER_MS / 1000.0
    dts = [r.dt for r in (*data.slow, *data.fast) if 0.0 < r.dt < limit_s]
    if not dts:
        raise EmptyRunError("no samples with a valid dt to average")
    return float(np.mean(dts))
