# sysid_FitValidator/core/simulation.py
from __future__ import annotations
import logging
from typing import Iterable, Sequence

from .errors import EmptyRunError, PassCancelled
from .metrics import FitMetrics
from .model import PreparedData

_LOG = logging.getLogger(__name__)

Point = tuple[float, float]


def check_abort(abort) -> None:
    if abort is not None and abort.is_set():
        raise PassCancelled()


def populate_time_domain_sim(data: Sequence[PreparedData],
                             start_times: Iterable[float],
                             model,
                             metrics: FitMetrics,
                             abort=None) -> list[list[Point]]:
    """
    Replay one recorded run through ``model`` and return the predicted
    velocity as one (time, velocity) sequence per physical test.

    A sample whose timestamp is in ``start_times`` starts a new test: the
    current sequence is closed and the model is re-seeded from that sample.
    Every other sample is reached by stepping the model with the *previous*
    sample's voltage and dt (zero-order hold), and contributes one error term
    to ``metrics``. Every predicted point is kept, one per replayed sample.
    """
    if not data:
        raise EmptyRunError("cannot simulate an empty run")
    starts = set(start_times)

    pts: list[list[Point]] = []
    tmp: list[Point] = []

    start_time = data[0].timestamp
    tmp.append((start_time, data[0].velocity))
    model.reset(data[0].position, data[0].velocity)
    t = 0.0

    for i in range(1, len(data)):
        check_abort(abort)
        now, pre = data[i], data[i - 1]
        t += now.timestamp - pre.timestamp

        if now.timestamp in starts:
            pts.append(tmp)
            tmp = []
            model.reset(now.position, now.velocity)
            continue

        if pre.dt <= 0.0:
            # previous sample has no valid successor; nothing to integrate over
            continue

        model.step(pre.voltage, pre.dt)
        predicted = model.velocity()
        tmp.append((start_time + t, predicted))
        metrics.add(now.velocity, predicted)

    pts.append(tmp)
    _LOG.debug("replayed %d samples into %d sequence(s)", len(data), len(pts))
    return pts
