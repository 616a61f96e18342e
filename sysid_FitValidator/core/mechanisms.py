# sysid_FitValidator/core/mechanisms.py
"""
Feedforward plant models used to replay a recorded run.

Each model tracks (position, velocity) and is advanced with a zero-order
hold on the applied voltage:

    V = Ks*sgn(v) + Kv*v + Ka*a [+ Kg | + Kcos*cos(p)]

The generic and elevator models are linear between sign changes of the
velocity and are stepped exactly (matrix exponential of the augmented
system). The arm model has a cos(position) term and is integrated with RK45.
"""
from __future__ import annotations
import math
import numpy as np
from scipy.integrate import solve_ivp
from scipy.linalg import expm

from . import config
from .model import FeedforwardGains, MechanismKind, parse_mechanism_kind


def _step_linear(x: np.ndarray, ks: float, kv: float, ka: float, offset: float,
                 voltage: float, dt: float) -> np.ndarray:
    """Advance [p, v] by dt under constant voltage; offset is the gravity voltage."""
    p, v = x
    drive = voltage - ks * np.sign(v) - offset
    if ka == 0.0:
        # no inertia: velocity jumps to steady state (or holds if there is no gain at all)
        if kv != 0.0:
            v = drive / kv
        return np.array([p + v * dt, v])

    # dx/dt = A x + f, f = [0, drive/Ka]; exact ZOH via the augmented matrix
    A = np.array([[0.0, 1.0],
                  [0.0, -kv / ka]])
    f = np.array([[0.0],
                  [drive / ka]])
    M = np.block([[A, f],
                  [np.zeros((1, 3))]])
    Md = expm(M * dt)
    return Md[:2, :2] @ x + Md[:2, 2]


class SimpleMotorSim:
    """Generic drivetrain / flywheel: no gravity term."""

    def __init__(self, ks: float, kv: float, ka: float):
        self.ks, self.kv, self.ka = ks, kv, ka
        self._x = np.zeros(2)

    def reset(self, position: float, velocity: float) -> None:
        self._x = np.array([position, velocity], dtype=float)

    def step(self, voltage: float, dt: float) -> None:
        self._x = _step_linear(self._x, self.ks, self.kv, self.ka, 0.0, voltage, dt)

    def position(self) -> float:
        return float(self._x[0])

    def velocity(self) -> float:
        return float(self._x[1])


class ElevatorSim:
    """Elevator: gravity enters as a constant voltage Kg."""

    def __init__(self, ks: float, kv: float, ka: float, kg: float):
        self.ks, self.kv, self.ka, self.kg = ks, kv, ka, kg
        self._x = np.zeros(2)

    def reset(self, position: float, velocity: float) -> None:
        self._x = np.array([position, velocity], dtype=float)

    def step(self, voltage: float, dt: float) -> None:
        self._x = _step_linear(self._x, self.ks, self.kv, self.ka, self.kg, voltage, dt)

    def position(self) -> float:
        return float(self._x[0])

    def velocity(self) -> float:
        return float(self._x[1])


class ArmSim:
    """Arm: gravity voltage Kcos*cos(angle); the angle is tracked internally."""

    def __init__(self, ks: float, kv: float, ka: float, kcos: float):
        self.ks, self.kv, self.ka, self.kcos = ks, kv, ka, kcos
        self._x = np.zeros(2)

    def reset(self, position: float, velocity: float) -> None:
        self._x = np.array([position, velocity], dtype=float)

    def _rhs(self, _t, y, voltage):
        accel = (voltage - self.ks * np.sign(y[1]) - self.kv * y[1]
                 - self.kcos * math.cos(y[0])) / self.ka
        return [y[1], accel]

    def step(self, voltage: float, dt: float) -> None:
        if self.ka == 0.0:
            gravity = self.kcos * math.cos(self._x[0])
            self._x = _step_linear(self._x, self.ks, self.kv, 0.0, gravity, voltage, dt)
            return
        sol = solve_ivp(self._rhs, (0.0, dt), self._x, method="RK45", args=(voltage,),
                        rtol=config.ARM_RTOL, atol=config.ARM_ATOL)
        self._x = np.asarray(sol.y[:, -1], dtype=float)

    def position(self) -> float:
        return float(self._x[0])

    def velocity(self) -> float:
        return float(self._x[1])


_REGISTRY = {
    "generic":  lambda g: SimpleMotorSim(g.ks, g.kv, g.ka),
    "elevator": lambda g: ElevatorSim(g.ks, g.kv, g.ka, g.kg_or_kcos),
    "arm":      lambda g: ArmSim(g.ks, g.kv, g.ka, g.kg_or_kcos),
}


def make_model(kind: MechanismKind, gains: FeedforwardGains):
    """Build the model variant for ``kind``; chosen once per validation pass."""
    return _REGISTRY[parse_mechanism_kind(kind)](gains)
