from sysid_FitValidator.core.model import PreparedData, Storage


def make_run(n, dt=0.02, t0=0.0, voltage=1.0, vel=None, acc=0.0):
    """Evenly spaced run; the last sample has dt=0 (no successor)."""
    vel = vel or (lambda i: 0.05 * i)
    out = []
    for i in range(n):
        out.append(PreparedData(
            timestamp=round(t0 + i * dt, 9),
            voltage=voltage,
            position=0.001 * i,
            velocity=vel(i),
            dt=dt if i < n - 1 else 0.0,
            acceleration=acc,
        ))
    return out


def make_storage(n_slow=20, n_fast=20):
    slow = make_run(n_slow)
    fast = make_run(n_fast, t0=10.0, voltage=6.0, vel=lambda i: 0.4 * i, acc=20.0)
    return Storage(slow=slow, fast=fast)
