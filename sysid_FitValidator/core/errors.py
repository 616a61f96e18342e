# sysid_FitValidator/core/errors.py
from __future__ import annotations


class ValidationError(ValueError):
    """Caller contract violation detected at a validation entry point."""


class EmptyRunError(ValidationError):
    pass


class GainsMismatchError(ValidationError):
    pass


class NotComputableError(ValidationError):
    """Metric has no defined value for the accumulated data (no samples, zero velocity)."""


class PassCancelled(Exception):
    """Raised inside a recomputation loop once the abort flag is observed."""
