# sysid_FitValidator/core/units.py
from __future__ import annotations

UNITS: tuple[str, ...] = ("Meters", "Feet", "Inches", "Radians", "Rotations", "Degrees")

_ABBREVIATIONS = {
    "meters": "m",
    "feet": "ft",
    "inches": "in",
    "radians": "rad",
    "rotations": "rot",
    "degrees": "deg",
}


def get_abbreviation(unit: str) -> str:
    """Short axis label for a unit name; unknown names are returned as given."""
    return _ABBREVIATIONS.get(str(unit).strip().lower(), str(unit))
