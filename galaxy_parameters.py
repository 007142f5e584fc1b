"""
Galaxy parameter set and the validation layer that guards the generator.

The generator itself trusts its input. Anything coming from a user, a file
or a slider goes through ``validate_parameters`` or ``commit_parameter``
first.
"""
from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from matplotlib.colors import to_rgb

from logging_config import get_logger

logger = get_logger("parameters")

Color = Union[str, Tuple[float, float, float]]

# -----------------------------
# DEFAULTS
# -----------------------------
DEFAULT_COUNT = 100000
DEFAULT_SIZE = 0.01
DEFAULT_RADIUS = 3.0
DEFAULT_ARMS = 3
DEFAULT_SPIN = 1.0
DEFAULT_RANDOMNESS = 0.2
DEFAULT_ARM_CONCENTRATION = 3.0
DEFAULT_GALAXY_CONCENTRATION = 1.0
DEFAULT_INSIDE_COLOR = "#ff6030"
DEFAULT_OUTSIDE_COLOR = "#1b3984"
DEFAULT_ROTATION_SPEED = 0.02

# field -> (min, max, step)
PARAMETER_RANGES: Dict[str, Tuple[float, float, float]] = {
    "count": (100, 1_000_000, 100),
    "size": (0.001, 0.1, 0.001),
    "radius": (0.01, 20.0, 0.01),
    "arms": (2, 20, 1),
    "spin": (0.0, 2.0, 0.001),
    "randomness": (0.0, 5.0, 0.001),
    "arm_concentration": (0.0, 20.0, 0.001),
    "galaxy_concentration": (1.0, 2.0, 0.001),
    "rotation_speed": (0.001, 4.0, 0.05),
}

INTEGER_FIELDS = ("count", "arms")
COLOR_FIELDS = ("inside_color", "outside_color")

# Fields that only the renderer or the animation loop read.
DISPLAY_ONLY_FIELDS = ("size", "rotation_speed")

# Names used by the browser harness' parameter object.
FIELD_ALIASES = {
    "armConcentration": "arm_concentration",
    "galaxyConcentration": "galaxy_concentration",
    "insideColor": "inside_color",
    "outsideColor": "outside_color",
    "rotationSpeed": "rotation_speed",
    "randomPower": "arm_concentration",
    "radiusPower": "galaxy_concentration",
}


class ParameterError(ValueError):
    """Raised when a parameter value falls outside its documented domain."""


@dataclass
class GalaxyParameters:
    count: int = DEFAULT_COUNT
    size: float = DEFAULT_SIZE
    radius: float = DEFAULT_RADIUS
    arms: int = DEFAULT_ARMS
    spin: float = DEFAULT_SPIN
    randomness: float = DEFAULT_RANDOMNESS
    arm_concentration: float = DEFAULT_ARM_CONCENTRATION
    galaxy_concentration: float = DEFAULT_GALAXY_CONCENTRATION
    inside_color: Color = DEFAULT_INSIDE_COLOR
    outside_color: Color = DEFAULT_OUTSIDE_COLOR
    rotation_speed: float = DEFAULT_ROTATION_SPEED


def field_names() -> Tuple[str, ...]:
    return tuple(f.name for f in fields(GalaxyParameters))


def canonical_field(name: str) -> str:
    """Map an alias (``insideColor``, ``randomPower``...) to the field name."""
    name = FIELD_ALIASES.get(name, name)
    if name not in field_names():
        raise ParameterError(f"Unknown galaxy parameter: {name!r}")
    return name


def parse_color(value: Color) -> Tuple[float, float, float]:
    """
    Convert a hex string, color name or RGB triple into floats in [0, 1].

    Examples:
        parse_color("#ff6030") -> (1.0, 0.376..., 0.188...)
        parse_color((0.1, 0.2, 0.5)) -> (0.1, 0.2, 0.5)
    """
    if isinstance(value, list):
        value = tuple(value)
    try:
        r, g, b = to_rgb(value)
    except (ValueError, TypeError) as exc:
        raise ParameterError(f"Invalid color: {value!r}") from exc
    return float(r), float(g), float(b)


def _check_number(name: str, value: Any) -> None:
    low, high, _ = PARAMETER_RANGES[name]

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParameterError(f"{name} must be a number, got {value!r}")
    if name in INTEGER_FIELDS and int(value) != value:
        raise ParameterError(f"{name} must be an integer, got {value!r}")
    if not math.isfinite(value) or not (low <= value <= high):
        raise ParameterError(f"{name}={value!r} is outside [{low}, {high}]")


def validate_parameters(params: GalaxyParameters) -> GalaxyParameters:
    """Reject parameter sets the generator is not defined for."""
    for name in PARAMETER_RANGES:
        _check_number(name, getattr(params, name))
    for name in COLOR_FIELDS:
        parse_color(getattr(params, name))
    return params


def snap_to_step(name: str, value: float) -> float:
    """Round ``value`` onto the slider grid of ``name``, anchored at its minimum."""
    low, high, step = PARAMETER_RANGES[name]
    # half-up, so 150 on a 100-step grid anchored at 100 goes to 200
    snapped = low + math.floor((value - low) / step + 0.5) * step
    # the last grid point can overshoot the maximum (3.951, 4.001 for rotation_speed)
    snapped = min(max(snapped, low), high)
    snapped = float(f"{snapped:.15g}")
    if name in INTEGER_FIELDS:
        return int(round(snapped))
    return snapped


def commit_parameter(params: GalaxyParameters, name: str, value: Any) -> GalaxyParameters:
    """
    Apply a committed edit of one field and return the new parameter set.

    Numeric values outside the field's range are rejected; values inside it
    land on the step grid, clamped to the range.
    ``params`` is left untouched, so a rejected edit keeps the old set.
    """
    name = canonical_field(name)

    if name in PARAMETER_RANGES:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParameterError(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise ParameterError(f"{name} must be finite, got {value!r}")
        low, high, _ = PARAMETER_RANGES[name]
        if not (low <= value <= high):
            raise ParameterError(f"{name}={value!r} is outside [{low}, {high}]")
        value = snap_to_step(name, value)
    elif name in COLOR_FIELDS:
        parse_color(value)

    updated = validate_parameters(replace(params, **{name: value}))
    logger.debug("Committed %s=%r", name, value)
    return updated


def parameters_from_dict(data: Dict[str, Any]) -> GalaxyParameters:
    """Build a validated parameter set; missing keys keep their defaults."""
    if not isinstance(data, dict):
        raise ParameterError("Galaxy parameters must be a JSON object")

    kwargs = {}
    for key, value in data.items():
        name = canonical_field(key)
        if name in COLOR_FIELDS and isinstance(value, list):
            value = tuple(value)
        kwargs[name] = value
    return validate_parameters(GalaxyParameters(**kwargs))


def load_parameters(path: Union[str, Path]) -> GalaxyParameters:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ParameterError(f"{path} is not valid JSON: {exc}") from exc

    params = parameters_from_dict(data)
    logger.info("Loaded galaxy parameters from %s", path)
    return params


def save_parameters(params: GalaxyParameters, path: Union[str, Path]) -> Path:
    """Write JSON through a temp file and swap it in."""
    path = Path(path)
    tmp = path.with_suffix(".tmp")

    with tmp.open("w", encoding="utf-8") as f:
        json.dump(asdict(params), f, indent=2, sort_keys=True)

    tmp.replace(path)
    logger.info("Saved galaxy parameters to %s", path)
    return path
