"""
Cross-section geometry for non-circular horns.

A horn profile describes an equivalent circular radius along the axis.
These helpers turn that radius into area-matched rectangular or
superellipse cross-sections, sample superellipse outlines, and report how
far a realised cross-section drifts from its target area.

Superellipse |x/a|^n + |y/b|^n = 1 has area:
    A = 4ab · Γ(1 + 1/n)² / Γ(1 + 2/n)
which reduces to πab at n = 2.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from horn_engine.errors import InvalidInputError
from horn_engine.numeric import cubic_interp, gamma, lerp


@dataclass(frozen=True)
class NSchedule:
    """Superellipse exponent blended from throat (start) to mouth (end)."""
    start: float = 2.0
    end: float = 2.0
    easing: str = "linear"  # "linear" | "cubic"


def area_circle(radius: float) -> float:
    return math.pi * radius * radius


def area_ellipse(a: float, b: float) -> float:
    return math.pi * a * b


def _superellipse_factor(n: float) -> float:
    if n <= 0:
        raise InvalidInputError(f"Superellipse exponent must be positive, got {n}")
    g1 = gamma(1.0 + 1.0 / n)
    return 4.0 * g1 * g1 / gamma(1.0 + 2.0 / n)


def area_superellipse(a: float, b: float, n: float) -> float:
    """Area of a superellipse with semi-axes a, b and exponent n."""
    if n == 2:
        return area_ellipse(a, b)
    return a * b * _superellipse_factor(n)


def area_rectangle(width: float, height: float, corner_radius: float = 0.0) -> float:
    """Rectangle area, minus the four corner cut-outs when the corners are rounded."""
    if corner_radius == 0:
        return width * height
    corner = (1.0 - math.pi / 4.0) * corner_radius * corner_radius
    return width * height - 4.0 * corner


def calculate_rectangular_dimensions(
    circular_radius: float,
    aspect: float,
    match_mode: str = "area",
) -> Dict[str, float]:
    """
    Rectangle equivalent to a circular section.

    Args:
        circular_radius: Equivalent radius (mm).
        aspect: width / height.
        match_mode: "area" keeps the circle's area; "dimensions" makes the
            diagonal equal the circle's diameter.

    Returns:
        Dict with width and height (mm).
    """
    if aspect <= 0:
        raise InvalidInputError(f"Aspect ratio must be positive, got {aspect}")

    if match_mode == "area":
        height = math.sqrt(area_circle(circular_radius) / aspect)
    elif match_mode == "dimensions":
        height = 2.0 * circular_radius / math.sqrt(1.0 + aspect * aspect)
    else:
        raise InvalidInputError(f"Unknown match mode '{match_mode}'")

    return {'width': height * aspect, 'height': height}


def calculate_superellipse_dimensions(
    circular_radius: float,
    aspect: float,
    n: float,
) -> Dict[str, float]:
    """Semi-axes (a, b) with a = aspect·b whose superellipse area equals the circle's."""
    if aspect <= 0:
        raise InvalidInputError(f"Aspect ratio must be positive, got {aspect}")
    b = math.sqrt(area_circle(circular_radius) / (_superellipse_factor(n) * aspect))
    return {'a': aspect * b, 'b': b}


def superellipse_points(a: float, b: float, n: float, segments: int) -> np.ndarray:
    """
    Outline of a superellipse, `segments + 1` points around the full turn.

    Returns:
        Array of shape (segments + 1, 2) with x, y columns; the last point
        repeats the first.
    """
    t = np.linspace(0.0, 2.0 * np.pi, segments + 1)
    c, s = np.cos(t), np.sin(t)
    x = a * np.sign(c) * np.abs(c) ** (2.0 / n)
    y = b * np.sign(s) * np.abs(s) ** (2.0 / n)
    return np.column_stack([x, y])


def schedule_n(z: float, length: float, schedule: Optional[NSchedule] = None) -> float:
    """Superellipse exponent at axial position z; 2 (ellipse) with no schedule."""
    if schedule is None:
        return 2.0
    t = z / length
    if schedule.easing == "cubic":
        return cubic_interp(schedule.start, schedule.end, t)
    return lerp(schedule.start, schedule.end, t)


def apply_hv_diff(
    base_radius: float,
    z: float,
    length: float,
    horizontal: float = 0.0,
    vertical: float = 0.0,
) -> Dict[str, float]:
    """Split one radius into horizontal/vertical radii growing linearly along the axis."""
    t = z / length
    return {
        'horizontal': base_radius * (1.0 + horizontal * t),
        'vertical': base_radius * (1.0 + vertical * t),
    }


def calculate_area_drift(target_area: float, actual_area: float) -> float:
    """Relative area error in percent."""
    return abs(actual_area - target_area) / target_area * 100.0
