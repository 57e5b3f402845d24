"""
Profile data model: kinds, parameters, per-kind option records.

Every generator receives a ProfileParams whose `options` field is the
option record belonging to its kind (or None for the documented defaults).
The shared post-processing (axial sampling, affine rescale, clamping,
monotonic enforcement, endpoint pinning) lives here as well so closed-form
and implicit generators finish a profile the same way.
"""

import numbers
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Union, get_args

import numpy as np

from horn_engine.constants import DEFAULT_SEGMENTS, DESIGN_SPEED_OF_SOUND
from horn_engine.errors import InvalidInputError


class ProfileKind(str, Enum):
    CONICAL = "conical"
    EXPONENTIAL = "exponential"
    HYPERBOLIC = "hyperbolic"
    HYPEX = "hypex"
    PARABOLIC = "parabolic"
    PETF = "petf"
    WN_ALO = "wn_alo"
    HYPERBOLIC_SPIRAL = "hyperbolic_spiral"
    OBLATE_SPHEROID = "oblate_spheroid"
    TRACTRIX = "tractrix"
    SPHERICAL = "spherical"
    JMLC = "jmlc"


@dataclass(frozen=True)
class ProfilePoint:
    """One sample of a horn profile (mm)."""
    x: float       # axial distance from throat
    radius: float


# ---------------------------------------------------------------------------
# Per-kind options
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConicalOptions:
    pass


@dataclass(frozen=True)
class ExponentialOptions:
    cutoff_frequency: Optional[float] = None   # Hz
    speed_of_sound: float = DESIGN_SPEED_OF_SOUND


@dataclass(frozen=True)
class HyperbolicOptions:
    cutoff_frequency: Optional[float] = None
    speed_of_sound: float = DESIGN_SPEED_OF_SOUND


@dataclass(frozen=True)
class HypexOptions:
    t_factor: float = 0.707
    cutoff_frequency: Optional[float] = None
    speed_of_sound: float = DESIGN_SPEED_OF_SOUND


@dataclass(frozen=True)
class ParabolicOptions:
    power: float = 2.0


@dataclass(frozen=True)
class PetfOptions:
    """Progressive expansion T-factor: T moves from t_start at the throat to t_end at the mouth."""
    t_start: float = 0.5
    t_end: float = 1.0
    progression: str = "exponential"   # "linear" | "exponential" | "sigmoid"


@dataclass(frozen=True)
class WnAloOptions:
    """William Neile / acoustic-loading-optimised curve."""
    loading_factor: float = 0.6
    curve_power: float = 2.0 / 3.0


@dataclass(frozen=True)
class HyperbolicSpiralOptions:
    beta: float = 4.0


@dataclass(frozen=True)
class OblateSpheroidOptions:
    coverage_angle: float = 90.0   # degrees, full angle
    throat_angle: float = 0.0      # degrees, wall half-angle at the throat


@dataclass(frozen=True)
class TractrixOptions:
    cutoff_frequency: Optional[float] = None
    speed_of_sound: float = DESIGN_SPEED_OF_SOUND


@dataclass(frozen=True)
class SphericalOptions:
    throat_angle: float = 0.0             # degrees
    mouth_angle: Optional[float] = None   # degrees


@dataclass(frozen=True)
class JmlcOptions:
    cutoff_frequency: Optional[float] = None
    t_factor: float = 0.64
    coverage_angle: float = 90.0
    speed_of_sound: float = DESIGN_SPEED_OF_SOUND
    substeps: int = 8


ProfileOptions = Union[
    ConicalOptions, ExponentialOptions, HyperbolicOptions, HypexOptions,
    ParabolicOptions, PetfOptions, WnAloOptions, HyperbolicSpiralOptions,
    OblateSpheroidOptions, TractrixOptions, SphericalOptions, JmlcOptions,
]


def _accepts(annotation, value) -> bool:
    """Whether `value` fits a field annotated float, int, str or Optional of one of those."""
    allowed = get_args(annotation) or (annotation,)
    if value is None:
        return type(None) in allowed
    if isinstance(value, bool):
        return False
    if float in allowed and isinstance(value, numbers.Real):
        return True
    if int in allowed and isinstance(value, numbers.Integral):
        return True
    return str in allowed and isinstance(value, str)


def _type_name(annotation) -> str:
    names = [t.__name__ for t in (get_args(annotation) or (annotation,)) if t is not type(None)]
    suffix = " or null" if type(None) in get_args(annotation) else ""
    return " or ".join(names) + suffix


def check_option_types(options: ProfileOptions) -> None:
    """Raise InvalidInputError when an option value does not match its field's type."""
    for field in fields(options):
        value = getattr(options, field.name)
        if not _accepts(field.type, value):
            raise InvalidInputError(
                f"{field.name} must be {_type_name(field.type)}, got {value!r}"
            )


def build_options(options_type: type, values: Dict[str, Any]) -> ProfileOptions:
    """
    Build a kind's option record from loose key/value pairs (decoded JSON).

    Raises:
        InvalidInputError: unknown keys or values of the wrong type.
    """
    known = {field.name for field in fields(options_type)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise InvalidInputError(f"unknown option(s): {', '.join(unknown)}")
    options = options_type(**values)
    check_option_types(options)
    return options


@dataclass(frozen=True)
class ProfileParams:
    """
    Inputs shared by every generator (mm).

    mouth_radius and length are optional because the implicit generators
    (and the flare-rate laws given a cutoff) can derive one of them.
    """
    throat_radius: float
    mouth_radius: Optional[float] = None
    length: Optional[float] = None
    segments: int = DEFAULT_SEGMENTS
    options: Optional[ProfileOptions] = None


def validate_params(params: ProfileParams) -> None:
    """Basic range checks common to all kinds."""
    if not params.throat_radius > 0:
        raise InvalidInputError(f"throat_radius must be > 0, got {params.throat_radius}")
    if params.mouth_radius is not None and not params.mouth_radius > params.throat_radius:
        raise InvalidInputError(
            f"mouth_radius ({params.mouth_radius}) must be greater than "
            f"throat_radius ({params.throat_radius})"
        )
    if params.length is not None and not params.length > 0:
        raise InvalidInputError(f"length must be > 0, got {params.length}")
    if int(params.segments) != params.segments or params.segments < 2:
        raise InvalidInputError(f"segments must be an integer >= 2, got {params.segments}")


def require_mouth_and_length(params: ProfileParams, kind: ProfileKind) -> None:
    missing = [name for name in ('mouth_radius', 'length') if getattr(params, name) is None]
    if missing:
        raise InvalidInputError(f"{kind.value} profile requires {' and '.join(missing)}")


# ---------------------------------------------------------------------------
# Shared finishing steps
# ---------------------------------------------------------------------------

def axial_samples(length: float, segments: int) -> np.ndarray:
    """`segments + 1` evenly spaced positions on [0, length]."""
    return np.linspace(0.0, length, int(segments) + 1)


def rescale_to_mouth(radii: np.ndarray, throat: float, mouth: float) -> np.ndarray:
    """
    Affine map that keeps radii[0] at the throat and moves radii[-1] onto the mouth.

    The map has positive slope whenever the raw curve grows, so it keeps
    the curve's ordering.
    """
    span = radii[-1] - radii[0]
    if not np.isfinite(span) or span <= 0:
        return radii
    return throat + (radii - radii[0]) * (mouth - throat) / span


def finalize_profile(x: np.ndarray, radii: np.ndarray, throat: float, mouth: float) -> List[ProfilePoint]:
    """Clamp into [throat, mouth], enforce non-decreasing radius, pin both ends exactly."""
    r = np.where(np.isfinite(radii), radii, throat)
    r = np.clip(r, throat, mouth)
    r = np.maximum.accumulate(r)
    r[0] = throat
    r[-1] = mouth
    x = np.asarray(x, dtype=float).copy()
    x[0] = 0.0
    return [ProfilePoint(float(xi), float(ri)) for xi, ri in zip(x, r)]
