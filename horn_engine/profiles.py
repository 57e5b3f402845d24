"""
Horn profile generators and dispatch.

Closed-form laws (radius r as a function of axial distance x, mm):
    conical            r = r0 + (rm - r0)·x/L
    exponential        r = r0·e^{mx}
    hyperbolic         r = r0·cosh(mx)
    hypex              r = r0·(cosh mx + T·sinh mx)
    parabolic          r = r0 + (rm - r0)·(x/L)^p
    petf               hypex-like law whose T-factor progresses along the horn
    wn_alo             semicubical (William Neile) law with loading modulation
    hyperbolic_spiral  r = r0 + (rm - r0)·(1 - e^{-βt})/(1 - e^{-β})
    oblate_spheroid    r = sqrt(r0² + 2·r0·x·tanθ0 + x²·tan²α)

For the flare-rate laws the radius flare constant follows from the cutoff
as m = 2π·fc/c, so a cutoff can stand in for either the length or the
mouth radius.

Implicit (tractrix, spherical) and ODE (JMLC) generators live in
implicit_profiles.py and share the finishing steps in profile_types.py.

References:
    Salmon (1946), "Generalized plane wave horn theory"
    Geddes (1993), "Waveguides" (oblate spheroid)
    Kolbrek & Dunker (2019), "High Quality Horn Loudspeaker Systems"
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Type

import numpy as np

from horn_engine.errors import InvalidInputError
from horn_engine.implicit_profiles import jmlc_profile, spherical_profile, tractrix_profile
from horn_engine.profile_types import (
    ConicalOptions,
    ExponentialOptions,
    HyperbolicOptions,
    HyperbolicSpiralOptions,
    HypexOptions,
    JmlcOptions,
    OblateSpheroidOptions,
    ParabolicOptions,
    PetfOptions,
    ProfileKind,
    ProfileParams,
    ProfilePoint,
    SphericalOptions,
    TractrixOptions,
    WnAloOptions,
    axial_samples,
    check_option_types,
    finalize_profile,
    require_mouth_and_length,
    rescale_to_mouth,
    validate_params,
)

logger = logging.getLogger(__name__)


def _flare_from_cutoff(cutoff_frequency: float, speed_of_sound: float) -> float:
    """Radius flare constant (1/mm) for a cutoff frequency (Hz) and c (m/s)."""
    if not cutoff_frequency > 0:
        raise InvalidInputError(f"cutoff_frequency must be > 0, got {cutoff_frequency}")
    return 2.0 * math.pi * cutoff_frequency / (speed_of_sound * 1000.0)


def _resolve_flare(
    params: ProfileParams,
    kind: ProfileKind,
    cutoff_frequency: Optional[float],
    speed_of_sound: float,
    growth: Callable[[float], float],
    inverse_growth: Callable[[float], float],
) -> Tuple[float, float, float]:
    """
    Work out (mouth, length, m) for a flare-rate law r = r0·growth(m·x).

    Both mouth and length given: m from the radii (a cutoff is ignored).
    One of them missing: m from the cutoff, the missing one derived.
    """
    r0 = params.throat_radius
    mouth, length = params.mouth_radius, params.length

    if mouth is not None and length is not None:
        if cutoff_frequency is not None:
            logger.debug("%s: mouth and length given, cutoff %.1f Hz ignored", kind.value, cutoff_frequency)
        return mouth, length, inverse_growth(mouth / r0) / length

    if cutoff_frequency is None:
        raise InvalidInputError(
            f"{kind.value} profile requires mouth_radius and length, or a cutoff_frequency "
            f"with one of them"
        )
    if mouth is None and length is None:
        raise InvalidInputError(f"{kind.value} profile with a cutoff needs mouth_radius or length")

    m = _flare_from_cutoff(cutoff_frequency, speed_of_sound)
    if length is None:
        length = inverse_growth(mouth / r0) / m
    else:
        mouth = r0 * growth(m * length)
    return mouth, length, m


def _hypex_growth(t_factor: float) -> Tuple[Callable[[float], float], Callable[[float], float]]:
    """growth(u) = cosh u + T sinh u and its inverse on u ≥ 0."""
    def growth(u: float) -> float:
        return math.cosh(u) + t_factor * math.sinh(u)

    def inverse(q: float) -> float:
        # (1 + T)·y² - 2q·y + (1 - T) = 0 with y = e^u
        y = (q + math.sqrt(q * q - 1.0 + t_factor * t_factor)) / (1.0 + t_factor)
        return math.log(y)

    return growth, inverse


# ---------------------------------------------------------------------------
# Closed-form generators
# ---------------------------------------------------------------------------

def conical_profile(params: ProfileParams, options: ConicalOptions) -> List[ProfilePoint]:
    require_mouth_and_length(params, ProfileKind.CONICAL)
    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    radii = r0 + (rm - r0) * x / params.length
    return finalize_profile(x, radii, r0, rm)


def exponential_profile(params: ProfileParams, options: ExponentialOptions) -> List[ProfilePoint]:
    r0 = params.throat_radius
    rm, length, m = _resolve_flare(
        params, ProfileKind.EXPONENTIAL, options.cutoff_frequency, options.speed_of_sound,
        math.exp, math.log,
    )
    x = axial_samples(length, params.segments)
    radii = rescale_to_mouth(r0 * np.exp(m * x), r0, rm)
    return finalize_profile(x, radii, r0, rm)


def _hypex_family(
    params: ProfileParams,
    kind: ProfileKind,
    t_factor: float,
    cutoff_frequency: Optional[float],
    speed_of_sound: float,
) -> List[ProfilePoint]:
    if t_factor < 0:
        raise InvalidInputError(f"t_factor must be >= 0, got {t_factor}")
    r0 = params.throat_radius
    growth, inverse = _hypex_growth(t_factor)
    rm, length, m = _resolve_flare(params, kind, cutoff_frequency, speed_of_sound, growth, inverse)
    x = axial_samples(length, params.segments)
    radii = r0 * (np.cosh(m * x) + t_factor * np.sinh(m * x))
    return finalize_profile(x, rescale_to_mouth(radii, r0, rm), r0, rm)


def hyperbolic_profile(params: ProfileParams, options: HyperbolicOptions) -> List[ProfilePoint]:
    return _hypex_family(
        params, ProfileKind.HYPERBOLIC, 0.0, options.cutoff_frequency, options.speed_of_sound,
    )


def hypex_profile(params: ProfileParams, options: HypexOptions) -> List[ProfilePoint]:
    return _hypex_family(
        params, ProfileKind.HYPEX, options.t_factor, options.cutoff_frequency, options.speed_of_sound,
    )


def parabolic_profile(params: ProfileParams, options: ParabolicOptions) -> List[ProfilePoint]:
    require_mouth_and_length(params, ProfileKind.PARABOLIC)
    if not options.power > 0:
        raise InvalidInputError(f"power must be > 0, got {options.power}")
    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    radii = r0 + (rm - r0) * (x / params.length) ** options.power
    return finalize_profile(x, radii, r0, rm)


def _petf_t_factor(t: np.ndarray, options: PetfOptions) -> np.ndarray:
    t0, t1 = options.t_start, options.t_end
    if options.progression == "linear":
        return t0 + (t1 - t0) * t
    if options.progression == "exponential":
        if not (t0 > 0 and t1 > 0):
            raise InvalidInputError("exponential T progression needs t_start > 0 and t_end > 0")
        return t0 * (t1 / t0) ** t
    if options.progression == "sigmoid":
        return t0 + (t1 - t0) / (1.0 + np.exp(-10.0 * (t - 0.5)))
    raise InvalidInputError(
        f"Unknown progression '{options.progression}'. Available: linear, exponential, sigmoid"
    )


def petf_profile(params: ProfileParams, options: PetfOptions) -> List[ProfilePoint]:
    """Progressive expansion T-factor horn, rescaled onto the mouth."""
    require_mouth_and_length(params, ProfileKind.PETF)
    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    t = x / params.length
    tf = _petf_t_factor(t, options)

    k = math.log(rm / r0)
    blend = np.cosh(tf * k * t) * np.exp((1.0 - tf) * k * t)
    radii = r0 * blend ** (1.0 / (1.0 + 0.5 * (1.0 - tf)))
    return finalize_profile(x, rescale_to_mouth(radii, r0, rm), r0, rm)


def wn_alo_profile(params: ProfileParams, options: WnAloOptions) -> List[ProfilePoint]:
    require_mouth_and_length(params, ProfileKind.WN_ALO)
    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    t = x / params.length

    def shape(s):
        loading = 1.0 + options.loading_factor * (1.0 - np.exp(-3.0 * s))
        return s ** 1.5 * loading * s ** options.curve_power

    end = shape(1.0)
    if not end > 0:
        raise InvalidInputError(f"loading_factor {options.loading_factor} collapses the curve")
    radii = r0 + (rm - r0) * shape(t) / end
    return finalize_profile(x, radii, r0, rm)


def hyperbolic_spiral_profile(params: ProfileParams, options: HyperbolicSpiralOptions) -> List[ProfilePoint]:
    require_mouth_and_length(params, ProfileKind.HYPERBOLIC_SPIRAL)
    if not options.beta > 0:
        raise InvalidInputError(f"beta must be > 0, got {options.beta}")
    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    t = x / params.length
    radii = r0 + (rm - r0) * -np.expm1(-options.beta * t) / -math.expm1(-options.beta)
    return finalize_profile(x, radii, r0, rm)


def oblate_spheroid_profile(params: ProfileParams, options: OblateSpheroidOptions) -> List[ProfilePoint]:
    """OS waveguide contour, affinely rescaled so the last sample meets the mouth."""
    require_mouth_and_length(params, ProfileKind.OBLATE_SPHEROID)
    if not 0 < options.coverage_angle < 180:
        raise InvalidInputError(f"coverage_angle must be in (0, 180), got {options.coverage_angle}")
    if not 0 <= options.throat_angle < 90:
        raise InvalidInputError(f"throat_angle must be in [0, 90), got {options.throat_angle}")

    r0, rm = params.throat_radius, params.mouth_radius
    x = axial_samples(params.length, params.segments)
    tan0 = math.tan(math.radians(options.throat_angle))
    tan_a = math.tan(math.radians(options.coverage_angle / 2.0))
    radii = np.sqrt(r0 * r0 + 2.0 * r0 * x * tan0 + (x * tan_a) ** 2)
    return finalize_profile(x, rescale_to_mouth(radii, r0, rm), r0, rm)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass
class ProfileDefinition:
    """A profile kind, its option record and its generator."""
    kind: ProfileKind
    description: str
    strategy: str          # 'closed-form', 'implicit', 'ode'
    options_type: Type
    generate: Callable     # Function(params, options) → List[ProfilePoint]


PROFILES: Dict[ProfileKind, ProfileDefinition] = {
    ProfileKind.CONICAL: ProfileDefinition(
        kind=ProfileKind.CONICAL,
        description='Straight-walled cone',
        strategy='closed-form',
        options_type=ConicalOptions,
        generate=conical_profile,
    ),
    ProfileKind.EXPONENTIAL: ProfileDefinition(
        kind=ProfileKind.EXPONENTIAL,
        description='Exponential flare r0·e^(mx)',
        strategy='closed-form',
        options_type=ExponentialOptions,
        generate=exponential_profile,
    ),
    ProfileKind.HYPERBOLIC: ProfileDefinition(
        kind=ProfileKind.HYPERBOLIC,
        description='Catenoidal flare r0·cosh(mx)',
        strategy='closed-form',
        options_type=HyperbolicOptions,
        generate=hyperbolic_profile,
    ),
    ProfileKind.HYPEX: ProfileDefinition(
        kind=ProfileKind.HYPEX,
        description='Salmon hyperbolic-exponential family',
        strategy='closed-form',
        options_type=HypexOptions,
        generate=hypex_profile,
    ),
    ProfileKind.PARABOLIC: ProfileDefinition(
        kind=ProfileKind.PARABOLIC,
        description='Power-law flare',
        strategy='closed-form',
        options_type=ParabolicOptions,
        generate=parabolic_profile,
    ),
    ProfileKind.PETF: ProfileDefinition(
        kind=ProfileKind.PETF,
        description='Progressive expansion T-factor',
        strategy='closed-form',
        options_type=PetfOptions,
        generate=petf_profile,
    ),
    ProfileKind.WN_ALO: ProfileDefinition(
        kind=ProfileKind.WN_ALO,
        description='William Neile / acoustic loading optimised',
        strategy='closed-form',
        options_type=WnAloOptions,
        generate=wn_alo_profile,
    ),
    ProfileKind.HYPERBOLIC_SPIRAL: ProfileDefinition(
        kind=ProfileKind.HYPERBOLIC_SPIRAL,
        description='Saturating hyperbolic-spiral flare',
        strategy='closed-form',
        options_type=HyperbolicSpiralOptions,
        generate=hyperbolic_spiral_profile,
    ),
    ProfileKind.OBLATE_SPHEROID: ProfileDefinition(
        kind=ProfileKind.OBLATE_SPHEROID,
        description='Oblate spheroidal waveguide',
        strategy='closed-form',
        options_type=OblateSpheroidOptions,
        generate=oblate_spheroid_profile,
    ),
    ProfileKind.TRACTRIX: ProfileDefinition(
        kind=ProfileKind.TRACTRIX,
        description='Tractrix (spherical wavefront, constant tangent length)',
        strategy='implicit',
        options_type=TractrixOptions,
        generate=tractrix_profile,
    ),
    ProfileKind.SPHERICAL: ProfileDefinition(
        kind=ProfileKind.SPHERICAL,
        description='Circular-arc wall',
        strategy='implicit',
        options_type=SphericalOptions,
        generate=spherical_profile,
    ),
    ProfileKind.JMLC: ProfileDefinition(
        kind=ProfileKind.JMLC,
        description='Le Cléac\'h spherical-cap expansion',
        strategy='ode',
        options_type=JmlcOptions,
        generate=jmlc_profile,
    ),
}

_missing = [kind.value for kind in ProfileKind if kind not in PROFILES]
if _missing:
    raise RuntimeError(f"Profile kinds without a generator: {_missing}")


def get_profile_definition(kind) -> ProfileDefinition:
    """Look up a kind by enum member or by its string value."""
    try:
        kind = ProfileKind(kind)
    except ValueError:
        raise InvalidInputError(
            f"Unknown profile kind '{kind}'. Available: {[k.value for k in ProfileKind]}"
        ) from None
    return PROFILES[kind]


def list_profiles() -> List[Dict]:
    """All profile kinds with their strategy and default options."""
    result = []
    for kind, definition in PROFILES.items():
        defaults = definition.options_type()
        result.append({
            'kind': kind.value,
            'description': definition.description,
            'strategy': definition.strategy,
            'options': dict(vars(defaults)),
        })
    return result


def generate_profile(kind, params: ProfileParams) -> List[ProfilePoint]:
    """
    Generate the throat-to-mouth profile for a kind.

    Args:
        kind: ProfileKind (or its string value).
        params: Radii/length in mm, segment count and the kind's option record.

    Returns:
        `segments + 1` ProfilePoints, first radius exactly the throat radius,
        last exactly the mouth radius, radius non-decreasing.

    Raises:
        InvalidInputError: bad ranges, missing combinations, or an option
            record belonging to another kind.
    """
    definition = get_profile_definition(kind)
    validate_params(params)

    options = params.options
    if options is None:
        options = definition.options_type()
    elif not isinstance(options, definition.options_type):
        raise InvalidInputError(
            f"{definition.kind.value} profile expects {definition.options_type.__name__}, "
            f"got {type(options).__name__}"
        )
    check_option_types(options)
    return definition.generate(params, options)


def validate_profile(profile: List[ProfilePoint], params: ProfileParams) -> Dict:
    """
    Check a generated profile against its parameters.

    Returns:
        Dict with point counts, endpoint errors, monotonicity, finiteness,
        end position and radius range, plus an overall 'valid' flag.
        Expected values that the parameters do not fix (a derived mouth
        or length) are reported as None and not checked.
    """
    if not profile:
        return {'valid': False, 'point_count': 0, 'errors': ['Profile is empty']}

    x = np.array([p.x for p in profile])
    r = np.array([p.radius for p in profile])
    errors = []

    expected_points = int(params.segments) + 1
    if len(profile) != expected_points:
        errors.append(f"Wrong point count: expected {expected_points}, got {len(profile)}")

    finite = bool(np.all(np.isfinite(x)) and np.all(np.isfinite(r)))
    if not finite:
        errors.append("Profile contains non-finite values")

    throat_error = float(abs(r[0] - params.throat_radius))
    if throat_error > 0:
        errors.append(f"Throat radius off by {throat_error:.3g} mm")

    mouth_error = None
    if params.mouth_radius is not None:
        mouth_error = float(abs(r[-1] - params.mouth_radius))
        if mouth_error > 0:
            errors.append(f"Mouth radius off by {mouth_error:.3g} mm")

    length_error = None
    if params.length is not None:
        length_error = float(abs(x[-1] - params.length))
        if length_error > 1e-6 * params.length:
            errors.append(f"End position off by {length_error:.3g} mm")

    monotonic = bool(np.all(np.diff(r) >= 0))
    if not monotonic:
        errors.append("Radius decreases along the axis")
    x_increasing = bool(np.all(np.diff(x) > 0))
    if not x_increasing:
        errors.append("Axial positions are not strictly increasing")

    return {
        'valid': not errors,
        'point_count': len(profile),
        'expected_points': expected_points,
        'throat_error': throat_error,
        'mouth_error': mouth_error,
        'length_error': length_error,
        'end_position': float(x[-1]),
        'monotonic': monotonic,
        'x_increasing': x_increasing,
        'finite': finite,
        'min_radius': float(r.min()),
        'max_radius': float(r.max()),
        'errors': errors,
    }
