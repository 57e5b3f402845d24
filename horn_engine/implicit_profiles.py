"""
Implicit and ODE-based horn profiles.

Tractrix
    With asymptote (mouth-plane radius) a, the point of radius r lies
        X_a(r) = a·ln((a + sqrt(a² - r²))/r) - sqrt(a² - r²)
    behind the mouth plane. X is monotone in r and in a
    (∂X/∂a = arccosh(a/r)), so the constant a and every sample radius are
    found with the bracketed solver.

Spherical
    The wall is a circular arc of radius R leaving the throat at wall
    angle θ0. Parametrised by the local wall angle θ:
        x(θ) = R·(sinθ - sinθ0),   r(θ) = r0 + R·(cosθ0 - cosθ)
    The mouth angle θm is the root of
        (cosθ0 - cosθm)/(sinθm - sinθ0) = (rm - r0)/L
    and each sample is found by solving x(θ) = x_i.

JMLC (Le Cléac'h)
    Wavefronts are spherical caps meeting the wall at right angles. A cap
    spanning radius r at wall angle φ has area 2πr²/(1 + cosφ). The cap area
    follows a hypex law along the wall arc length s:
        A(s) = A0·(cosh ms + T·sinh ms)²
    so cosφ = 2πr²/A(s) - 1, and (r, s) is integrated over x with
        dr/dx = tanφ,   ds/dx = 1/cosφ
    using Heun (RK2) steps.

References:
    Voigt (1927), tractrix horn patent
    Le Cléac'h, "Quelques réflexions sur les pavillons acoustiques"
    Kolbrek & Dunker (2019), ch. 4
"""

import logging
import math
from typing import Callable, List, Optional, Tuple

import numpy as np

from horn_engine.errors import InvalidInputError
from horn_engine.numeric import clamp, solve_bracketed
from horn_engine.profile_types import (
    JmlcOptions,
    ProfileParams,
    ProfilePoint,
    SphericalOptions,
    TractrixOptions,
    axial_samples,
    finalize_profile,
    rescale_to_mouth,
)

logger = logging.getLogger(__name__)

# Steepest wall angle the JMLC integration is allowed to reach
_JMLC_MAX_ANGLE = math.radians(89.5)
# cosh/sinh overflow a double just past 710; beyond this the wall angle is pinned anyway
_JMLC_MAX_EXPONENT = 700.0
_BRACKET_GROWTH_LIMIT = 60


def _grow_bracket(g: Callable[[float], float], hi: float, what: str) -> float:
    """Double `hi` until g(hi) > 0. Returns the new upper end."""
    for _ in range(_BRACKET_GROWTH_LIMIT):
        if g(hi) > 0:
            return hi
        hi *= 2.0
    raise InvalidInputError(f"Could not bracket {what}")


def _invert_samples(
    forward: Callable[[float], float],
    targets: np.ndarray,
    lo: float,
    hi: float,
) -> np.ndarray:
    """
    Solve forward(u) = target for each interior target with u in [lo, hi].

    `forward` must be increasing with forward(lo) <= targets <= forward(hi).
    The first and last entries map to lo and hi.
    """
    out = np.empty(len(targets))
    out[0], out[-1] = lo, hi
    for i in range(1, len(targets) - 1):
        target = targets[i]
        out[i] = solve_bracketed(lambda u: forward(u) - target, lo, hi)
    return out


# ---------------------------------------------------------------------------
# Tractrix
# ---------------------------------------------------------------------------

def tractrix_distance(a: float, r: float) -> float:
    """Axial distance from the point of radius r to the mouth plane of a tractrix with asymptote a."""
    root = math.sqrt(max(a * a - r * r, 0.0))
    return a * math.log((a + root) / r) - root


def _tractrix_geometry(params: ProfileParams, options: TractrixOptions) -> Tuple[float, float, float, float]:
    """
    Returns (a, mouth, length, natural_length).

    natural_length is the tractrix's own throat-to-mouth distance; it only
    differs from length when the requested length is shorter than any
    tractrix through both radii and the axis has to be compressed.
    """
    r0 = params.throat_radius
    mouth, length = params.mouth_radius, params.length
    cutoff = options.cutoff_frequency

    if cutoff is not None:
        if not cutoff > 0:
            raise InvalidInputError(f"cutoff_frequency must be > 0, got {cutoff}")
        if mouth is not None and length is not None:
            raise InvalidInputError(
                "tractrix profile is over-determined: give two of cutoff_frequency, mouth_radius, length"
            )
        a = options.speed_of_sound * 1000.0 / (2.0 * math.pi * cutoff)
        if a <= r0:
            raise InvalidInputError(
                f"cutoff {cutoff:g} Hz gives an asymptote {a:.2f} mm that is not wider than the throat"
            )
        if mouth is not None:
            if mouth > a:
                raise InvalidInputError(
                    f"mouth_radius {mouth:g} mm exceeds the tractrix asymptote {a:.2f} mm for {cutoff:g} Hz"
                )
            natural = tractrix_distance(a, r0) - tractrix_distance(a, mouth)
            return a, mouth, natural, natural
        if length is not None:
            full = tractrix_distance(a, r0)
            if length > full:
                raise InvalidInputError(
                    f"length {length:g} mm exceeds the full tractrix length {full:.2f} mm for {cutoff:g} Hz"
                )
            mouth = solve_bracketed(
                lambda r: tractrix_distance(a, r0) - tractrix_distance(a, r) - length, r0, a,
            )
            return a, mouth, length, length
        raise InvalidInputError("tractrix profile with a cutoff needs mouth_radius or length")

    if mouth is not None and length is not None:
        shortest = tractrix_distance(mouth, r0)
        if length < shortest:
            logger.warning(
                "tractrix: length %.2f mm is shorter than the shortest tractrix (%.2f mm); "
                "compressing the axis", length, shortest,
            )
            return mouth, mouth, length, shortest

        def excess(a):
            return tractrix_distance(a, r0) - tractrix_distance(a, mouth) - length

        hi = _grow_bracket(excess, 2.0 * mouth, "the tractrix asymptote")
        a = solve_bracketed(excess, mouth, hi)
        return a, mouth, length, length

    if mouth is not None:
        natural = tractrix_distance(mouth, r0)
        return mouth, mouth, natural, natural

    if length is not None:
        def excess(a):
            return tractrix_distance(a, r0) - length

        hi = _grow_bracket(excess, 2.0 * r0, "the tractrix asymptote")
        a = solve_bracketed(excess, r0, hi)
        return a, a, length, length

    raise InvalidInputError("tractrix profile needs at least one of mouth_radius, length, cutoff_frequency")


def tractrix_profile(params: ProfileParams, options: TractrixOptions) -> List[ProfilePoint]:
    r0 = params.throat_radius
    a, mouth, length, natural = _tractrix_geometry(params, options)
    logger.debug("tractrix: asymptote %.3f mm, mouth %.3f mm, length %.3f mm", a, mouth, length)

    x = axial_samples(length, params.segments)
    start = tractrix_distance(a, r0)
    radii = _invert_samples(
        lambda r: start - tractrix_distance(a, r),
        x * (natural / length),
        r0, mouth,
    )
    return finalize_profile(x, radii, r0, mouth)


# ---------------------------------------------------------------------------
# Spherical
# ---------------------------------------------------------------------------

def _spherical_geometry(params: ProfileParams, options: SphericalOptions) -> Tuple[float, float, float, float, float]:
    """Returns (theta0, theta_m, sphere_radius, mouth, length)."""
    r0 = params.throat_radius
    mouth, length = params.mouth_radius, params.length
    if not 0 <= options.throat_angle < 90:
        raise InvalidInputError(f"throat_angle must be in [0, 90), got {options.throat_angle}")
    th0 = math.radians(options.throat_angle)

    if mouth is not None and length is not None:
        if options.mouth_angle is not None:
            raise InvalidInputError(
                "spherical profile is over-determined: mouth_angle cannot be combined with both "
                "mouth_radius and length"
            )
        slope = (mouth - r0) / length
        if slope <= math.tan(th0):
            raise InvalidInputError(
                f"mouth/length slope {slope:.4f} is not steeper than the throat angle; the wall cannot flare outward"
            )
        quarter = math.cos(th0) / (1.0 - math.sin(th0))
        if slope > quarter:
            raise InvalidInputError(
                f"mouth/length slope {slope:.4f} needs more than a quarter sphere (limit {quarter:.4f})"
            )

        def chord(th):
            return (math.cos(th0) - math.cos(th)) / (math.sin(th) - math.sin(th0)) - slope

        thm = solve_bracketed(chord, th0 + 1e-9, math.pi / 2.0)
        radius = length / (math.sin(thm) - math.sin(th0))
        return th0, thm, radius, mouth, length

    if options.mouth_angle is None:
        raise InvalidInputError(
            "spherical profile needs mouth_radius and length, or mouth_angle with one of them"
        )
    if not options.throat_angle < options.mouth_angle <= 90:
        raise InvalidInputError(
            f"mouth_angle must be in ({options.throat_angle:g}, 90], got {options.mouth_angle}"
        )
    thm = math.radians(options.mouth_angle)
    if mouth is not None:
        radius = (mouth - r0) / (math.cos(th0) - math.cos(thm))
        length = radius * (math.sin(thm) - math.sin(th0))
    elif length is not None:
        radius = length / (math.sin(thm) - math.sin(th0))
        mouth = r0 + radius * (math.cos(th0) - math.cos(thm))
    else:
        raise InvalidInputError("spherical profile needs mouth_radius or length")
    return th0, thm, radius, mouth, length


def spherical_profile(params: ProfileParams, options: SphericalOptions) -> List[ProfilePoint]:
    r0 = params.throat_radius
    th0, thm, radius, mouth, length = _spherical_geometry(params, options)
    logger.debug(
        "spherical: wall angles %.2f°→%.2f°, arc radius %.3f mm",
        math.degrees(th0), math.degrees(thm), radius,
    )

    x = axial_samples(length, params.segments)
    theta = _invert_samples(
        lambda th: radius * (math.sin(th) - math.sin(th0)),
        x, th0, thm,
    )
    radii = r0 + radius * (math.cos(th0) - np.cos(theta))
    return finalize_profile(x, radii, r0, mouth)


# ---------------------------------------------------------------------------
# JMLC
# ---------------------------------------------------------------------------

def _jmlc_integrate(
    r0: float,
    m: float,
    t_factor: float,
    length: float,
    segments: int,
    substeps: int,
) -> Tuple[np.ndarray, float]:
    """
    Heun integration of the cap-area law over [0, length].

    Returns the radii at the `segments + 1` output stations and the wall
    angle (radians) at the end.
    """
    a0 = math.pi * r0 * r0
    cos_min = math.cos(_JMLC_MAX_ANGLE)

    def angle(r, s):
        u = min(m * s, _JMLC_MAX_EXPONENT)
        growth = math.cosh(u) + t_factor * math.sinh(u)
        cos_phi = clamp(2.0 * math.pi * r * r / (a0 * growth * growth) - 1.0, cos_min, 1.0)
        return math.acos(cos_phi)

    def slope(r, s):
        phi = angle(r, s)
        return math.tan(phi), 1.0 / math.cos(phi)

    steps = segments * substeps
    h = length / steps
    r, s = r0, 0.0
    radii = [r0]
    for i in range(1, steps + 1):
        dr1, ds1 = slope(r, s)
        dr2, ds2 = slope(r + h * dr1, s + h * ds1)
        r += 0.5 * h * (dr1 + dr2)
        s += 0.5 * h * (ds1 + ds2)
        if i % substeps == 0:
            radii.append(r)
    return np.array(radii), angle(r, s)


def jmlc_profile(params: ProfileParams, options: JmlcOptions) -> List[ProfilePoint]:
    r0 = params.throat_radius
    mouth, length = params.mouth_radius, params.length

    if options.t_factor < 0:
        raise InvalidInputError(f"t_factor must be >= 0, got {options.t_factor}")
    if int(options.substeps) != options.substeps or options.substeps < 1:
        raise InvalidInputError(f"substeps must be a positive integer, got {options.substeps}")

    cutoff: Optional[float] = options.cutoff_frequency
    if cutoff is None:
        if mouth is None:
            raise InvalidInputError("jmlc profile needs a cutoff_frequency or a mouth_radius")
        # mouth circumference = one wavelength at cutoff
        cutoff = options.speed_of_sound * 1000.0 / (2.0 * math.pi * mouth)
    if not cutoff > 0:
        raise InvalidInputError(f"cutoff_frequency must be > 0, got {cutoff}")
    m = 2.0 * math.pi * cutoff / (options.speed_of_sound * 1000.0)
    segments, substeps = int(params.segments), int(options.substeps)

    if length is None:
        if not 0 < options.coverage_angle < 2.0 * math.degrees(_JMLC_MAX_ANGLE):
            raise InvalidInputError(
                f"coverage_angle must be in (0, {2.0 * math.degrees(_JMLC_MAX_ANGLE):g}), "
                f"got {options.coverage_angle}"
            )
        target = math.radians(options.coverage_angle / 2.0)

        def angle_error(candidate):
            return _jmlc_integrate(r0, m, options.t_factor, candidate, segments, substeps)[1] - target

        lo = 1e-3 * r0
        hi = _grow_bracket(angle_error, 1.0 / m, "the jmlc length for the coverage angle")
        length = solve_bracketed(angle_error, lo, hi, tol=1e-6)
        logger.debug("jmlc: shot length %.3f mm for %.1f° coverage", length, options.coverage_angle)

    radii, _ = _jmlc_integrate(r0, m, options.t_factor, length, segments, substeps)
    if mouth is None:
        mouth = float(radii[-1])
        if not mouth > r0:
            raise InvalidInputError("jmlc integration did not expand beyond the throat")
    else:
        radii = rescale_to_mouth(radii, r0, mouth)

    x = axial_samples(length, segments)
    return finalize_profile(x, radii, r0, mouth)
