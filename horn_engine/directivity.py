"""
Far-field directivity of horn mouths.

Each aperture is treated as a uniformly driven, baffled plane piston and
the far-field pressure follows from the Rayleigh integral, normalised to
the on-axis value:

    circle         D(θ) = |2·J1(ka·sinθ)/(ka·sinθ)|
    rectangle      D(θ) = |sinc(k·w·sinθ/2)|   (w = width or height per plane)
    ellipse        D(θ) = |Σ exp(j·k·x·sinθ)| / N over a sampled aperture
    superellipse   same sum over a |u|^n + |v|^n ≤ 1 mask

For the sampled apertures the phase only depends on the coordinate along
the plane of interest, so the double sum collapses to a weighted sum over
the mask's column (or row) counts. N is the measured number of samples
inside the aperture, which makes boresight exactly 1.

Angles are in degrees, dimensions in mm, frequency in Hz.

References:
    Kinsler et al. (2000), "Fundamentals of Acoustics", §7.4-7.5
    Beranek & Mellow (2012), §13.4
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

import numpy as np

from horn_engine.constants import (
    BEAMWIDTH_K,
    MAGNITUDE_FLOOR,
    MM_PER_INCH,
    ON_AXIS_EPS,
    SPEED_OF_SOUND,
)
from horn_engine.errors import InvalidInputError
from horn_engine.numeric import bessel_j1, integrate, sinc

logger = logging.getLogger(__name__)

PLANES = ('azimuth', 'elevation')


class ApertureShape(str, Enum):
    CIRCLE = "circle"
    ELLIPSE = "ellipse"
    RECTANGLE = "rectangle"
    SUPERELLIPSE = "superellipse"


@dataclass(frozen=True)
class ApertureSpec:
    """Mouth aperture (mm). `n` is the superellipse exponent."""
    shape: ApertureShape
    width: float
    height: float
    n: Optional[float] = None


@dataclass(frozen=True)
class DirectivityResult:
    angle: float        # degrees
    magnitude: float    # linear, boresight = 1
    db: float           # 20·log10(magnitude), floored at -200 dB


@dataclass
class PolarPattern:
    frequency: float
    azimuth: List[DirectivityResult] = field(default_factory=list)
    elevation: List[DirectivityResult] = field(default_factory=list)


@dataclass(frozen=True)
class Beamwidth:
    minus3db: float     # degrees, full angle
    minus6db: float


def _wavenumber(frequency: float, speed_of_sound: float) -> float:
    return 2.0 * math.pi * frequency / speed_of_sound


def _check_plane(plane: str) -> None:
    if plane not in PLANES:
        raise InvalidInputError(f"Unknown plane '{plane}'. Available: {list(PLANES)}")


def _to_results(angles: np.ndarray, magnitude: np.ndarray) -> List[DirectivityResult]:
    on_axis = np.abs(np.radians(angles)) < ON_AXIS_EPS
    magnitude = np.where(on_axis, 1.0, magnitude)
    db = 20.0 * np.log10(np.maximum(magnitude, MAGNITUDE_FLOOR))
    return [
        DirectivityResult(float(a), float(m), float(d))
        for a, m, d in zip(angles, magnitude, db)
    ]


def rayleigh_circular(
    radius_mm: float,
    frequency: float,
    angles: Sequence[float],
    speed_of_sound: float = SPEED_OF_SOUND,
) -> List[DirectivityResult]:
    """Baffled circular piston: |2·J1(x)/x| with x = ka·sinθ."""
    angles = np.asarray(angles, dtype=float)
    ka = _wavenumber(frequency, speed_of_sound) * radius_mm / 1000.0
    x = ka * np.sin(np.radians(angles))
    with np.errstate(divide="ignore", invalid="ignore"):
        safe_x = np.where(x == 0.0, 1.0, x)
        magnitude = np.where(x == 0.0, 1.0, np.abs(2.0 * bessel_j1(safe_x) / safe_x))
    return _to_results(angles, magnitude)


def rayleigh_rectangular(
    width_mm: float,
    height_mm: float,
    frequency: float,
    angles: Sequence[float],
    plane: str,
    speed_of_sound: float = SPEED_OF_SOUND,
) -> List[DirectivityResult]:
    """Rectangular piston: |sinc(k·d·sinθ/2)| with d the dimension in the chosen plane."""
    _check_plane(plane)
    angles = np.asarray(angles, dtype=float)
    dimension = (width_mm if plane == 'azimuth' else height_mm) / 1000.0
    arg = _wavenumber(frequency, speed_of_sound) * dimension * np.sin(np.radians(angles)) / 2.0
    return _to_results(angles, np.abs(sinc(arg)))


@lru_cache(maxsize=32)
def _aperture_mask(n: float, grid_size: int) -> np.ndarray:
    """
    Boolean grid over [-1, 1]² marking |u|^n + |v|^n ≤ 1 (axis 0 is u).

    Cached and returned read-only; independent of frequency and angle.
    """
    u = np.linspace(-1.0, 1.0, grid_size)
    uu, vv = np.meshgrid(u, u, indexing='ij')
    mask = np.abs(uu) ** n + np.abs(vv) ** n <= 1.0
    mask.setflags(write=False)
    return mask


def _sampled_directivity(
    mask: np.ndarray,
    width_mm: float,
    height_mm: float,
    frequency: float,
    angles: np.ndarray,
    plane: str,
    speed_of_sound: float,
) -> np.ndarray:
    """|Σ exp(j·k·x·sinθ)|/N over the mask, vectorised across angles."""
    grid_size = mask.shape[0]
    coords = np.linspace(-1.0, 1.0, grid_size)
    if plane == 'azimuth':
        weights = mask.sum(axis=1)
        positions = coords * width_mm / 2000.0
    else:
        weights = mask.sum(axis=0)
        positions = coords * height_mm / 2000.0

    total = weights.sum()
    if total == 0:
        raise InvalidInputError("Aperture mask is empty; increase the sample count")

    k = _wavenumber(frequency, speed_of_sound)
    phase = k * np.outer(np.sin(np.radians(angles)), positions)
    field_sum = np.exp(1j * phase) @ weights
    return np.abs(field_sum) / total


def rayleigh_elliptical(
    width_mm: float,
    height_mm: float,
    frequency: float,
    angles: Sequence[float],
    plane: str,
    samples: int = 100,
    speed_of_sound: float = SPEED_OF_SOUND,
) -> List[DirectivityResult]:
    """Elliptical piston by direct summation over a `samples` × `samples` grid."""
    _check_plane(plane)
    angles = np.asarray(angles, dtype=float)
    mask = _aperture_mask(2.0, int(samples))
    magnitude = _sampled_directivity(mask, width_mm, height_mm, frequency, angles, plane, speed_of_sound)
    return _to_results(angles, magnitude)


def rayleigh_superellipse(
    width_mm: float,
    height_mm: float,
    n: float,
    frequency: float,
    angles: Sequence[float],
    plane: str,
    grid_size: int = 128,
    speed_of_sound: float = SPEED_OF_SOUND,
) -> List[DirectivityResult]:
    """Superellipse piston |x/a|^n + |y/b|^n ≤ 1 sampled on a cached binary mask."""
    _check_plane(plane)
    if not n > 0:
        raise InvalidInputError(f"Superellipse exponent must be > 0, got {n}")
    angles = np.asarray(angles, dtype=float)
    mask = _aperture_mask(float(n), int(grid_size))
    magnitude = _sampled_directivity(mask, width_mm, height_mm, frequency, angles, plane, speed_of_sound)
    return _to_results(angles, magnitude)


def polar_angles(angle_step: float) -> np.ndarray:
    """Angles from -90° to +90° (inclusive where the step lands on it)."""
    if not angle_step > 0:
        raise InvalidInputError(f"angle_step must be > 0, got {angle_step}")
    count = int(math.floor(180.0 / angle_step + 1e-9)) + 1
    return -90.0 + angle_step * np.arange(count)


def compute_polar_pattern(
    aperture: ApertureSpec,
    frequency: float,
    angle_step: float = 5.0,
    speed_of_sound: float = SPEED_OF_SOUND,
) -> PolarPattern:
    """
    Azimuth and elevation patterns of an aperture at one frequency.

    Args:
        aperture: Shape and dimensions (mm). Circles use max(width, height)/2
            as radius; superellipses default to n = 2.
        frequency: Hz.
        angle_step: Angular resolution (degrees).
        speed_of_sound: m/s.

    Returns:
        PolarPattern with one DirectivityResult per angle in each plane.
    """
    if not (aperture.width > 0 and aperture.height > 0):
        raise InvalidInputError(
            f"Aperture dimensions must be > 0, got {aperture.width} × {aperture.height}"
        )
    if not frequency > 0:
        raise InvalidInputError(f"frequency must be > 0, got {frequency}")

    try:
        shape = ApertureShape(aperture.shape)
    except ValueError:
        raise InvalidInputError(
            f"Unknown aperture shape '{aperture.shape}'. Available: {[s.value for s in ApertureShape]}"
        ) from None
    angles = polar_angles(angle_step)
    w, h = aperture.width, aperture.height

    if shape == ApertureShape.CIRCLE:
        azimuth = rayleigh_circular(max(w, h) / 2.0, frequency, angles, speed_of_sound)
        elevation = azimuth
    elif shape == ApertureShape.RECTANGLE:
        azimuth = rayleigh_rectangular(w, h, frequency, angles, 'azimuth', speed_of_sound)
        elevation = rayleigh_rectangular(w, h, frequency, angles, 'elevation', speed_of_sound)
    elif shape == ApertureShape.ELLIPSE:
        azimuth = rayleigh_elliptical(w, h, frequency, angles, 'azimuth', speed_of_sound=speed_of_sound)
        elevation = rayleigh_elliptical(w, h, frequency, angles, 'elevation', speed_of_sound=speed_of_sound)
    else:
        n = 2.0 if aperture.n is None else aperture.n
        azimuth = rayleigh_superellipse(w, h, n, frequency, angles, 'azimuth', speed_of_sound=speed_of_sound)
        elevation = rayleigh_superellipse(w, h, n, frequency, angles, 'elevation', speed_of_sound=speed_of_sound)

    return PolarPattern(frequency=float(frequency), azimuth=azimuth, elevation=elevation)


def compute_beamwidth(results: Sequence[DirectivityResult]) -> Beamwidth:
    """
    Full -3 dB and -6 dB beamwidths of a symmetric pattern.

    Walks the positive angles outward from boresight and doubles the first
    angle that sits 3 (6) dB or more below the on-axis level. A pattern
    with no on-axis point gives (0, 0); a threshold never crossed gives 0.
    """
    on_axis = next((r for r in results if abs(r.angle) < 0.5), None)
    if on_axis is None:
        return Beamwidth(0.0, 0.0)

    positive = sorted((r for r in results if r.angle > 0), key=lambda r: r.angle)
    widths = []
    for drop in (3.0, 6.0):
        crossing = next((r.angle for r in positive if r.db <= on_axis.db - drop), None)
        widths.append(0.0 if crossing is None else 2.0 * crossing)
    return Beamwidth(*widths)


# ---------------------------------------------------------------------------
# Directivity index from a computed pattern
# ---------------------------------------------------------------------------

_DI_INTERVALS = 1800


def _plane_power(results: Sequence[DirectivityResult]):
    """|D(θ)|² for off-axis angle θ (radians), averaged over both sides of the plane."""
    ordered = sorted(results, key=lambda r: r.angle)
    angles = np.radians([r.angle for r in ordered])
    power = np.array([r.magnitude for r in ordered]) ** 2

    def plane_power(theta: float) -> float:
        return 0.5 * float(np.interp(theta, angles, power) + np.interp(-theta, angles, power))

    return plane_power


def directivity_index_from_pattern(pattern: PolarPattern, half_space: bool = False) -> Dict:
    """
    Directivity factor Q and index DI by integrating a polar pattern over the sphere.

    The two measured planes are blended around the axis in power,

        |D(θ, ψ)|² = |D_az(θ)|²·cos²ψ + |D_el(θ)|²·sin²ψ

    which closes the ψ integral:

        ∫|D|² dΩ = π·∫ (|D_az(θ)|² + |D_el(θ)|²)·sinθ dθ
        Q = 4π·|D(0)|² / ∫|D|² dΩ,   DI = 10·log10(Q)

    Patterns only cover θ ≤ 90°. The rear hemisphere is the mirror image of
    the front, or silent when `half_space` is set (a mouth flush in an
    infinite baffle, worth +3 dB). For a circular piston the blend is exact.

    Returns:
        Dict with directivity_factor, directivity_index and the -6 dB
        horizontal/vertical coverage read off the same pattern.
    """
    if not pattern.azimuth or not pattern.elevation:
        raise InvalidInputError("Polar pattern needs both azimuth and elevation results")

    azimuth = _plane_power(pattern.azimuth)
    elevation = _plane_power(pattern.elevation)
    on_axis = 0.5 * (azimuth(0.0) + elevation(0.0))
    if not on_axis > 0:
        raise InvalidInputError("Polar pattern has no on-axis level")

    front = math.pi * integrate(
        lambda theta: (azimuth(theta) + elevation(theta)) * math.sin(theta),
        0.0, math.pi / 2.0, _DI_INTERVALS,
    )
    radiated = front if half_space else 2.0 * front
    q = 4.0 * math.pi * on_axis / radiated
    return {
        'directivity_factor': q,
        'directivity_index': 10.0 * math.log10(q),
        'horizontal_coverage': compute_beamwidth(pattern.azimuth).minus6db,
        'vertical_coverage': compute_beamwidth(pattern.elevation).minus6db,
    }


def directivity_index_vs_frequency(
    aperture: ApertureSpec,
    frequencies: Sequence[float],
    angle_step: float = 1.0,
    speed_of_sound: float = SPEED_OF_SOUND,
    half_space: bool = False,
) -> List[Dict]:
    """Pattern-integrated DI at each frequency, one dict per frequency."""
    results = []
    for frequency in frequencies:
        pattern = compute_polar_pattern(aperture, frequency, angle_step, speed_of_sound)
        entry = directivity_index_from_pattern(pattern, half_space)
        entry['frequency'] = float(frequency)
        results.append(entry)
    logger.debug("Directivity index over %d frequencies for a %s mouth", len(results), aperture.shape)
    return results


# ---------------------------------------------------------------------------
# Rules of thumb
# ---------------------------------------------------------------------------

def directivity_index(horizontal_coverage: float, vertical_coverage: float) -> Dict:
    """
    Directivity factor Q and index DI for a horizontal × vertical coverage (degrees).

    Solid angle of the coverage window:
        Ω = 2π·(1 - cos(V/2))·(H/π),   Q = 4π/Ω,   DI = 10·log10(Q)
    """
    if not (0 < horizontal_coverage <= 360 and 0 < vertical_coverage <= 360):
        raise InvalidInputError(
            f"Coverage angles must be in (0, 360], got {horizontal_coverage} × {vertical_coverage}"
        )
    h = math.radians(horizontal_coverage)
    v = math.radians(vertical_coverage)
    solid_angle = 2.0 * math.pi * (1.0 - math.cos(v / 2.0)) * (h / math.pi)
    q = 4.0 * math.pi / solid_angle
    return {
        'directivity_factor': q,
        'directivity_index': 10.0 * math.log10(q),
        'horizontal_coverage': horizontal_coverage,
        'vertical_coverage': vertical_coverage,
    }


def estimate_beamwidth(mouth_dimension_mm: float, frequency: float) -> float:
    """Empirical beamwidth K/(d·f) in degrees (d in inches), clamped to [10, 180]."""
    if mouth_dimension_mm <= 0 or frequency <= 0:
        return 180.0
    beamwidth = BEAMWIDTH_K / (mouth_dimension_mm / MM_PER_INCH * frequency)
    return min(180.0, max(10.0, beamwidth))


def required_mouth_size(horizontal_angle: float, vertical_angle: float, frequency: float) -> Dict:
    """
    Mouth width/height (mm) that holds the given coverage down to `frequency`.

    Inverts the empirical rule d = K/(f·θ).
    """
    if not (horizontal_angle > 0 and vertical_angle > 0 and frequency > 0):
        raise InvalidInputError("Angles and frequency must be > 0")
    width = BEAMWIDTH_K / (frequency * horizontal_angle) * MM_PER_INCH
    height = BEAMWIDTH_K / (frequency * vertical_angle) * MM_PER_INCH
    result = {'width': width, 'height': height}
    result.update(directivity_index(horizontal_angle, vertical_angle))
    return result
