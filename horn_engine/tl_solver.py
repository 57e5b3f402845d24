"""
One-dimensional transmission-line model of a horn (Webster equation).

The horn is cut into conical segments between consecutive profile points.
Each segment is a lossless acoustic line with a two-port (ABCD) matrix:

    S_avg = (S1 + S2)/2,  Z0 = ρc/S_avg,  γ = jk
    | T11 T12 |   | d·cos(k·dz)      j·Z0·sin(k·dz) |
    | T21 T22 | = | j·sin(k·dz)/Z0   cos(k·dz)/d    |

with the area-discontinuity factor d = (1 + S2/S1)/2. Segment matrices are
chained throat → mouth and the chain is terminated by the radiation
impedance of a baffled piston at the mouth:

    Z_rad = ρc/(πa²) · [1 - 2·J1(2ka)/(2ka) + j·2·H1(2ka)/(2ka)]

From the chain:
    Z_throat = (T11·Z_term + T12)/(T21·Z_term + T22)
    H        = 1/T11   (matched-termination transfer)
    SPL      = 20·log10(max(|H|, 1e-10))

All frequencies are evaluated at once with numpy. Degenerate numerics
(T11 → 0, zero-radius termination) are not errors; they show up as
inf/NaN in the returned records.

References:
    Webster (1919), "Acoustical impedance and the theory of horns"
    Beranek & Mellow (2012), "Acoustics: Sound Fields and Transducers", §4.10, §13
    Mapes-Riordan (1993), "Horn modeling with conical and cylindrical
        transmission-line elements", JAES 41(6)
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from horn_engine.constants import (
    AIR_DENSITY,
    AIR_TEMPERATURE,
    KELVIN_OFFSET,
    MAGNITUDE_FLOOR,
    SPEED_OF_SOUND,
    SPEED_OF_SOUND_0C,
)
from horn_engine.errors import InvalidInputError
from horn_engine.numeric import bessel_j1, struve_h1
from horn_engine.profile_types import ProfilePoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediumProperties:
    """Propagation medium. When temperature (°C) is set it determines c."""
    speed_of_sound: float = SPEED_OF_SOUND   # m/s
    density: float = AIR_DENSITY             # kg/m³
    temperature: Optional[float] = AIR_TEMPERATURE


@dataclass
class FrequencyResponse:
    """Horn response at one frequency."""
    frequency: float                 # Hz
    transfer: complex                # H = 1/T11
    throat_impedance: complex        # acoustic ohms (Pa·s/m³)
    spl: float                       # dB
    phase: float                     # radians, [-π, π]
    group_delay: Optional[float]     # ms; None for the first entry


def generate_frequencies(
    start: float = 20.0,
    end: float = 20000.0,
    num_points: int = 500,
) -> np.ndarray:
    """Generate logarithmically-spaced frequency array (Hz)."""
    if not (start > 0 and end > start):
        raise InvalidInputError(f"Need 0 < start < end, got start={start}, end={end}")
    if num_points < 1:
        raise InvalidInputError(f"num_points must be >= 1, got {num_points}")
    return np.logspace(np.log10(start), np.log10(end), num_points)


def effective_speed_of_sound(medium: Optional[MediumProperties] = None) -> float:
    """Speed of sound (m/s): c = 331.3·sqrt(1 + T/273.15) when a temperature is set."""
    if medium is None:
        medium = MediumProperties()
    if medium.temperature is not None:
        return SPEED_OF_SOUND_0C * math.sqrt(1.0 + medium.temperature / KELVIN_OFFSET)
    return medium.speed_of_sound


def cutoff_frequency(throat_radius_mm: float, speed_of_sound: float = SPEED_OF_SOUND) -> float:
    """
    Frequency (Hz) at which the throat circumference is half a wavelength.

    fc = c/(4πa), the usual lower limit for a horn loaded by a throat of radius a.
    """
    if not throat_radius_mm > 0:
        raise InvalidInputError(f"throat radius must be > 0, got {throat_radius_mm}")
    return speed_of_sound / (4.0 * math.pi * throat_radius_mm / 1000.0)


def radiation_impedance(
    mouth_radius_mm: float,
    frequency: Union[float, np.ndarray],
    medium: Optional[MediumProperties] = None,
) -> Union[complex, np.ndarray]:
    """
    Radiation impedance of a rigid circular piston in an infinite baffle.

    Args:
        mouth_radius_mm: Piston radius (mm).
        frequency: Frequency or array of frequencies (Hz).
        medium: Medium properties (defaults to air at 20 °C).

    Returns:
        Complex acoustic impedance (Pa·s/m³), same shape as frequency.
        Tends to 0 as 2ka → 0.
    """
    if medium is None:
        medium = MediumProperties()
    c = effective_speed_of_sound(medium)
    a = np.float64(mouth_radius_mm) / 1000.0
    f = np.asarray(frequency, dtype=float)

    x = 2.0 * (2.0 * np.pi * f / c) * a
    with np.errstate(divide="ignore", invalid="ignore"):
        zc = medium.density * c / (np.pi * a * a)
        safe_x = np.where(x == 0.0, 1.0, x)
        resistance = np.where(x == 0.0, 0.0, 1.0 - 2.0 * bessel_j1(safe_x) / safe_x)
        reactance = np.where(x == 0.0, 0.0, 2.0 * struve_h1(safe_x) / safe_x)
        z = zc * (resistance + 1j * reactance)

    if np.ndim(frequency) == 0:
        return complex(z)
    return z


def _validate_profile(profile: Sequence[ProfilePoint]) -> None:
    if profile is None or len(profile) < 2:
        raise InvalidInputError("Profile needs at least 2 points")
    for i, p in enumerate(profile):
        if not (math.isfinite(p.radius) and p.radius > 0):
            raise InvalidInputError(f"Profile radius at point {i} must be finite and > 0, got {p.radius}")
        if not math.isfinite(p.x):
            raise InvalidInputError(f"Profile position at point {i} is not finite")


def solve_transmission_line(
    profile: Sequence[ProfilePoint],
    frequencies: Sequence[float],
    medium: Optional[MediumProperties] = None,
    termination_impedance: Optional[complex] = None,
) -> List[FrequencyResponse]:
    """
    Solve the cascaded-segment model over a list of frequencies.

    Args:
        profile: Horn profile (mm), throat first.
        frequencies: Frequencies (Hz) in the order the results should come back.
        medium: Medium properties; defaults to air at 20 °C.
        termination_impedance: Overrides the mouth radiation impedance.

    Returns:
        One FrequencyResponse per input frequency, in input order. Group
        delay compares each entry with the previous one and is None for
        the first entry and wherever the frequency does not increase.

    Raises:
        InvalidInputError: fewer than 2 profile points, a non-positive
            radius, or an empty frequency list.
    """
    _validate_profile(profile)
    f = np.asarray(frequencies, dtype=float).ravel()
    if f.size == 0:
        raise InvalidInputError("Frequency list is empty")

    if medium is None:
        medium = MediumProperties()
    c = effective_speed_of_sound(medium)
    rho = medium.density
    k = 2.0 * np.pi * f / c

    if termination_impedance is None:
        z_term = radiation_impedance(profile[-1].radius, f, medium)
    else:
        z_term = np.full(f.shape, complex(termination_impedance))

    t11 = np.ones(f.shape, dtype=complex)
    t12 = np.zeros(f.shape, dtype=complex)
    t21 = np.zeros(f.shape, dtype=complex)
    t22 = np.ones(f.shape, dtype=complex)

    skipped = 0
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for p1, p2 in zip(profile[:-1], profile[1:]):
            dz = (p2.x - p1.x) / 1000.0
            if dz <= 0:
                skipped += 1
                continue
            s1 = np.pi * (p1.radius / 1000.0) ** 2
            s2 = np.pi * (p2.radius / 1000.0) ** 2
            z0 = rho * c / (0.5 * (s1 + s2))
            d = 0.5 * (1.0 + s2 / s1)

            kd = k * dz
            cos_kd = np.cos(kd)
            jsin_kd = 1j * np.sin(kd)
            m11 = d * cos_kd
            m12 = z0 * jsin_kd
            m21 = jsin_kd / z0
            m22 = cos_kd / d

            t11, t12, t21, t22 = (
                t11 * m11 + t12 * m21,
                t11 * m12 + t12 * m22,
                t21 * m11 + t22 * m21,
                t21 * m12 + t22 * m22,
            )

        z_throat = (t11 * z_term + t12) / (t21 * z_term + t22)
        h = 1.0 / t11
        mag = np.abs(h)
        spl = 20.0 * np.log10(np.maximum(mag, MAGNITUDE_FLOOR))
        phase = np.angle(h)

    if skipped:
        logger.debug("Skipped %d zero-length segment(s)", skipped)

    results = []
    for i in range(f.size):
        group_delay = None
        if i > 0:
            df = f[i] - f[i - 1]
            if df > 0:
                group_delay = float(-1000.0 * (phase[i] - phase[i - 1]) / (2.0 * np.pi * df))
        results.append(FrequencyResponse(
            frequency=float(f[i]),
            transfer=complex(h[i]),
            throat_impedance=complex(z_throat[i]),
            spl=float(spl[i]),
            phase=float(phase[i]),
            group_delay=group_delay,
        ))
    return results


def calculate_on_axis_spl(
    response: FrequencyResponse,
    sensitivity_db: float,
    nominal_impedance: float = 8.0,
    power: float = 1.0,
    voltage: Optional[float] = None,
) -> float:
    """
    On-axis SPL of a driver on the horn.

    Args:
        response: Horn response at the frequency of interest.
        sensitivity_db: Driver sensitivity (dB SPL, 1 W / 1 m).
        nominal_impedance: Driver nominal impedance (Ohms); converts voltage to power.
        power: Input power (W), used when no voltage is given.
        voltage: Drive voltage (V RMS); overrides power.

    Returns:
        SPL in dB at 1 m.
    """
    if voltage is not None:
        if not nominal_impedance > 0:
            raise InvalidInputError(f"nominal_impedance must be > 0, got {nominal_impedance}")
        power = voltage * voltage / nominal_impedance
    if not power > 0:
        raise InvalidInputError(f"power must be > 0, got {power}")
    gain = max(abs(response.transfer), MAGNITUDE_FLOOR)
    return sensitivity_db + 20.0 * math.log10(gain) + 10.0 * math.log10(power)


def response_arrays(responses: Sequence[FrequencyResponse]) -> Dict[str, np.ndarray]:
    """
    Column arrays for plotting: frequency, spl, phase, group_delay (NaN where
    undefined), and the complex transfer and throat_impedance.
    """
    return {
        'frequency': np.array([r.frequency for r in responses]),
        'spl': np.array([r.spl for r in responses]),
        'phase': np.array([r.phase for r in responses]),
        'group_delay': np.array([np.nan if r.group_delay is None else r.group_delay for r in responses]),
        'transfer': np.array([r.transfer for r in responses], dtype=complex),
        'throat_impedance': np.array([r.throat_impedance for r in responses], dtype=complex),
    }
