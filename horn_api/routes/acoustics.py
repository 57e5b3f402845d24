"""Acoustics route: transmission-line solve of a horn profile."""

import logging
import math
from typing import Optional

from fastapi import APIRouter, HTTPException

from horn_api.models import AcousticsRequest, AcousticsResponse, ComplexValue, FrequencyPoint
from horn_api.routes.profiles import build_profile_params
from horn_engine.errors import InvalidInputError
from horn_engine.profile_types import ProfilePoint
from horn_engine.profiles import generate_profile
from horn_engine.tl_solver import (
    MediumProperties,
    cutoff_frequency,
    effective_speed_of_sound,
    generate_frequencies,
    solve_transmission_line,
)

router = APIRouter()

logger = logging.getLogger(__name__)


def _finite(value: Optional[float]) -> Optional[float]:
    """JSON has no inf/NaN; those become null."""
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def _complex(value: complex) -> ComplexValue:
    return ComplexValue(real=_finite(value.real), imag=_finite(value.imag))


def _resolve_profile(request: AcousticsRequest):
    if (request.profile is None) == (request.horn is None):
        raise InvalidInputError("Give exactly one of 'profile' or 'horn'")
    if request.profile is not None:
        return [ProfilePoint(x=p.x, radius=p.radius) for p in request.profile]
    return generate_profile(request.horn.kind, build_profile_params(request.horn))


@router.post("/acoustics/solve", response_model=AcousticsResponse)
def solve_acoustics(request: AcousticsRequest):
    """Frequency response and throat impedance of a horn."""
    try:
        profile = _resolve_profile(request)
        if request.frequencies is not None:
            frequencies = request.frequencies
        else:
            sweep = request.sweep
            frequencies = generate_frequencies(sweep.start, sweep.end, sweep.num_points)

        medium = MediumProperties(
            speed_of_sound=request.medium.speed_of_sound,
            density=request.medium.density,
            temperature=request.medium.temperature,
        )
        termination = None
        if request.termination_impedance is not None:
            z = request.termination_impedance
            termination = complex(z.real or 0.0, z.imag or 0.0)

        responses = solve_transmission_line(profile, frequencies, medium, termination)
        fc = cutoff_frequency(profile[0].radius, effective_speed_of_sound(medium))
    except InvalidInputError as e:
        logger.info("Rejected acoustics request: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    logger.debug("Solved %d frequencies over %d profile points", len(responses), len(profile))
    return AcousticsResponse(
        cutoff_frequency=_finite(fc),
        responses=[
            FrequencyPoint(
                frequency=r.frequency,
                transfer=_complex(r.transfer),
                throat_impedance=_complex(r.throat_impedance),
                spl=_finite(r.spl),
                phase=_finite(r.phase),
                group_delay=_finite(r.group_delay),
            )
            for r in responses
        ],
    )
