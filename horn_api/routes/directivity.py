"""Directivity route: polar patterns of a horn mouth."""

import logging

from fastapi import APIRouter, HTTPException

from horn_api.models import (
    BeamwidthModel,
    DirectivityPointModel,
    DirectivityRequest,
    DirectivityResponse,
)
from horn_engine.directivity import (
    ApertureSpec,
    compute_beamwidth,
    compute_polar_pattern,
    directivity_index_from_pattern,
    estimate_beamwidth,
)
from horn_engine.errors import InvalidInputError

router = APIRouter()

logger = logging.getLogger(__name__)


def _points(results):
    return [DirectivityPointModel(angle=r.angle, magnitude=r.magnitude, db=r.db) for r in results]


@router.post("/directivity/polar", response_model=DirectivityResponse)
def polar_pattern(request: DirectivityRequest):
    """Azimuth/elevation patterns, measured beamwidths, directivity index and the empirical estimate."""
    aperture = ApertureSpec(shape=request.shape, width=request.width, height=request.height, n=request.n)
    try:
        pattern = compute_polar_pattern(aperture, request.frequency, request.angle_step, request.speed_of_sound)
        di = directivity_index_from_pattern(pattern, request.half_space)
    except InvalidInputError as e:
        logger.info("Rejected directivity request: %s", e)
        raise HTTPException(status_code=400, detail=str(e))

    beamwidth = {}
    for plane, results in (('azimuth', pattern.azimuth), ('elevation', pattern.elevation)):
        bw = compute_beamwidth(results)
        beamwidth[plane] = BeamwidthModel(minus3db=bw.minus3db, minus6db=bw.minus6db)

    return DirectivityResponse(
        frequency=pattern.frequency,
        azimuth=_points(pattern.azimuth),
        elevation=_points(pattern.elevation),
        beamwidth=beamwidth,
        estimated_beamwidth={
            'azimuth': estimate_beamwidth(request.width, request.frequency),
            'elevation': estimate_beamwidth(request.height, request.frequency),
        },
        directivity_factor=di['directivity_factor'],
        directivity_index=di['directivity_index'],
    )
