"""Profile routes: horn geometry generation."""

import logging

from fastapi import APIRouter, HTTPException

from horn_api.models import (
    ProfileKindInfo,
    ProfileKindsResponse,
    ProfilePointModel,
    ProfileRequest,
    ProfileResponse,
)
from horn_engine.errors import InvalidInputError
from horn_engine.profile_types import ProfileParams, build_options
from horn_engine.profiles import (
    generate_profile,
    get_profile_definition,
    list_profiles,
    validate_profile,
)

router = APIRouter()

logger = logging.getLogger(__name__)


def build_profile_params(request: ProfileRequest) -> ProfileParams:
    """Turn a request into ProfileParams, building the kind's option record."""
    definition = get_profile_definition(request.kind)
    try:
        options = build_options(definition.options_type, request.options)
    except InvalidInputError as e:
        raise InvalidInputError(f"Invalid options for {request.kind.value}: {e}") from None
    return ProfileParams(
        throat_radius=request.throat_radius,
        mouth_radius=request.mouth_radius,
        length=request.length,
        segments=request.segments,
        options=options,
    )


@router.get("/profiles/kinds", response_model=ProfileKindsResponse)
async def profile_kinds():
    """List the profile kinds with their default options."""
    return ProfileKindsResponse(kinds=[ProfileKindInfo(**entry) for entry in list_profiles()])


@router.post("/profiles/generate", response_model=ProfileResponse)
def generate_profile_endpoint(request: ProfileRequest):
    """Generate a throat-to-mouth profile and its validation report."""
    try:
        params = build_profile_params(request)
        profile = generate_profile(request.kind, params)
    except InvalidInputError as e:
        logger.info("Rejected %s profile: %s", request.kind.value, e)
        raise HTTPException(status_code=400, detail=str(e))

    return ProfileResponse(
        kind=request.kind,
        points=[ProfilePointModel(x=p.x, radius=p.radius) for p in profile],
        validation=validate_profile(profile, params),
    )
