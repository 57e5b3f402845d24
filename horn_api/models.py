"""Pydantic models for HornForge API requests and responses."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from horn_engine.directivity import ApertureShape
from horn_engine.profile_types import ProfileKind


# --- Shared ---

class ComplexValue(BaseModel):
    """Complex number; non-finite parts are null."""
    real: Optional[float] = None
    imag: Optional[float] = None


class ProfilePointModel(BaseModel):
    x: float = Field(..., description="Axial position from the throat (mm)")
    radius: float = Field(..., gt=0, description="Radius (mm)")


# --- Profiles ---

class ProfileRequest(BaseModel):
    """Horn geometry. Which of mouth_radius/length may be omitted depends on the kind."""
    kind: ProfileKind
    throat_radius: float = Field(..., gt=0, description="Throat radius (mm)")
    mouth_radius: Optional[float] = Field(None, gt=0, description="Mouth radius (mm)")
    length: Optional[float] = Field(None, gt=0, description="Axial length (mm)")
    segments: int = Field(100, ge=2, le=5000)
    options: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific options")


class ProfileResponse(BaseModel):
    kind: ProfileKind
    points: List[ProfilePointModel]
    validation: Dict[str, Any]


class ProfileKindInfo(BaseModel):
    kind: ProfileKind
    description: str
    strategy: str
    options: Dict[str, Any]


class ProfileKindsResponse(BaseModel):
    kinds: List[ProfileKindInfo]


# --- Acoustics ---

class MediumModel(BaseModel):
    speed_of_sound: float = Field(343.2, gt=0, description="m/s, used when temperature is null")
    density: float = Field(1.204, gt=0, description="kg/m³")
    temperature: Optional[float] = Field(20.0, gt=-273.15, description="°C")


class FrequencySweep(BaseModel):
    start: float = Field(20.0, gt=0)
    end: float = Field(20000.0, gt=0)
    num_points: int = Field(200, ge=1, le=5000)


class AcousticsRequest(BaseModel):
    """Give either explicit profile points or a horn to generate."""
    profile: Optional[List[ProfilePointModel]] = None
    horn: Optional[ProfileRequest] = None
    frequencies: Optional[List[float]] = Field(None, description="Explicit frequency list (Hz)")
    sweep: FrequencySweep = Field(default_factory=FrequencySweep)
    medium: MediumModel = Field(default_factory=MediumModel)
    termination_impedance: Optional[ComplexValue] = None


class FrequencyPoint(BaseModel):
    frequency: float
    transfer: ComplexValue
    throat_impedance: ComplexValue
    spl: Optional[float]
    phase: Optional[float]
    group_delay: Optional[float] = Field(None, description="ms")


class AcousticsResponse(BaseModel):
    cutoff_frequency: Optional[float] = Field(None, description="Throat cutoff c/(4πa) (Hz)")
    responses: List[FrequencyPoint]


# --- Directivity ---

class DirectivityRequest(BaseModel):
    shape: ApertureShape
    width: float = Field(..., gt=0, description="Mouth width (mm)")
    height: float = Field(..., gt=0, description="Mouth height (mm)")
    n: Optional[float] = Field(None, gt=0, description="Superellipse exponent")
    frequency: float = Field(..., gt=0, description="Hz")
    angle_step: float = Field(5.0, ge=0.1, le=90, description="Degrees")
    speed_of_sound: float = Field(343.2, gt=0, description="m/s")
    half_space: bool = Field(False, description="Mouth in an infinite baffle (silent rear hemisphere)")


class DirectivityPointModel(BaseModel):
    angle: float
    magnitude: float
    db: float


class BeamwidthModel(BaseModel):
    minus3db: float
    minus6db: float


class DirectivityResponse(BaseModel):
    frequency: float
    azimuth: List[DirectivityPointModel]
    elevation: List[DirectivityPointModel]
    beamwidth: Dict[str, BeamwidthModel]
    estimated_beamwidth: Dict[str, float]
    directivity_factor: float
    directivity_index: float = Field(..., description="dB, integrated from the pattern")
