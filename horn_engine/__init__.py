"""
HornForge Compute Engine

Core computation library for horn loudspeaker waveguides: flare profile
generation, one-dimensional transmission-line acoustics and far-field
directivity of the mouth aperture.

All geometry is in millimetres; frequencies in Hz.
"""

from horn_engine.errors import HornEngineError, InvalidInputError, NonFiniteError, RootNotBracketedError
from horn_engine.profile_types import ProfileKind, ProfileParams, ProfilePoint
from horn_engine.profiles import generate_profile, list_profiles, validate_profile
from horn_engine.tl_solver import (
    FrequencyResponse,
    MediumProperties,
    generate_frequencies,
    solve_transmission_line,
)
from horn_engine.directivity import (
    ApertureShape,
    ApertureSpec,
    Beamwidth,
    DirectivityResult,
    PolarPattern,
    compute_beamwidth,
    compute_polar_pattern,
    directivity_index_from_pattern,
    directivity_index_vs_frequency,
)

__version__ = "0.1.0"
