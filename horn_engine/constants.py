"""
Physical defaults and numeric floors shared across the engine.

Geometry is in millimetres throughout; medium properties are SI.
"""

# Air at 20 °C
SPEED_OF_SOUND = 343.2       # m/s
AIR_DENSITY = 1.204          # kg/m³
AIR_TEMPERATURE = 20.0       # °C

# Speed of sound used by the profile design formulas (cutoff → flare rate)
DESIGN_SPEED_OF_SOUND = 343.0  # m/s

# c(T) = C0 · sqrt(1 + T / T0)
SPEED_OF_SOUND_0C = 331.3    # m/s
KELVIN_OFFSET = 273.15

DEFAULT_SEGMENTS = 100

# 20·log10(1e-10) = -200 dB
MAGNITUDE_FLOOR = 1e-10

# On-axis angle tolerance (radians) for the directivity special case
ON_AXIS_EPS = 1e-10

# Empirical beamwidth constant (degrees · inches · Hz)
BEAMWIDTH_K = 29000.0
MM_PER_INCH = 25.4
