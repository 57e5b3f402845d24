"""
Exception hierarchy for the horn computation engine.

Invalid input is reported by raising. Numeric degeneracy is not: it is
either recovered locally (bisection fallback, clamping) or surfaces as
NaN/inf in the returned values.
"""


class HornEngineError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(HornEngineError, ValueError):
    """A required parameter is missing, out of range, or inconsistent."""


class RootNotBracketedError(InvalidInputError):
    """The bracket handed to a root solver does not contain a sign change."""


class NonFiniteError(InvalidInputError):
    """A function evaluated to NaN or infinity where a finite value is required."""
