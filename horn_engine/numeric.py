"""
Numeric foundation for the horn engine.

Root finding, complex helpers, a radix-2 FFT, quadrature, interpolation,
decibel conversion and the special functions needed by the radiation and
directivity models (gamma, Bessel J1, Struve H1, sinc).

Root solvers come in two flavours:
    - newton_raphson / bisection / solve_with_fallback return a RootResult
      and never raise; "no root" is reported through RootResult.found.
    - solve_bracketed is the workhorse for the implicit profiles. It raises
      RootNotBracketedError / NonFiniteError because a bad bracket there is a
      caller error.

Special functions accept a float or a numpy array and return the same
shape, so the transmission-line and directivity code can stay vectorised.

References:
    Abramowitz & Stegun (1964), 9.1.10, 9.2.5, 12.1.3, 12.1.31
    Lanczos (1964), "A Precision Approximation of the Gamma Function"
"""

import cmath
import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from horn_engine.constants import MAGNITUDE_FLOOR
from horn_engine.errors import InvalidInputError, NonFiniteError, RootNotBracketedError

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]

# Series/asymptotic crossover for J1 and H1
_SERIES_LIMIT = 12.0
_MAX_SERIES_TERMS = 80
_DERIVATIVE_FLOOR = 1e-10


@dataclass(frozen=True)
class RootResult:
    """Outcome of a root search. `value` is None when `found` is False."""
    found: bool
    value: Optional[float]
    iterations: int
    method: str


# ---------------------------------------------------------------------------
# Root finding
# ---------------------------------------------------------------------------

def newton_raphson(
    f: Callable[[float], float],
    df: Callable[[float], float],
    x0: float,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> RootResult:
    """
    Newton-Raphson iteration.

    Converges when |f(x)| < tol or the Newton step is smaller than tol.
    Gives up (found=False) on a vanishing derivative, a non-finite
    evaluation, or an exhausted iteration budget.
    """
    x = float(x0)
    for i in range(max_iter):
        fx = f(x)
        if not math.isfinite(fx):
            return RootResult(False, None, i, "newton")
        if abs(fx) < tol:
            return RootResult(True, x, i, "newton")
        dfx = df(x)
        if not math.isfinite(dfx) or abs(dfx) < _DERIVATIVE_FLOOR:
            return RootResult(False, None, i, "newton")
        step = fx / dfx
        x -= step
        if abs(step) < tol:
            return RootResult(True, x, i + 1, "newton")
    return RootResult(False, None, max_iter, "newton")


def bisection(
    f: Callable[[float], float],
    a: float,
    b: float,
    tol: float = 1e-6,
    max_iter: int = 100,
) -> RootResult:
    """
    Interval halving on [a, b].

    Returns found=False when f(a) and f(b) share a sign. When the budget
    runs out the current midpoint is returned as the root.
    """
    fa = f(a)
    fb = f(b)
    if fa == 0:
        return RootResult(True, float(a), 0, "bisection")
    if fb == 0:
        return RootResult(True, float(b), 0, "bisection")
    if fa * fb > 0:
        return RootResult(False, None, 0, "bisection")

    lo, hi = float(a), float(b)
    mid = 0.5 * (lo + hi)
    for i in range(max_iter):
        mid = 0.5 * (lo + hi)
        fm = f(mid)
        if abs(fm) < tol or 0.5 * abs(hi - lo) < tol:
            return RootResult(True, mid, i + 1, "bisection")
        if fa * fm < 0:
            hi = mid
        else:
            lo, fa = mid, fm
    return RootResult(True, mid, max_iter, "bisection")


def solve_with_fallback(
    f: Callable[[float], float],
    df: Callable[[float], float],
    x0: float,
    bounds: Tuple[float, float],
    tol: float = 1e-6,
) -> RootResult:
    """
    Newton-Raphson first; bisection over `bounds` when Newton fails or
    lands outside them. The solver actually used is in the result's method.
    """
    lo, hi = bounds
    result = newton_raphson(f, df, x0, tol=tol)
    if result.found and lo <= result.value <= hi:
        return result

    logger.debug(
        "Newton from x0=%g %s; falling back to bisection on [%g, %g]",
        x0, "left the bounds" if result.found else "did not converge", lo, hi,
    )
    return bisection(f, lo, hi, tol=tol)


def solve_bracketed(
    f: Callable[[float], float],
    lo: float,
    hi: float,
    tol: float = 1e-10,
    max_iter: int = 80,
) -> float:
    """
    Find a root of f inside [lo, hi] with safeguarded secant steps.

    Each step is a secant (regula falsi, Illinois-weighted) through the
    bracket ends. It is replaced by the midpoint when it leaves the bracket
    or evaluates non-finite, and the sub-interval that keeps the sign change
    is retained. A step that does not halve the bracket is followed by a
    plain bisection, so the bracket at least halves every two iterations.

    Args:
        f: Scalar function.
        lo, hi: Bracket ends.
        tol: Absolute tolerance on the bracket width.
        max_iter: Iteration budget; the last estimate is returned when hit.

    Returns:
        The root estimate.

    Raises:
        NonFiniteError: an endpoint evaluates to NaN/inf.
        RootNotBracketedError: f(lo) and f(hi) share a sign.
    """
    a, b = float(lo), float(hi)
    fa, fb = f(a), f(b)
    if not (math.isfinite(fa) and math.isfinite(fb)):
        raise NonFiniteError(
            f"Function is not finite at the bracket ends: f({a:g})={fa}, f({b:g})={fb}"
        )
    if fa == 0:
        return a
    if fb == 0:
        return b
    if fa * fb > 0:
        raise RootNotBracketedError(
            f"No sign change on [{a:g}, {b:g}]: f(lo)={fa:.6g}, f(hi)={fb:.6g}"
        )

    x = 0.5 * (a + b)
    last_kept = 0
    bisect_next = False
    for _ in range(max_iter):
        width = abs(b - a)
        x = math.nan
        if not bisect_next and fb != fa:
            x = b - fb * (b - a) / (fb - fa)
        if not (math.isfinite(x) and min(a, b) < x < max(a, b)):
            x = 0.5 * (a + b)
        fx = f(x)
        if not math.isfinite(fx):
            x = 0.5 * (a + b)
            fx = f(x)
            if not math.isfinite(fx):
                raise NonFiniteError(f"Function is not finite at x={x:g} inside the bracket")

        if fx == 0:
            return x

        if fa * fx < 0:
            b, fb = x, fx
            if last_kept == -1:
                fa *= 0.5
            last_kept = -1
        else:
            a, fa = x, fx
            if last_kept == 1:
                fb *= 0.5
            last_kept = 1

        if abs(b - a) < tol:
            return x
        # a secant step that fails to halve the bracket is followed by a bisection
        bisect_next = abs(b - a) > 0.5 * width
    return x


# ---------------------------------------------------------------------------
# Complex helpers
# ---------------------------------------------------------------------------

def complex_add(a: complex, b: complex) -> complex:
    return complex(a) + complex(b)


def complex_subtract(a: complex, b: complex) -> complex:
    return complex(a) - complex(b)


def complex_multiply(a: complex, b: complex) -> complex:
    return complex(a) * complex(b)


def complex_divide(a: complex, b: complex) -> complex:
    """a / b. A zero denominator yields non-finite components instead of raising."""
    with np.errstate(divide="ignore", invalid="ignore"):
        q = np.complex128(a) / np.complex128(b)
    return complex(q)


def complex_exp(z: complex) -> complex:
    return cmath.exp(z)


def magnitude(z: complex) -> float:
    return abs(z)


def phase(z: complex) -> float:
    """Argument of z in [-π, π]."""
    return math.atan2(z.imag, z.real)


def from_polar(r: float, theta: float) -> complex:
    return complex(r * math.cos(theta), r * math.sin(theta))


# ---------------------------------------------------------------------------
# FFT
# ---------------------------------------------------------------------------

def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def fft(values: Sequence[complex]) -> List[complex]:
    """
    Recursive radix-2 Cooley-Tukey FFT.

    Raises:
        InvalidInputError: length is not a power of two (lengths 0 and 1 pass through).
    """
    n = len(values)
    if n <= 1:
        return [complex(v) for v in values]
    if not _is_power_of_two(n):
        raise InvalidInputError(
            f"FFT length must be a power of two, got {n}; use pad_to_power_of_two()"
        )

    even = fft(values[0::2])
    odd = fft(values[1::2])
    out = [0j] * n
    half = n // 2
    for k in range(half):
        t = cmath.exp(-2j * math.pi * k / n) * odd[k]
        out[k] = even[k] + t
        out[k + half] = even[k] - t
    return out


def ifft(values: Sequence[complex]) -> List[complex]:
    """Inverse FFT via conjugation: conj → fft → conj → scale by 1/N."""
    n = len(values)
    if n <= 1:
        return [complex(v) for v in values]
    spectrum = fft([complex(v).conjugate() for v in values])
    return [v.conjugate() / n for v in spectrum]


def pad_to_power_of_two(values: Sequence[complex], fill: complex = 0j) -> List[complex]:
    """Pad with `fill` up to the next power-of-two length."""
    n = len(values)
    target = 1
    while target < n:
        target *= 2
    if n == 0:
        target = 0
    return list(values) + [fill] * (target - n)


# ---------------------------------------------------------------------------
# Quadrature / interpolation / levels
# ---------------------------------------------------------------------------

def integrate(f: Callable[[float], float], a: float, b: float, n: int = 1000) -> float:
    """Composite Simpson's rule with n intervals (odd n is bumped to even)."""
    if n < 2:
        n = 2
    if n % 2:
        n += 1
    h = (b - a) / n
    total = f(a) + f(b)
    for i in range(1, n):
        total += (4.0 if i % 2 else 2.0) * f(a + i * h)
    return total * h / 3.0


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def cubic_interp(a: float, b: float, t: float) -> float:
    """Smoothstep blend between a and b."""
    s = t * t * (3.0 - 2.0 * t)
    return a + (b - a) * s


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def db_to_linear(db: float) -> float:
    return 10.0 ** (db / 20.0)


def linear_to_db(value: float) -> float:
    """20·log10(value), floored at 1e-10 linear (-200 dB)."""
    return 20.0 * math.log10(max(value, MAGNITUDE_FLOOR))


# ---------------------------------------------------------------------------
# Special functions
# ---------------------------------------------------------------------------

_LANCZOS_G = 7
_LANCZOS_COEFFS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.9843695780195716e-6,
    1.5056327351493116e-7,
)


def gamma(z: float) -> float:
    """Gamma function by the Lanczos approximation (reflection below 0.5)."""
    if z < 0.5:
        return math.pi / (math.sin(math.pi * z) * gamma(1.0 - z))
    z -= 1.0
    x = _LANCZOS_COEFFS[0]
    for i in range(1, _LANCZOS_G + 2):
        x += _LANCZOS_COEFFS[i] / (z + i)
    t = z + _LANCZOS_G + 0.5
    return math.sqrt(2.0 * math.pi) * t ** (z + 0.5) * math.exp(-t) * x


def _as_output(x, out: np.ndarray) -> ArrayLike:
    if np.ndim(x) == 0:
        return float(np.asarray(out).reshape(-1)[0])
    return out


def _hankel_pq(x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Leading Hankel P/Q terms for order 1 (A&S 9.2.9-9.2.10, μ = 4)."""
    inv2 = 1.0 / (x * x)
    p = 1.0 + inv2 * (15.0 / 128.0 - inv2 * (14175.0 / 98304.0))
    q = (3.0 / 8.0 - inv2 * (105.0 / 1024.0)) / x
    return p, q


def _j1_series(x: np.ndarray) -> np.ndarray:
    half = 0.5 * x
    term = half.copy()
    total = term.copy()
    h2 = half * half
    for k in range(_MAX_SERIES_TERMS):
        term = -term * h2 / ((k + 1) * (k + 2))
        total += term
        if np.all(np.abs(term) <= 1e-17 * np.maximum(np.abs(total), 1e-300)):
            break
    return total


def _h1_series(x: np.ndarray) -> np.ndarray:
    x2 = x * x
    term = 2.0 * x2 / (3.0 * np.pi)
    total = term.copy()
    for k in range(_MAX_SERIES_TERMS):
        term = -term * x2 / ((2 * k + 3) * (2 * k + 5))
        total += term
        if np.all(np.abs(term) <= 1e-17 * np.maximum(np.abs(total), 1e-300)):
            break
    return total


def bessel_j1(x: ArrayLike) -> ArrayLike:
    """
    Bessel function of the first kind, order 1.

    Power series for |x| < 12, Hankel asymptotic expansion beyond.
    J1 is odd, so only |x| is evaluated.
    """
    xa = np.atleast_1d(np.abs(np.asarray(x, dtype=float)))
    out = np.empty_like(xa)
    small = xa < _SERIES_LIMIT
    if np.any(small):
        out[small] = _j1_series(xa[small])
    if np.any(~small):
        z = xa[~small]
        p, q = _hankel_pq(z)
        chi = z - 0.75 * np.pi
        out[~small] = np.sqrt(2.0 / (np.pi * z)) * (p * np.cos(chi) - q * np.sin(chi))
    out = np.sign(np.atleast_1d(np.asarray(x, dtype=float))) * out
    return _as_output(x, out)


def struve_h1(x: ArrayLike) -> ArrayLike:
    """
    Struve function, order 1.

    Power series for |x| < 12; beyond that H1 = Y1 + K1 with Y1 from the
    Hankel expansion and K1 = (2/π)(1 + 1/x² - 3/x⁴ + 45/x⁶ - 1575/x⁸).
    H1 is even.
    """
    xa = np.atleast_1d(np.abs(np.asarray(x, dtype=float)))
    out = np.empty_like(xa)
    small = xa < _SERIES_LIMIT
    if np.any(small):
        out[small] = _h1_series(xa[small])
    if np.any(~small):
        z = xa[~small]
        p, q = _hankel_pq(z)
        chi = z - 0.75 * np.pi
        y1 = np.sqrt(2.0 / (np.pi * z)) * (p * np.sin(chi) + q * np.cos(chi))
        inv2 = 1.0 / (z * z)
        k1 = (2.0 / np.pi) * (1.0 + inv2 * (1.0 + inv2 * (-3.0 + inv2 * (45.0 - inv2 * 1575.0))))
        out[~small] = y1 + k1
    return _as_output(x, out)


def sinc(x: ArrayLike) -> ArrayLike:
    """Unnormalised sinc: sin(x)/x with sinc(0) = 1."""
    xv = np.asarray(x, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(xv == 0.0, 1.0, np.sin(xv) / np.where(xv == 0.0, 1.0, xv))
    return _as_output(x, out)
