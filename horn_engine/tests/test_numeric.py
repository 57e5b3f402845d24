"""
Tests for the numeric foundation.

Validates:
1. Root solvers converge inside tolerance and report missing roots
2. FFT/IFFT against known transforms, power-of-two enforcement
3. Special functions against scipy.special reference values
4. Quadrature, interpolation and level conversion helpers
"""

import math
import sys
import os

import numpy as np
import pytest
from scipy import special

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from horn_engine.errors import InvalidInputError, NonFiniteError, RootNotBracketedError
from horn_engine.numeric import (
    RootResult,
    bessel_j1,
    bisection,
    clamp,
    complex_divide,
    cubic_interp,
    db_to_linear,
    fft,
    from_polar,
    gamma,
    ifft,
    integrate,
    lerp,
    linear_to_db,
    newton_raphson,
    pad_to_power_of_two,
    phase,
    sinc,
    solve_bracketed,
    solve_with_fallback,
    struve_h1,
)


def cubic(x):
    return x ** 3 - 2 * x - 5


def cubic_prime(x):
    return 3 * x ** 2 - 2


CUBIC_ROOT = 2.0945514815423265


class TestNewtonRaphson:
    """Newton-Raphson iteration."""

    def test_converges(self):
        result = newton_raphson(cubic, cubic_prime, 2.0)
        assert result.found
        assert result.method == "newton"
        assert result.value == pytest.approx(CUBIC_ROOT, abs=1e-6)

    def test_flat_derivative_reports_failure(self):
        """f'(x0) = 0 cannot produce a step."""
        result = newton_raphson(lambda x: x * x + 1, lambda x: 2 * x, 0.0)
        assert not result.found
        assert result.value is None

    def test_budget_exhausted(self):
        """x² + 1 has no real root; Newton wanders until the budget runs out."""
        result = newton_raphson(lambda x: x * x + 1, lambda x: 2 * x, 0.5, max_iter=20)
        assert not result.found


class TestBisection:
    """Bisection and the bracketed secant solver."""

    def test_finds_root(self):
        result = bisection(cubic, 2.0, 3.0)
        assert result.found
        assert abs(cubic(result.value)) < 1e-4

    def test_no_sign_change(self):
        result = bisection(lambda x: x * x + 1, -1.0, 1.0)
        assert result == RootResult(False, None, 0, "bisection")

    def test_exact_endpoint(self):
        result = bisection(lambda x: x - 1.0, 1.0, 2.0)
        assert result.found and result.value == 1.0

    def test_bracketed_finds_root(self):
        root = solve_bracketed(cubic, 2.0, 3.0)
        assert root == pytest.approx(CUBIC_ROOT, abs=1e-9)

    def test_bracketed_reversed_bracket(self):
        root = solve_bracketed(math.cos, 2.0, 1.0)
        assert root == pytest.approx(math.pi / 2, abs=1e-9)

    def test_bracketed_steep_function(self):
        """Regula falsi on a highly convex function must still converge."""
        root = solve_bracketed(lambda x: math.exp(4 * x) - 2.0, 0.0, 5.0)
        assert root == pytest.approx(math.log(2.0) / 4, abs=1e-9)

    def test_bracketed_not_bracketed(self):
        with pytest.raises(RootNotBracketedError):
            solve_bracketed(lambda x: x * x + 1, -1.0, 1.0)

    def test_bracketed_nonfinite_endpoint(self):
        with pytest.raises(NonFiniteError):
            solve_bracketed(lambda x: math.log(x) if x > 0 else float('nan'), 0.0, 2.0)

    def test_bracketed_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            solve_bracketed(lambda x: 1.0, 0.0, 1.0)

    def test_bracketed_exact_endpoint(self):
        assert solve_bracketed(lambda x: x, 0.0, 1.0) == 0.0


class TestFallback:
    """Newton with bisection fallback."""

    def test_newton_accepted_inside_bounds(self):
        result = solve_with_fallback(cubic, cubic_prime, 2.0, (2.0, 3.0))
        assert result.method == "newton"
        assert result.value == pytest.approx(CUBIC_ROOT, abs=1e-6)

    def test_falls_back_when_newton_leaves_bounds(self):
        """sin has a root at 0 and at π; Newton from 1.0 goes to 0, outside [2, 4]."""
        result = solve_with_fallback(math.sin, math.cos, 1.0, (2.0, 4.0))
        assert result.found
        assert result.method == "bisection"
        assert result.value == pytest.approx(math.pi, abs=1e-5)

    def test_falls_back_on_flat_derivative(self):
        result = solve_with_fallback(lambda x: x ** 3 - 1, lambda x: 3 * x ** 2, 0.0, (0.0, 2.0))
        assert result.method == "bisection"
        assert result.value == pytest.approx(1.0, abs=1e-5)

    def test_reports_no_root(self):
        result = solve_with_fallback(lambda x: x * x + 1, lambda x: 2 * x, 0.0, (-1.0, 1.0))
        assert not result.found


class TestFFT:
    """Radix-2 FFT."""

    def test_impulse(self):
        assert fft([1, 0, 0, 0]) == pytest.approx([1, 1, 1, 1])

    def test_constant(self):
        assert fft([1, 1, 1, 1]) == pytest.approx([4, 0, 0, 0])

    def test_matches_numpy(self):
        rng = np.random.default_rng(7)
        x = rng.normal(size=16) + 1j * rng.normal(size=16)
        assert np.allclose(fft(list(x)), np.fft.fft(x))

    def test_inverse_round_trip(self):
        rng = np.random.default_rng(3)
        x = list(rng.normal(size=32) + 1j * rng.normal(size=32))
        assert np.allclose(ifft(fft(x)), x)

    def test_non_power_of_two_rejected(self):
        with pytest.raises(InvalidInputError):
            fft([1, 2, 3])

    def test_trivial_lengths(self):
        assert fft([]) == []
        assert fft([2 + 1j]) == [2 + 1j]

    def test_padding(self):
        padded = pad_to_power_of_two([1, 2, 3])
        assert padded == [1, 2, 3, 0j]
        assert len(fft(padded)) == 4

    def test_padding_keeps_power_of_two(self):
        assert pad_to_power_of_two([1, 2], fill=9) == [1, 2]


class TestSpecialFunctions:
    """Gamma, J1, H1, sinc."""

    def test_gamma_integers(self):
        assert gamma(5.0) == pytest.approx(24.0, rel=1e-12)
        assert gamma(1.0) == pytest.approx(1.0, rel=1e-12)

    def test_gamma_half(self):
        assert gamma(0.5) == pytest.approx(math.sqrt(math.pi), rel=1e-12)

    def test_gamma_reflection(self):
        assert gamma(0.25) == pytest.approx(math.gamma(0.25), rel=1e-10)
        assert gamma(-0.5) == pytest.approx(-2 * math.sqrt(math.pi), rel=1e-10)

    @pytest.mark.parametrize("x", [0.0, 0.1, 1.0, 3.8317, 7.5, 11.9, 12.0, 15.0, 40.0, 200.0])
    def test_j1_matches_scipy(self, x):
        assert bessel_j1(x) == pytest.approx(special.j1(x), abs=1e-6)

    def test_j1_is_odd(self):
        assert bessel_j1(-2.5) == pytest.approx(-bessel_j1(2.5))

    def test_j1_vectorised(self):
        x = np.linspace(0, 30, 61)
        assert np.allclose(bessel_j1(x), special.j1(x), atol=1e-6)

    @pytest.mark.parametrize("x", [0.0, 0.1, 1.0, 5.0, 11.9, 12.0, 15.0, 40.0, 200.0])
    def test_h1_matches_scipy(self, x):
        assert struve_h1(x) == pytest.approx(special.struve(1, x), abs=1e-5)

    def test_h1_is_even(self):
        assert struve_h1(-4.0) == pytest.approx(struve_h1(4.0))

    def test_h1_vectorised(self):
        x = np.linspace(0, 60, 121)
        assert np.allclose(struve_h1(x), special.struve(1, x), atol=1e-5)

    def test_sinc(self):
        assert sinc(0.0) == 1.0
        assert sinc(math.pi) == pytest.approx(0.0, abs=1e-15)
        assert np.allclose(sinc(np.array([0.0, 1.0])), [1.0, math.sin(1.0)])


class TestHelpers:
    """Complex helpers, quadrature, interpolation, levels."""

    def test_complex_divide(self):
        assert complex_divide(1 + 1j, 1 - 1j) == pytest.approx(1j)

    def test_complex_divide_by_zero_is_not_finite(self):
        q = complex_divide(1 + 0j, 0j)
        assert not (math.isfinite(q.real) and math.isfinite(q.imag))

    def test_polar(self):
        z = from_polar(2.0, math.pi / 2)
        assert z == pytest.approx(2j)
        assert phase(z) == pytest.approx(math.pi / 2)

    def test_simpson(self):
        assert integrate(math.sin, 0.0, math.pi) == pytest.approx(2.0, abs=1e-10)

    def test_simpson_odd_intervals(self):
        assert integrate(lambda x: x ** 3, 0.0, 1.0, n=7) == pytest.approx(0.25, abs=1e-12)

    def test_interpolation(self):
        assert lerp(0.0, 10.0, 0.25) == 2.5
        assert cubic_interp(2.0, 4.0, 0.5) == 3.0
        assert cubic_interp(2.0, 4.0, 0.0) == 2.0

    def test_clamp(self):
        assert clamp(5.0, 0.0, 1.0) == 1.0
        assert clamp(-5.0, 0.0, 1.0) == 0.0

    def test_levels(self):
        assert db_to_linear(20.0) == pytest.approx(10.0)
        assert linear_to_db(10.0) == pytest.approx(20.0)
        assert linear_to_db(0.0) == pytest.approx(-200.0)
