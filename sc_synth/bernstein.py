"""
Bernstein polynomial evaluation and the expected wrapper output.

Test benches use `expected_output` to pair a stimulus with the value the
wrapper should produce, independently of how the circuit computes it.
"""

from __future__ import annotations
from math import comb
from typing import Sequence

import numpy as np

from sc_synth.config import BitstreamConfig, PolynomialSpec
from sc_synth.quantizer import round_half_up


def bernstein_basis(degree: int, x) -> np.ndarray:
    """Evaluate all Bernstein basis polynomials of `degree` at x.

    Returns:
        Array of shape (..., degree + 1)
    """
    x = np.asarray(x, dtype=float)[..., np.newaxis]
    k = np.arange(degree + 1)
    binom = np.array([comb(degree, int(i)) for i in k], dtype=float)
    return binom * x ** k * (1.0 - x) ** (degree - k)


def bernstein_eval(coefficients: Sequence[float], x) -> np.ndarray:
    """B(x) = sum_k c_k * C(n, k) * x^k * (1 - x)^(n - k)"""
    coeffs = np.asarray(coefficients, dtype=float)
    return bernstein_basis(len(coeffs) - 1, x) @ coeffs


class ExpectedOutput:
    """Pure mapping from an input value to the expected quantized output.

    Args:
        coefficients: Bernstein coefficients in [0, 1]
        N: Bitstream length (power of 2)
        m_input: Bits of the binary input
        m_coeff: Bits of the binary weights
    """

    def __init__(self, coefficients: Sequence[float], N: int, m_input: int, m_coeff: int):
        self.polynomial = PolynomialSpec(coefficients)
        self.bitstream = BitstreamConfig(N=N, m_input=m_input, m_coeff=m_coeff)
        self.bitstream.validate()
        self.polynomial.validate()

    def quantize_input(self, x: float) -> int:
        """Binary value of x on the m_input-bit input port, clipped to all ones."""
        top = 2 ** self.bitstream.m_input
        return int(min(round_half_up(x * top), top - 1))

    def value(self, x: float) -> float:
        """Real value of the approximated function at x."""
        return float(bernstein_eval(self.polynomial.coefficients, x))

    def __call__(self, x: float) -> int:
        """round(B(x) * N), clipped to N - 1 (the largest m-bit count)."""
        N = self.bitstream.N
        return int(min(round_half_up(self.value(x) * N), N - 1))


def expected_output(coefficients: Sequence[float], N: int, m_input: int,
                    m_coeff: int) -> ExpectedOutput:
    """Build the expected-output function for one (coefficients, N, m_input, m_coeff) tuple."""
    return ExpectedOutput(coefficients, N, m_input, m_coeff)
