"""
Coefficient quantization.

Weights are rounded to m_coeff fractional bits and rescaled to the
bitstream length N, so that a weight c becomes the integer threshold the
conversion networks compare an m-bit random number against.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import List

import numpy as np

from sc_synth.config import BitstreamConfig, PolynomialSpec


class CoefficientKind(Enum):
    IS_ZERO = "IsZero"
    IS_ONE = "IsOne"
    GENERIC = "Generic"


@dataclass(frozen=True)
class QuantizedCoefficient:
    """One weight after quantization.

    Attributes:
        index: Position in the coefficient list
        coefficient: Original real value
        value: Quantized value scaled to N, in [0, N]
        threshold: Value driven onto the m-bit weight bus, min(value, N - 1)
        kind: IsZero / IsOne when the unrounded value is exactly 0 / 1
    """
    index: int
    coefficient: float
    value: int
    threshold: int
    kind: CoefficientKind

    @property
    def is_constant(self) -> bool:
        """True when the stochastic stream is a constant 0 or 1."""
        return self.kind is not CoefficientKind.GENERIC


def round_half_up(values) -> np.ndarray:
    """Round non-negative values to nearest, ties away from zero.

    np.round rounds ties to even, which would make 2.5 quantize to 2.
    """
    return np.floor(np.asarray(values, dtype=float) + 0.5)


def q_nearest(x, precision: int) -> np.ndarray:
    """Round x to `precision` fractional bits."""
    pow2n = 2 ** precision
    return round_half_up(np.asarray(x, dtype=float) * pow2n) / pow2n


def quantize_coefficients(polynomial: PolynomialSpec,
                          bitstream: BitstreamConfig) -> List[QuantizedCoefficient]:
    """Quantize every weight of the polynomial.

    Args:
        polynomial: Validated Bernstein coefficients
        bitstream: Validated bitstream configuration

    Returns:
        One QuantizedCoefficient per coefficient, in index order
    """
    coeffs = np.asarray(polynomial.coefficients, dtype=float)
    scaled = q_nearest(coeffs, bitstream.m_coeff) * bitstream.N

    result = []
    for i, (c, v) in enumerate(zip(coeffs, scaled)):
        # kind comes from the unrounded value
        if c == 0.0:
            kind = CoefficientKind.IS_ZERO
        elif c == 1.0:
            kind = CoefficientKind.IS_ONE
        else:
            kind = CoefficientKind.GENERIC
        result.append(QuantizedCoefficient(index=i, coefficient=float(c),
                                           value=int(v), threshold=min(int(v), bitstream.N - 1),
                                           kind=kind))
    return result
