import numpy as np
import pytest

from sc_synth.bernstein import bernstein_eval, expected_output
from sc_synth.config import BitstreamConfig, PolynomialSpec
from sc_synth.errors import ConfigurationError
from sc_synth.quantizer import CoefficientKind, quantize_coefficients, round_half_up
from sc_synth.rng import constant_seed, input_seed, shared_seed


def test_round_half_away_from_zero():
    assert list(round_half_up([0.5, 1.5, 2.5, 2.49, 10.67])) == [1, 2, 3, 2, 11]


@pytest.mark.parametrize("m_coeff", [1, 3, 6])
def test_quantization_error_bound(m_coeff):
    rng = np.random.default_rng(7)
    coeffs = rng.random(20)
    bits = BitstreamConfig(N=64, m_input=6, m_coeff=m_coeff)
    for q in quantize_coefficients(PolynomialSpec(coeffs), bits):
        assert abs(q.value / bits.N - q.coefficient) <= 2 ** -(m_coeff + 1) + 1e-12
        assert 0 <= q.threshold <= bits.N - 1


def test_kinds_and_saturation():
    bits = BitstreamConfig(N=16, m_input=4, m_coeff=4)
    q = quantize_coefficients(PolynomialSpec([0.0, 0.5, 1.0, 0.99, 0.01]), bits)
    assert [c.kind for c in q] == [CoefficientKind.IS_ZERO, CoefficientKind.GENERIC,
                                   CoefficientKind.IS_ONE, CoefficientKind.GENERIC,
                                   CoefficientKind.GENERIC]
    assert q[1].value == 8
    # 0.99 rounds to 16/16 but stays generic; its bus value saturates
    assert q[3].value == 16 and q[3].threshold == 15
    assert q[4].value == 0


def test_bernstein_eval():
    assert bernstein_eval([0.0, 0.5, 1.0], 0.5) == pytest.approx(0.5)
    # degree-1 Bernstein with c0=0, c1=1 is the identity
    xs = np.linspace(0, 1, 11)
    assert np.allclose(bernstein_eval([0.0, 1.0], xs), xs)
    # x^2 = 0*B0 + 0*B1 + 1*B2
    assert np.allclose(bernstein_eval([0.0, 0.0, 1.0], xs), xs ** 2)


def test_expected_output_scenario():
    f = expected_output([0, 0.5, 1], N=16, m_input=2, m_coeff=4)
    assert f(0.5) == 8
    assert f.quantize_input(0.5) == 2
    assert f(0.0) == 0
    # B(1) * N = 16 does not fit in 4 bits
    assert f(1.0) == 15
    assert f.quantize_input(1.0) == 3


def test_expected_output_rejects_bad_config():
    with pytest.raises(ConfigurationError):
        expected_output([0, 1], N=12, m_input=2, m_coeff=2)


def test_seeds():
    assert [input_seed(i, 16, 2) for i in range(2)] == [0, 3]
    assert [constant_seed(i, 16, 2) for i in range(3)] == [6, 10, 13]
    assert shared_seed(16) == 11
    assert shared_seed(256) == 171
