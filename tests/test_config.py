import pytest

from sc_synth.config import (
    ArchitectureConfig, BitstreamConfig, ConstantRNG, InputRNG, ModuleNames, PolynomialSpec,
    SNGType,
)
from sc_synth.errors import ConfigurationError, SynthesisError
from sc_synth.wrapper import synthesize_wrapper


@pytest.mark.parametrize("m", range(1, 9))
def test_power_of_two_lengths_accepted(m):
    bits = BitstreamConfig(N=2 ** m, m_input=1, m_coeff=m)
    bits.validate()
    assert bits.m == m


@pytest.mark.parametrize("N", [0, 1, 10, 12, 255])
def test_non_power_of_two_rejected(N):
    with pytest.raises(ConfigurationError):
        BitstreamConfig(N=N, m_input=1, m_coeff=1).validate()


def test_precision_above_log2_rejected():
    with pytest.raises(ConfigurationError, match="m_input"):
        BitstreamConfig(N=16, m_input=5, m_coeff=4).validate()
    with pytest.raises(ConfigurationError, match="m_coeff"):
        BitstreamConfig(N=16, m_input=4, m_coeff=0).validate()


def test_synthesis_rejects_bad_length_before_building():
    with pytest.raises(ConfigurationError):
        synthesize_wrapper([0.5, 0.5], N=10, m_input=2, m_coeff=2)


@pytest.mark.parametrize("coeffs", [[0.5], [0.2, 1.5], [-0.1, 0.3]])
def test_bad_coefficients(coeffs):
    with pytest.raises(ConfigurationError):
        PolynomialSpec(coeffs).validate()


def test_hardwire_rejected_for_inputs():
    arch = ArchitectureConfig(input_sng=SNGType.HARDWIRE)
    with pytest.raises(ConfigurationError, match="HardWire"):
        arch.validate()


def test_core_streams_need_hardwire():
    with pytest.raises(ConfigurationError):
        ArchitectureConfig(core_constant_streams=True).validate()
    ArchitectureConfig(constant_sng=SNGType.HARDWIRE, core_constant_streams=True).validate()


def test_from_names_is_case_insensitive():
    arch = ArchitectureConfig.from_names("reversecounter", "singlelfsr", "wbg", "MUX")
    assert arch.constant_rng is ConstantRNG.REVERSE_COUNTER
    assert arch.input_rng is InputRNG.SINGLE_LFSR
    assert arch.constant_sng is SNGType.WBG
    assert arch.input_sng is SNGType.MUX


def test_unknown_strategy_name():
    with pytest.raises(ConfigurationError, match="choices"):
        ArchitectureConfig.from_names(constant_rng="Sobol")


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(ConfigurationError, SynthesisError)


def test_default_module_names():
    bits = BitstreamConfig(N=16, m_input=4, m_coeff=4)
    names = ModuleNames().resolve(bits, ArchitectureConfig(), degree=3)
    assert names.input_rng == "lfsr_4_bit_added_zero"
    assert names.constant_rng == "lfsr_4_bit_added_zero"

    arch = ArchitectureConfig(constant_rng=ConstantRNG.REVERSE_COUNTER,
                              input_rng=InputRNG.SINGLE_LFSR)
    names = ModuleNames().resolve(bits, arch, degree=3)
    assert names.input_rng == "lfsr_12_bit_added_zero"
    assert names.constant_rng == "reverse_counter_4_bit"


def test_invalid_module_name():
    bits = BitstreamConfig(N=16, m_input=4, m_coeff=4)
    with pytest.raises(ConfigurationError):
        ModuleNames(wrapper="my wrapper").resolve(bits, ArchitectureConfig(), degree=2)


def test_single_lfsr_without_taps_rejected():
    arch = ArchitectureConfig(input_rng=InputRNG.SINGLE_LFSR)
    # 9 copies of an 8-bit input need a 72-bit LFSR
    with pytest.raises(ConfigurationError, match="width 72"):
        synthesize_wrapper([0.5] * 10, N=256, m_input=8, m_coeff=8, architecture=arch)
    synthesize_wrapper([0.5] * 9, N=256, m_input=8, m_coeff=8, architecture=arch)


def test_shared_module_name_needs_same_source():
    bits = BitstreamConfig(N=16, m_input=4, m_coeff=4)
    shared = ModuleNames(input_rng="rng_src", constant_rng="rng_src")
    shared.resolve(bits, ArchitectureConfig(), degree=2)
    with pytest.raises(ConfigurationError, match="rng_src"):
        shared.resolve(bits, ArchitectureConfig(constant_rng=ConstantRNG.COUNTER), degree=2)
    with pytest.raises(ConfigurationError, match="rng_src"):
        shared.resolve(bits, ArchitectureConfig(input_rng=InputRNG.SINGLE_LFSR), degree=2)
