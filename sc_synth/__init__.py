"""Verilog wrapper synthesis for stochastic Bernstein polynomial cores."""

from sc_synth.bernstein import bernstein_eval, expected_output
from sc_synth.config import (
    ArchitectureConfig, BitstreamConfig, ConstantRNG, InputRNG, ModuleNames, PolynomialSpec,
    SNGType, SynthesisRequest,
)
from sc_synth.errors import ConfigurationError, ConsistencyError, SynthesisError
from sc_synth.verilog_gen import VerilogGenerator
from sc_synth.wrapper import WrapperDesign, synthesize, synthesize_wrapper

__all__ = [
    "ArchitectureConfig", "BitstreamConfig", "ConfigurationError", "ConsistencyError",
    "ConstantRNG", "InputRNG", "ModuleNames", "PolynomialSpec", "SNGType", "SynthesisError",
    "SynthesisRequest", "VerilogGenerator", "WrapperDesign", "bernstein_eval",
    "expected_output", "synthesize", "synthesize_wrapper",
]
