"""
Synthesis inputs: polynomial, bitstream widths and architecture choices.

Every object here is validated eagerly so that a bad request fails before
any part of the signal graph is built.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

from sc_synth.errors import ConfigurationError
from sc_synth.rng_modules import check_lfsr_width, counter_module_name, lfsr_module_name


class ConstantRNG(Enum):
    """Random source used for the Bernstein weights."""
    SHARED_LFSR = "SharedLFSR"        # one LFSR reused by every weight
    LFSR = "LFSR"                     # one LFSR per weight
    COUNTER = "Counter"               # 0, 1, ..., N-1
    REVERSE_COUNTER = "ReverseCounter"  # counter with reversed bit order


class InputRNG(Enum):
    """Random source used for the copies of the input."""
    LFSR = "LFSR"                # one LFSR per input copy
    SINGLE_LFSR = "SingleLFSR"   # one wide LFSR, one m-bit slice per copy


class SNGType(Enum):
    """Binary-to-stochastic conversion network."""
    COMPARATOR = "Comparator"
    MAJORITY = "Majority"
    WBG = "WBG"
    MUX = "Mux"
    HARDWIRE = "HardWire"   # constants only


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if member.value.lower() == str(value).lower() or member.name.lower() == str(value).lower():
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(f"Unknown {enum_cls.__name__} '{value}' (choices: {choices})")


@dataclass(frozen=True)
class PolynomialSpec:
    """Bernstein coefficients, index 0..degree, each in the unit interval."""
    coefficients: Tuple[float, ...]

    def __init__(self, coefficients: Sequence[float]):
        object.__setattr__(self, "coefficients", tuple(float(c) for c in coefficients))

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def validate(self):
        if len(self.coefficients) < 2:
            raise ConfigurationError(
                f"Need at least 2 coefficients (degree >= 1), got {len(self.coefficients)}"
            )
        bad = [(i, c) for i, c in enumerate(self.coefficients) if not 0.0 <= c <= 1.0]
        if bad:
            raise ConfigurationError(f"Coefficients outside [0, 1]: {bad}")


@dataclass(frozen=True)
class BitstreamConfig:
    """Bitstream length N and the binary precisions of inputs and weights."""
    N: int
    m_input: int
    m_coeff: int

    @property
    def m(self) -> int:
        """log2(N); only meaningful once validate() has passed."""
        return self.N.bit_length() - 1

    def validate(self):
        if not isinstance(self.N, int) or self.N < 2 or self.N & (self.N - 1):
            raise ConfigurationError(f"N must be a power of 2 (>= 2), got {self.N}")
        for name in ("m_input", "m_coeff"):
            value = getattr(self, name)
            if not isinstance(value, int) or not 1 <= value <= self.m:
                raise ConfigurationError(
                    f"{name} must be between 1 and log2(N) = {self.m}, got {value}"
                )


@dataclass(frozen=True)
class ArchitectureConfig:
    """Strategy selection for both conversion directions.

    Args:
        constant_rng: Source of random numbers for the weights
        input_rng: Source of random numbers for the inputs
        constant_sng: Conversion network for the weights
        input_sng: Conversion network for the inputs (HardWire not allowed)
        core_constant_streams: With HardWire weights, pass the weight random
            streams to the core instead of building the networks here
    """
    constant_rng: ConstantRNG = ConstantRNG.SHARED_LFSR
    input_rng: InputRNG = InputRNG.LFSR
    constant_sng: SNGType = SNGType.COMPARATOR
    input_sng: SNGType = SNGType.COMPARATOR
    core_constant_streams: bool = False

    @classmethod
    def from_names(cls, constant_rng="SharedLFSR", input_rng="LFSR",
                   constant_sng="Comparator", input_sng="Comparator",
                   core_constant_streams: bool = False) -> "ArchitectureConfig":
        """Build a config from the strategy names used on the command line."""
        return cls(
            constant_rng=_parse_enum(ConstantRNG, constant_rng),
            input_rng=_parse_enum(InputRNG, input_rng),
            constant_sng=_parse_enum(SNGType, constant_sng),
            input_sng=_parse_enum(SNGType, input_sng),
            core_constant_streams=core_constant_streams,
        )

    def validate(self):
        for name, enum_cls in (("constant_rng", ConstantRNG), ("input_rng", InputRNG),
                               ("constant_sng", SNGType), ("input_sng", SNGType)):
            if not isinstance(getattr(self, name), enum_cls):
                raise ConfigurationError(f"{name} must be a {enum_cls.__name__}")
        if self.input_sng is SNGType.HARDWIRE:
            raise ConfigurationError("HardWire conversion is only available for constants")
        if self.core_constant_streams and self.constant_sng is not SNGType.HARDWIRE:
            raise ConfigurationError("core_constant_streams requires constant_sng=HardWire")

    @property
    def shared_constant_source(self) -> bool:
        """True when one source feeds every weight."""
        return self.constant_rng is not ConstantRNG.LFSR

    def input_source_width(self, m: int, degree: int) -> int:
        """Width of one input source module."""
        return m * degree if self.input_rng is InputRNG.SINGLE_LFSR else m

    def constant_source_kind(self) -> str:
        if self.constant_rng is ConstantRNG.COUNTER:
            return "counter"
        if self.constant_rng is ConstantRNG.REVERSE_COUNTER:
            return "reverse_counter"
        return "lfsr"


@dataclass(frozen=True)
class ModuleNames:
    """Verilog module names used by the wrapper.

    Source module names default to the names produced by rng_modules.
    """
    wrapper: str = "resc_wrapper"
    core: str = "resc_core"
    input_rng: Optional[str] = None
    constant_rng: Optional[str] = None

    def resolve(self, bitstream: BitstreamConfig, arch: ArchitectureConfig,
                degree: int) -> "ModuleNames":
        """Fill in default source module names for the given widths."""
        m = bitstream.m
        input_width = arch.input_source_width(m, degree)
        input_rng = self.input_rng or lfsr_module_name(input_width)
        if self.constant_rng:
            constant_rng = self.constant_rng
        elif arch.constant_rng in (ConstantRNG.COUNTER, ConstantRNG.REVERSE_COUNTER):
            constant_rng = counter_module_name(m, reverse=arch.constant_rng is ConstantRNG.REVERSE_COUNTER)
        else:
            constant_rng = lfsr_module_name(m)
        for name in (self.wrapper, self.core, input_rng, constant_rng):
            if not name.isidentifier():
                raise ConfigurationError(f"Invalid Verilog module name '{name}'")
        if input_rng == constant_rng and (input_width, "lfsr") != (m, arch.constant_source_kind()):
            raise ConfigurationError(
                f"Module name '{input_rng}' cannot serve both the {input_width}-bit input "
                f"LFSR and the {m}-bit {arch.constant_source_kind()} weight source"
            )
        return ModuleNames(self.wrapper, self.core, input_rng, constant_rng)


@dataclass(frozen=True)
class SynthesisRequest:
    """Everything one synthesis run needs."""
    polynomial: PolynomialSpec
    bitstream: BitstreamConfig
    architecture: ArchitectureConfig = field(default_factory=ArchitectureConfig)
    names: ModuleNames = field(default_factory=ModuleNames)

    def validate(self):
        self.bitstream.validate()
        self.polynomial.validate()
        self.architecture.validate()
        # every LFSR must have a tap table entry before anything is built
        m, arch = self.bitstream.m, self.architecture
        check_lfsr_width(arch.input_source_width(m, self.polynomial.degree))
        if arch.constant_source_kind() == "lfsr":
            check_lfsr_width(m)
