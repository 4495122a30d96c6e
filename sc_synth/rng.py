"""
Random source builder.

Creates the pseudo-random (or counting) number sources that feed the
conversion networks. Every source is gated by the control FSM: `enable` is
the running flag and `restart` reloads the seed while initialized.

Seeds of sibling LFSRs are spread evenly over the seed space so that the
streams multiplied together inside the core stay uncorrelated.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sc_synth.config import ArchitectureConfig, ConstantRNG, InputRNG
from sc_synth.netlist import Const, Fragment, Instance, PortBinding, Ref, SignalId
from sc_synth.quantizer import QuantizedCoefficient, round_half_up


@dataclass(frozen=True)
class SourceInfo:
    """Metadata of one source instance."""
    instance: str
    module: str
    data: SignalId
    width: int
    seed: Optional[int]   # None for counters
    kind: str = "lfsr"    # key of rng_modules.SOURCE_GENERATORS


@dataclass
class RandomSources:
    """Result of the random source builder.

    Attributes:
        fragment: Declarations, source instances and slice/alias assignments
        inputs: Input copy index -> m-bit random stream
        constants: Weight index -> m-bit random stream (generic weights only)
        shared_constant: The single weight source when one source feeds all
        sources: One entry per instantiated source module
    """
    fragment: Fragment
    inputs: Dict[int, SignalId] = field(default_factory=dict)
    constants: Dict[int, SignalId] = field(default_factory=dict)
    shared_constant: Optional[SignalId] = None
    sources: List[SourceInfo] = field(default_factory=list)


def input_seed(i: int, N: int, degree: int) -> int:
    """Seed of the i-th input LFSR: round(N * i / (2 * degree + 1))"""
    return int(round_half_up(N * i / (2 * degree + 1)))


def constant_seed(i: int, N: int, degree: int) -> int:
    """Seed of the i-th weight LFSR: round(N * (i + degree) / (2 * degree + 1))"""
    return int(round_half_up(N * (i + degree) / (2 * degree + 1)))


def shared_seed(N: int) -> int:
    """Seed of the shared weight LFSR: round(2N / 3)"""
    return int(round_half_up(N * 2 / 3))


class RandomSourceBuilder:
    """Builds the input and weight random sources for one wrapper.

    Args:
        N: Bitstream length
        degree: Polynomial degree (number of input copies)
        arch: Validated architecture configuration
        input_module: Module name of the input sources
        constant_module: Module name of the weight sources
        ctrl: Ids of clk, reset, running and init
    """

    def __init__(self, N: int, degree: int, arch: ArchitectureConfig,
                 input_module: str, constant_module: str, ctrl: Dict[str, SignalId]):
        self.N = N
        self.m = N.bit_length() - 1
        self.degree = degree
        self.arch = arch
        self.input_module = input_module
        self.constant_module = constant_module
        self.ctrl = ctrl

    def build(self, coefficients: List[QuantizedCoefficient]) -> RandomSources:
        result = RandomSources(Fragment("rng", "RNGs for binary->stochastic conversion"))
        _INPUT_SOURCE_BUILDERS[self.arch.input_rng](self, result)
        generic = [c.index for c in coefficients if not c.is_constant]
        if generic:
            builder = _CONSTANT_SOURCE_BUILDERS[self.arch.constant_rng]
            builder(self, result, generic)
        return result

    def _instance(self, result: RandomSources, module: str, name: str, data: SignalId,
                  width: int, seed: Optional[int], kind: str = "lfsr"):
        ports = []
        if seed is None:
            ports.append(PortBinding("out", width, Ref(data), output=True))
        else:
            ports.append(PortBinding("seed", width, Const(width, seed)))
            ports.append(PortBinding("data", width, Ref(data), output=True))
        ports += [
            PortBinding("enable", 1, Ref(self.ctrl["running"])),
            PortBinding("restart", 1, Ref(self.ctrl["init"])),
            PortBinding("clk", 1, Ref(self.ctrl["clk"])),
            PortBinding("reset", 1, Ref(self.ctrl["reset"])),
        ]
        result.fragment.add(Instance(module, name, ports))
        result.sources.append(SourceInfo(name, module, data, width, seed, kind))

    # -- inputs -------------------------------------------------------------

    def _per_input_lfsr(self, result: RandomSources):
        frag, m = result.fragment, self.m
        for i in range(self.degree):
            data = frag.declare("randx", m, index=i)
            self._instance(result, self.input_module, f"rand_gen_x_{i}", data, m,
                           input_seed(i, self.N, self.degree))
            result.inputs[i] = data

    def _single_input_lfsr(self, result: RandomSources):
        frag, m = result.fragment, self.m
        width = m * self.degree
        wide = frag.declare("randx", width)
        self._instance(result, self.input_module, "rand_gen_x", wide, width, 1)
        for i in range(self.degree):
            data = frag.declare("randx", m, index=i)
            frag.assign(data, Ref(wide, hi=(i + 1) * m - 1, lo=i * m))
            result.inputs[i] = data

    # -- weights ------------------------------------------------------------

    def _per_weight_lfsr(self, result: RandomSources, generic: List[int]):
        for i in generic:
            data = result.fragment.declare("randw", self.m, index=i)
            self._instance(result, self.constant_module, f"rand_gen_w_{i}", data, self.m,
                           constant_seed(i, self.N, self.degree))
            result.constants[i] = data

    def _shared_source(self, result: RandomSources, generic: List[int]):
        frag = result.fragment
        shared = frag.declare("randw", self.m)
        rng = self.arch.constant_rng
        seed = shared_seed(self.N) if rng is ConstantRNG.SHARED_LFSR else None
        self._instance(result, self.constant_module, "rand_gen_w", shared, self.m, seed,
                       self.arch.constant_source_kind())
        result.shared_constant = shared
        for i in generic:
            alias = frag.declare("randw", self.m, index=i)
            frag.assign(alias, Ref(shared))
            result.constants[i] = alias


_INPUT_SOURCE_BUILDERS = {
    InputRNG.LFSR: RandomSourceBuilder._per_input_lfsr,
    InputRNG.SINGLE_LFSR: RandomSourceBuilder._single_input_lfsr,
}

_CONSTANT_SOURCE_BUILDERS = {
    ConstantRNG.LFSR: RandomSourceBuilder._per_weight_lfsr,
    ConstantRNG.SHARED_LFSR: RandomSourceBuilder._shared_source,
    ConstantRNG.COUNTER: RandomSourceBuilder._shared_source,
    ConstantRNG.REVERSE_COUNTER: RandomSourceBuilder._shared_source,
}
