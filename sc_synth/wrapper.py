"""
Wrapper assembly: quantizer, random sources, conversion networks, the
evaluation core instance and the control FSM merged into one validated
signal graph.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sc_synth.config import (
    ArchitectureConfig, BitstreamConfig, ModuleNames, PolynomialSpec, SNGType, SynthesisRequest,
)
from sc_synth.fsm import build_control
from sc_synth.netlist import (
    Concat, Const, Direction, Fragment, Instance, PortBinding, Ref, SignalGraph,
)
from sc_synth.quantizer import CoefficientKind, QuantizedCoefficient, quantize_coefficients
from sc_synth.rng import RandomSourceBuilder, RandomSources
from sc_synth.sng import ConversionSite, build_conversion
from sc_synth.verilog_gen import VerilogGenerator


@dataclass
class WrapperDesign:
    """A validated wrapper, ready for emission."""
    request: SynthesisRequest
    names: ModuleNames
    coefficients: List[QuantizedCoefficient]
    sources: RandomSources
    graph: SignalGraph

    @property
    def m(self) -> int:
        return self.request.bitstream.m

    @property
    def degree(self) -> int:
        return self.request.polynomial.degree

    def to_verilog(self) -> str:
        return VerilogGenerator(self).render_module()


class WrapperAssembler:
    """Builds and validates the signal graph of one wrapper."""

    def __init__(self, request: SynthesisRequest):
        request.validate()
        self.request = request
        self.polynomial = request.polynomial
        self.bitstream = request.bitstream
        self.arch = request.architecture
        self.m = self.bitstream.m
        self.degree = self.polynomial.degree
        self.names = request.names.resolve(self.bitstream, self.arch, self.degree)
        self.graph = SignalGraph()
        self.ids = {}

    def assemble(self) -> WrapperDesign:
        coefficients = quantize_coefficients(self.polynomial, self.bitstream)

        self.graph.merge(self._interface())
        self.graph.merge(self._weights(coefficients))
        sources = RandomSourceBuilder(
            self.bitstream.N, self.degree, self.arch,
            self.names.input_rng, self.names.constant_rng, self.ids,
        ).build(coefficients)
        self.graph.merge(sources.fragment)
        self.graph.merge(self._input_networks(sources))
        if not self.arch.core_constant_streams:
            self.graph.merge(self._constant_networks(sources, coefficients))
        self.graph.merge(self._core(sources))
        self.graph.merge(build_control(self.m, self.ids))
        self.graph.validate()

        return WrapperDesign(self.request, self.names, coefficients, sources, self.graph)

    def _interface(self) -> Fragment:
        frag = Fragment("wrapper")
        ids, m = self.ids, self.m
        ids["x_bin"] = frag.declare("x_bin", self.bitstream.m_input, direction=Direction.INPUT,
                                    comment="binary value of input")
        ids["start"] = frag.declare("start", 1, direction=Direction.INPUT,
                                    comment="signal to start counting")
        ids["done"] = frag.declare("done", 1, direction=Direction.OUTPUT, register=True,
                                   comment="signal that a number has been computed")
        ids["z_bin"] = frag.declare("z_bin", m, direction=Direction.OUTPUT,
                                    comment="binary value of output")
        ids["clk"] = frag.declare("clk", 1, direction=Direction.INPUT)
        ids["reset"] = frag.declare("reset", 1, direction=Direction.INPUT)

        ids["x_stoch"] = frag.declare("x_stoch", self.degree)
        if not self.arch.core_constant_streams:
            ids["w_stoch"] = frag.declare("w_stoch", self.degree + 1)
        ids["z_stoch"] = frag.declare("z_stoch", 1)
        ids["init"] = frag.declare("init", 1)
        ids["running"] = frag.declare("running", 1)

        # inputs narrower than m bits are aligned to the MSB
        if self.bitstream.m_input < m:
            ids["x_value"] = frag.declare("x_bin_shifted", m)
            frag.assign(ids["x_value"], Concat(Ref(ids["x_bin"]),
                                               Const(m - self.bitstream.m_input, 0)))
        else:
            ids["x_value"] = ids["x_bin"]
        return frag

    def _weights(self, coefficients: List[QuantizedCoefficient]) -> Fragment:
        frag = Fragment("weights", "the weights of the Bernstein polynomial")
        if self.arch.constant_sng is SNGType.HARDWIRE:
            return frag
        for coeff in coefficients:
            if coeff.is_constant:
                continue
            sid = frag.declare("wbin", self.m, index=coeff.index)
            frag.assign(sid, Const(self.m, coeff.threshold))
            self.ids[f"wbin{coeff.index}"] = sid
        return frag

    def _input_networks(self, sources: RandomSources) -> Fragment:
        frag = Fragment("sng_x", "binary->stochastic conversion of the input")
        for i in range(self.degree):
            site = ConversionSite(role="x", index=i, random=sources.inputs[i],
                                  target=Ref(self.ids["x_stoch"], bit=i), m=self.m,
                                  value=self.ids["x_value"])
            build_conversion(frag, self.arch.input_sng, site)
        return frag

    def _constant_networks(self, sources: RandomSources,
                           coefficients: List[QuantizedCoefficient]) -> Fragment:
        frag = Fragment("sng_w", "binary->stochastic conversion of the weights")
        for coeff in coefficients:
            target = Ref(self.ids["w_stoch"], bit=coeff.index)
            if coeff.kind is CoefficientKind.IS_ZERO:
                frag.assign(target, Const(1, 0))
            elif coeff.kind is CoefficientKind.IS_ONE:
                frag.assign(target, Const(1, 1))
            else:
                site = ConversionSite(role="w", index=coeff.index,
                                      random=sources.constants[coeff.index],
                                      target=target, m=self.m,
                                      value=self.ids.get(f"wbin{coeff.index}"),
                                      literal=coeff.threshold)
                build_conversion(frag, self.arch.constant_sng, site)
        return frag

    def _core(self, sources: RandomSources) -> Fragment:
        frag = Fragment("core", "stochastic evaluation core")
        ports = [PortBinding("x", self.degree, Ref(self.ids["x_stoch"]))]
        if not self.arch.core_constant_streams:
            ports.append(PortBinding("w", self.degree + 1, Ref(self.ids["w_stoch"])))
        elif sources.shared_constant is not None:
            ports.append(PortBinding("randw", self.m, Ref(sources.shared_constant)))
        else:
            for i, stream in sorted(sources.constants.items()):
                ports.append(PortBinding(f"randw{i}", self.m, Ref(stream)))
        ports.append(PortBinding("z", 1, Ref(self.ids["z_stoch"]), output=True))
        frag.add(Instance(self.names.core, "core", ports))
        return frag


def synthesize(request: SynthesisRequest) -> WrapperDesign:
    """Build the wrapper for a request.

    Raises:
        ConfigurationError: invalid request; nothing is built
        ConsistencyError: a builder produced an inconsistent graph
    """
    return WrapperAssembler(request).assemble()


def synthesize_wrapper(coefficients: Sequence[float], N: int, m_input: int, m_coeff: int,
                       architecture: Optional[ArchitectureConfig] = None,
                       names: Optional[ModuleNames] = None) -> WrapperDesign:
    """Convenience entry point taking the raw parameters.

    Args:
        coefficients: Bernstein coefficients, each in [0, 1]
        N: Bitstream length, a power of 2
        m_input: Bits of the binary input, at most log2(N)
        m_coeff: Bits of the binary weights, at most log2(N)
        architecture: Strategy selection (defaults: SharedLFSR, LFSR, Comparator, Comparator)
        names: Verilog module names
    """
    request = SynthesisRequest(
        polynomial=PolynomialSpec(coefficients),
        bitstream=BitstreamConfig(N=N, m_input=m_input, m_coeff=m_coeff),
        architecture=architecture or ArchitectureConfig(),
        names=names or ModuleNames(),
    )
    return synthesize(request)
