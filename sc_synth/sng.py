"""
Binary-to-stochastic conversion networks.

Each network turns an m-bit binary value v and an m-bit random number r
into one stochastic bit that is 1 for exactly v of the N possible values
of r. Comparator does this with a single relational test; the other
strategies are folds over the bit positions that emit one assignment per
stage, each stage consuming the previous stage and the bits at its own
position.

References:
    B. D. Brown and H. C. Card, "Stochastic neural computation I:
    Computational elements", IEEE Trans. Computers 50(9), 2001 (majority chain)
    P. K. Gupta and R. Kumaresan, "Binary multiplication with PN sequences",
    IEEE Trans. ASSP 36, 1988 (weighted binary generator)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from sc_synth.config import SNGType
from sc_synth.errors import ConfigurationError
from sc_synth.netlist import (
    And, Const, Expr, Fragment, Lt, Maj, Mux, Not, Or, Ref, SignalId,
)


@dataclass(frozen=True)
class ConversionSite:
    """One stochastic bit to generate.

    Attributes:
        role: 'x' for input copies, 'w' for weights (prefix of stage names)
        index: Input copy or weight index
        random: m-bit random stream
        target: 1-bit destination (a bit of x_stoch / w_stoch)
        m: Bit width of value and random stream
        value: m-bit binary value signal, or None for HardWire
        literal: Value known at generation time (HardWire only)
    """
    role: str
    index: int
    random: SignalId
    target: Ref
    m: int
    value: Optional[SignalId] = None
    literal: Optional[int] = None

    def r(self, j: int) -> Ref:
        return Ref(self.random, bit=j)

    def v(self, j: int) -> Ref:
        return Ref(self.value, bit=j)


def _cascade(frag: Fragment, site: ConversionSite, stage_role: str,
             first: Callable[[int], Expr], step: Callable[[int, Expr], Expr], start: int = 0):
    """Fold from bit `start` to the MSB, one declared stage per bit below the MSB.

    Stage k is step(k, stage k-1); the MSB stage drives the target.
    """
    prev = None
    for j in range(start, site.m):
        expr = first(j) if prev is None else step(j, prev)
        if j == site.m - 1:
            frag.assign(site.target, expr)
        else:
            stage = frag.declare(stage_role, 1, index=site.index, stage=j)
            frag.assign(stage, expr)
            prev = Ref(stage)


def build_comparator(frag: Fragment, site: ConversionSite):
    """stoch = r < v"""
    frag.assign(site.target, Lt(Ref(site.random), Ref(site.value)))


def build_majority(frag: Fragment, site: ConversionSite):
    """Majority chain: c_0 = r_0 & v_0, c_j = maj(r_j, v_j, c_{j-1})."""
    _cascade(frag, site, f"majority{site.role}",
             first=lambda j: And(site.r(j), site.v(j)),
             step=lambda j, prev: Maj(site.r(j), site.v(j), prev))


def build_mux(frag: Fragment, site: ConversionSite):
    """Mux chain: c_0 = r_0 & v_0, c_j = r_j ? v_j : c_{j-1}."""
    _cascade(frag, site, f"mux{site.role}",
             first=lambda j: And(site.r(j), site.v(j)),
             step=lambda j, prev: Mux(site.r(j), site.v(j), prev))


def build_wbg(frag: Fragment, site: ConversionSite):
    """Weighted binary generator.

    Term j selects v_j when r_j is the highest set bit of r:
    t_j = r_j & ~r_{j+1} & ... & ~r_{m-1} & v_j. Terms m-1..1 are declared
    stages; the bit 0 term is folded into the final OR.
    """
    m = site.m
    terms: List[Expr] = []
    for j in range(m - 1, -1, -1):
        prefix = [site.r(j)] + [Not(site.r(k)) for k in range(j + 1, m)]
        term = And(*prefix, site.v(j))
        if j == 0:
            terms.append(term)
        else:
            stage = frag.declare(f"wbg{site.role}", 1, index=site.index, stage=j)
            frag.assign(stage, term)
            terms.append(Ref(stage))
    frag.assign(site.target, terms[0] if len(terms) == 1 else Or(*terms))


def build_hardwire(frag: Fragment, site: ConversionSite):
    """Mux chain specialised to a literal value.

    A set bit reduces r_j ? 1 : c to r_j | c, a clear bit to ~r_j & c, and
    every stage below the lowest set bit is constant 0 and dropped.
    """
    v = site.literal
    if v == 0:
        frag.assign(site.target, Const(1, 0))
        return
    lowest = (v & -v).bit_length() - 1

    def step(j, prev):
        if v >> j & 1:
            return Or(site.r(j), prev)
        return And(Not(site.r(j)), prev)

    _cascade(frag, site, f"hwire{site.role}",
             first=lambda j: site.r(j), step=step, start=lowest)


SNG_BUILDERS: Dict[SNGType, Callable[[Fragment, ConversionSite], None]] = {
    SNGType.COMPARATOR: build_comparator,
    SNGType.MAJORITY: build_majority,
    SNGType.WBG: build_wbg,
    SNGType.MUX: build_mux,
    SNGType.HARDWIRE: build_hardwire,
}


def build_conversion(frag: Fragment, strategy: SNGType, site: ConversionSite):
    """Add the conversion network for one site to `frag`.

    Raises:
        ConfigurationError: HardWire requested without a literal value
    """
    if strategy is SNGType.HARDWIRE:
        if site.literal is None:
            raise ConfigurationError("HardWire conversion needs a value known at generation time")
    elif site.value is None:
        raise ConfigurationError(f"{strategy.value} conversion needs a binary value signal")
    SNG_BUILDERS[strategy](frag, site)
