"""
Control FSM and stochastic-to-binary accumulator.

States:
    0 IDLE        finished (or reset), waiting for start
    1 INITIALIZED start seen; sources reload their seeds, counters clear.
                  Sampling begins when start falls.
    2 RUNNING     sources advance, one output bit is accumulated per cycle

The sample counter is m bits wide. The run ends on the cycle where it holds
all ones, so exactly N samples are accumulated and `done` rises on that
same clock edge. The accumulator is m + 1 bits so that N ones do not wrap;
z_bin reports it saturated to N - 1.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Tuple

from sc_synth.errors import ConsistencyError
from sc_synth.netlist import Const, Eq, Fragment, Mux, Ref, SignalId


class ControlState(IntEnum):
    IDLE = 0
    INITIALIZED = 1
    RUNNING = 2


# state -> (condition, next state when true, next state when false)
TRANSITIONS: Dict[ControlState, Tuple[str, ControlState, ControlState]] = {
    ControlState.IDLE: ("start", ControlState.INITIALIZED, ControlState.IDLE),
    ControlState.INITIALIZED: ("start", ControlState.INITIALIZED, ControlState.RUNNING),
    ControlState.RUNNING: ("terminal", ControlState.IDLE, ControlState.RUNNING),
}


def next_state(state: ControlState, start: bool, terminal: bool) -> ControlState:
    """Next-state function of the control FSM.

    Args:
        state: Current state
        start: Value of the start input
        terminal: True when the sample counter holds all ones
    """
    condition, if_true, if_false = TRANSITIONS[ControlState(state)]
    inputs = {"start": start, "terminal": terminal}
    return if_true if inputs[condition] else if_false


@dataclass
class ControlFSM:
    """Clocked state/counter/accumulator process plus the next-state logic.

    Drives cs, ns, count, acc and done; everything else it only reads.
    """
    clk: SignalId
    reset: SignalId
    start: SignalId
    z_stoch: SignalId
    init: SignalId
    running: SignalId
    cs: SignalId
    ns: SignalId
    count: SignalId
    neg_one: SignalId
    acc: SignalId
    done: SignalId
    m: int
    component: str = "fsm"

    def outputs(self) -> List[Ref]:
        return [Ref(s) for s in (self.cs, self.ns, self.count, self.acc, self.done)]

    def inputs(self) -> List[Ref]:
        return [Ref(s) for s in (self.clk, self.reset, self.start, self.z_stoch, self.init,
                                 self.running, self.neg_one, self.cs, self.ns, self.count,
                                 self.acc)]

    def expressions(self):
        return []

    def check_widths(self, graph):
        expected = {self.cs: 2, self.ns: 2, self.count: self.m, self.neg_one: self.m,
                    self.acc: self.m + 1, self.done: 1, self.start: 1, self.z_stoch: 1,
                    self.init: 1, self.running: 1, self.clk: 1, self.reset: 1}
        for sid, width in expected.items():
            actual = graph.signal(sid).width
            if actual != width:
                raise ConsistencyError(
                    f"{self.component}: '{sid.name}' is {actual} bits, control logic needs {width}"
                )


def build_control(m: int, ports: Dict[str, SignalId]) -> Fragment:
    """Build the control FSM fragment.

    Args:
        m: log2(N)
        ports: Ids of clk, reset, start, done, z_bin, z_stoch, init and running,
            all declared by the assembler
    """
    N = 2 ** m
    frag = Fragment("fsm", "Control FSM and stochastic->binary conversion")
    count = frag.declare("count", m, register=True, comment="count clock cycles")
    neg_one = frag.declare("neg_one", m)
    cs = frag.declare("cs", 2, register=True, comment="current FSM state")
    ns = frag.declare("ns", 2, register=True, comment="next FSM state")
    acc = frag.declare("acc", m + 1, register=True, comment="number of ones sampled")

    frag.assign(neg_one, Const(m, N - 1))
    frag.assign(ports["init"], Eq(Ref(cs), Const(2, int(ControlState.INITIALIZED))))
    frag.assign(ports["running"], Eq(Ref(cs), Const(2, int(ControlState.RUNNING))))
    frag.add(ControlFSM(
        clk=ports["clk"], reset=ports["reset"], start=ports["start"],
        z_stoch=ports["z_stoch"], init=ports["init"], running=ports["running"],
        cs=cs, ns=ns, count=count, neg_one=neg_one, acc=acc, done=ports["done"], m=m,
    ))
    # N ones is the only value with the top bit set; report it as N - 1
    frag.assign(ports["z_bin"], Mux(Ref(acc, bit=m), Ref(neg_one), Ref(acc, hi=m - 1, lo=0)))
    return frag
