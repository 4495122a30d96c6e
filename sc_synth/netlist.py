"""
Signal graph for the generated wrapper.

Builders never format signal names themselves. They declare signals with a
structured SignalId (component, role, index, stage) and describe logic as
small expression trees. The SignalGraph collects the declarations and
nodes of every builder, checks that each signal is declared before use,
driven exactly once and connected at matching widths, and only then hands
the graph to the Verilog generator, which flattens ids into names.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sc_synth.errors import ConsistencyError


class Direction(Enum):
    INPUT = "input"
    OUTPUT = "output"
    INTERNAL = "internal"


@dataclass(frozen=True)
class SignalId:
    """Structured signal identifier, flattened to a name only at emission."""
    component: str
    role: str
    index: Optional[int] = None
    stage: Optional[int] = None

    @property
    def name(self) -> str:
        name = self.role
        if self.index is not None:
            name += str(self.index)
        if self.stage is not None:
            name += f"_{self.stage}"
        return name

    def __str__(self) -> str:
        return self.name


@dataclass
class Signal:
    """A declared net or register."""
    sid: SignalId
    width: int
    direction: Direction = Direction.INTERNAL
    register: bool = False
    comment: Optional[str] = None

    @property
    def name(self) -> str:
        return self.sid.name


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class Expr:
    """Combinational expression over declared signals."""

    def refs(self) -> Iterator["Ref"]:
        for child in self.children():
            yield from child.refs()

    def children(self) -> Sequence["Expr"]:
        return ()

    def width(self, graph: "SignalGraph") -> int:
        raise NotImplementedError

    def is_atom(self) -> bool:
        return False


@dataclass(frozen=True)
class Ref(Expr):
    """Whole signal, single bit (bit=) or slice (hi=, lo=)."""
    sid: SignalId
    bit: Optional[int] = None
    hi: Optional[int] = None
    lo: Optional[int] = None

    def refs(self):
        yield self

    def bits(self, full_width: int) -> range:
        """Bit positions this reference touches."""
        if self.bit is not None:
            return range(self.bit, self.bit + 1)
        if self.hi is not None:
            return range(self.lo, self.hi + 1)
        return range(full_width)

    def width(self, graph):
        if self.bit is not None:
            return 1
        if self.hi is not None:
            return self.hi - self.lo + 1
        return graph.signal(self.sid).width

    def is_atom(self):
        return True


@dataclass(frozen=True)
class Const(Expr):
    nbits: int
    value: int

    def width(self, graph):
        return self.nbits

    def is_atom(self):
        return True


@dataclass(frozen=True)
class Not(Expr):
    operand: Expr

    def children(self):
        return (self.operand,)

    def width(self, graph):
        return self.operand.width(graph)

    def is_atom(self):
        return self.operand.is_atom()


def _same_width(graph, operands, what) -> int:
    widths = {op.width(graph) for op in operands}
    if len(widths) != 1:
        raise ConsistencyError(f"{what} operands have mismatched widths {sorted(widths)}")
    return widths.pop()


@dataclass(frozen=True)
class And(Expr):
    operands: Tuple[Expr, ...]

    def __init__(self, *operands: Expr):
        object.__setattr__(self, "operands", tuple(operands))

    def children(self):
        return self.operands

    def width(self, graph):
        return _same_width(graph, self.operands, "AND")


@dataclass(frozen=True)
class Or(Expr):
    operands: Tuple[Expr, ...]

    def __init__(self, *operands: Expr):
        object.__setattr__(self, "operands", tuple(operands))

    def children(self):
        return self.operands

    def width(self, graph):
        return _same_width(graph, self.operands, "OR")


@dataclass(frozen=True)
class Maj(Expr):
    """3-input majority: (a & b) | (a & c) | (b & c)"""
    a: Expr
    b: Expr
    c: Expr

    def children(self):
        return (self.a, self.b, self.c)

    def width(self, graph):
        if _same_width(graph, self.children(), "MAJ") != 1:
            raise ConsistencyError("MAJ operands must be single bits")
        return 1


@dataclass(frozen=True)
class Mux(Expr):
    """sel ? when_high : when_low"""
    sel: Expr
    when_high: Expr
    when_low: Expr

    def children(self):
        return (self.sel, self.when_high, self.when_low)

    def width(self, graph):
        if self.sel.width(graph) != 1:
            raise ConsistencyError("MUX select must be a single bit")
        return _same_width(graph, (self.when_high, self.when_low), "MUX")


@dataclass(frozen=True)
class Lt(Expr):
    left: Expr
    right: Expr

    def children(self):
        return (self.left, self.right)

    def width(self, graph):
        _same_width(graph, self.children(), "<")
        return 1


@dataclass(frozen=True)
class Eq(Expr):
    left: Expr
    right: Expr

    def children(self):
        return (self.left, self.right)

    def width(self, graph):
        _same_width(graph, self.children(), "==")
        return 1


@dataclass(frozen=True)
class Concat(Expr):
    """{parts[0], parts[1], ...}, parts[0] is most significant."""
    parts: Tuple[Expr, ...]

    def __init__(self, *parts: Expr):
        object.__setattr__(self, "parts", tuple(parts))

    def children(self):
        return self.parts

    def width(self, graph):
        return sum(p.width(graph) for p in self.parts)

    def is_atom(self):
        return True


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

@dataclass
class Assign:
    """Continuous assignment: the single driver of its target bits."""
    target: Ref
    expr: Expr
    component: str = ""

    def outputs(self) -> List[Ref]:
        return [self.target]

    def inputs(self) -> List[Ref]:
        return list(self.expr.refs())

    def check_widths(self, graph: "SignalGraph"):
        target_width = self.target.width(graph)
        expr_width = self.expr.width(graph)
        if target_width != expr_width:
            raise ConsistencyError(
                f"{self.component}: assignment to '{graph.render_ref(self.target)}' is "
                f"{target_width} bits wide but its expression is {expr_width} bits"
            )


@dataclass
class PortBinding:
    port: str
    width: int
    expr: Expr
    output: bool = False


@dataclass
class Instance:
    """Instance of an external module; output ports drive their signals."""
    module: str
    name: str
    ports: List[PortBinding] = field(default_factory=list)
    component: str = ""

    def outputs(self) -> List[Ref]:
        out = []
        for port in self.ports:
            if port.output:
                if not isinstance(port.expr, Ref):
                    raise ConsistencyError(
                        f"{self.component}: output port '{port.port}' of '{self.name}' "
                        f"must connect to a signal"
                    )
                out.append(port.expr)
        return out

    def inputs(self) -> List[Ref]:
        return [ref for port in self.ports if not port.output for ref in port.expr.refs()]

    def check_widths(self, graph: "SignalGraph"):
        for port in self.ports:
            width = port.expr.width(graph)
            if width != port.width:
                raise ConsistencyError(
                    f"{self.component}: port '{port.port}' of '{self.name}' is {port.width} "
                    f"bits wide but is connected to a {width}-bit expression"
                )


# ---------------------------------------------------------------------------
# Fragments and the graph
# ---------------------------------------------------------------------------

@dataclass
class Fragment:
    """Declarations and nodes contributed by one builder."""
    component: str
    title: str = ""
    signals: List[Signal] = field(default_factory=list)
    nodes: list = field(default_factory=list)

    def declare(self, role: str, width: int, index: Optional[int] = None,
                stage: Optional[int] = None, direction: Direction = Direction.INTERNAL,
                register: bool = False, comment: Optional[str] = None) -> SignalId:
        sid = SignalId(self.component, role, index, stage)
        self.signals.append(Signal(sid, width, direction, register, comment))
        return sid

    def assign(self, target, expr: Expr):
        if isinstance(target, SignalId):
            target = Ref(target)
        self.nodes.append(Assign(target, expr, self.component))

    def add(self, node):
        if not getattr(node, "component", ""):
            node.component = self.component
        self.nodes.append(node)


@dataclass
class SignalEntry:
    """Query view of one signal: width, driving nodes and reading nodes."""
    signal: Signal
    producers: list
    consumers: list

    @property
    def width(self) -> int:
        return self.signal.width


class SignalGraph:
    """All signals and nodes of one wrapper, merged builder by builder."""

    def __init__(self):
        self.signals: Dict[SignalId, Signal] = {}
        self.by_name: Dict[str, SignalId] = {}
        self.fragments: List[Fragment] = []
        self.instance_names: Dict[str, str] = {}

    @property
    def nodes(self) -> list:
        return [node for frag in self.fragments for node in frag.nodes]

    def signal(self, sid: SignalId) -> Signal:
        try:
            return self.signals[sid]
        except KeyError:
            raise ConsistencyError(f"Signal '{sid.name}' ({sid.component}) was never declared") from None

    def render_ref(self, ref: Ref) -> str:
        if ref.bit is not None:
            return f"{ref.sid.name}[{ref.bit}]"
        if ref.hi is not None:
            return f"{ref.sid.name}[{ref.hi}:{ref.lo}]"
        return ref.sid.name

    def merge(self, fragment: Fragment):
        """Add a builder's fragment.

        Raises:
            ConsistencyError: duplicate declaration or use of an undeclared signal
        """
        for sig in fragment.signals:
            if sig.width < 1:
                raise ConsistencyError(f"{fragment.component}: '{sig.name}' has width {sig.width}")
            if sig.sid in self.signals:
                raise ConsistencyError(f"{fragment.component}: '{sig.name}' declared twice")
            if sig.name in self.by_name:
                other = self.by_name[sig.name]
                raise ConsistencyError(
                    f"{fragment.component}: signal name '{sig.name}' already declared by {other.component}"
                )
            self.signals[sig.sid] = sig
            self.by_name[sig.name] = sig.sid

        for node in fragment.nodes:
            for ref in node.inputs() + node.outputs():
                if ref.sid not in self.signals:
                    raise ConsistencyError(
                        f"{fragment.component}: '{ref.sid.name}' used before declaration"
                    )
            if isinstance(node, Instance):
                if node.name in self.instance_names or node.name in self.by_name:
                    raise ConsistencyError(f"{fragment.component}: instance name '{node.name}' reused")
                self.instance_names[node.name] = fragment.component

        self.fragments.append(fragment)

    def _drivers(self) -> Dict[SignalId, Dict[int, object]]:
        drivers: Dict[SignalId, Dict[int, object]] = {sid: {} for sid in self.signals}
        for node in self.nodes:
            for ref in node.outputs():
                sig = self.signals[ref.sid]
                for bit in ref.bits(sig.width):
                    if bit in drivers[ref.sid]:
                        raise ConsistencyError(
                            f"'{self.render_ref(ref)}' has more than one driver "
                            f"({drivers[ref.sid][bit].component} and {node.component})"
                        )
                    drivers[ref.sid][bit] = node
        return drivers

    def validate(self):
        """Check ranges, widths and the single-driver rule over the whole graph.

        Raises:
            ConsistencyError: on the first violation found
        """
        for node in self.nodes:
            for ref in node.inputs() + node.outputs():
                width = self.signals[ref.sid].width
                span = ref.bits(width)
                if span.start < 0 or span.stop > width or len(span) == 0:
                    raise ConsistencyError(
                        f"{node.component}: '{self.render_ref(ref)}' is outside "
                        f"'{ref.sid.name}' [{width - 1}:0]"
                    )
            node.check_widths(self)
            for const in _constants(node):
                if const.value < 0 or const.value >= 2 ** const.nbits:
                    raise ConsistencyError(
                        f"{node.component}: constant {const.value} does not fit in {const.nbits} bits"
                    )

        drivers = self._drivers()
        for sid, sig in self.signals.items():
            driven = drivers[sid]
            if sig.direction is Direction.INPUT:
                if driven:
                    raise ConsistencyError(f"Input port '{sig.name}' is driven inside the module")
                continue
            missing = [b for b in range(sig.width) if b not in driven]
            if missing:
                raise ConsistencyError(f"'{sig.name}' has undriven bits {missing}")

    def entry(self, name: str) -> SignalEntry:
        """Width, producers and consumers of a signal, by flattened name."""
        sid = self.by_name[name]
        producers, consumers = [], []
        for node in self.nodes:
            if any(ref.sid == sid for ref in node.outputs()):
                producers.append(node)
            if any(ref.sid == sid for ref in node.inputs()):
                consumers.append(node)
        return SignalEntry(self.signals[sid], producers, consumers)

    def producers(self, name: str) -> list:
        return self.entry(name).producers

    def consumers(self, name: str) -> list:
        return self.entry(name).consumers

    def names(self) -> List[str]:
        return list(self.by_name)

    def components(self) -> Dict[str, List[str]]:
        """Signal names grouped by the component that declared them."""
        grouped: Dict[str, List[str]] = {}
        for sid in self.signals:
            grouped.setdefault(sid.component, []).append(sid.name)
        return grouped


def _constants(node) -> Iterator[Const]:
    if isinstance(node, Assign):
        roots = [node.expr]
    elif isinstance(node, Instance):
        roots = [port.expr for port in node.ports]
    else:
        roots = list(getattr(node, "expressions", lambda: [])())
    stack = list(roots)
    while stack:
        expr = stack.pop()
        if isinstance(expr, Const):
            yield expr
        stack.extend(expr.children())
