"""Combinational evaluation of SignalGraph assignments for tests."""

from sc_synth.netlist import (
    And, Assign, Concat, Const, Eq, Lt, Maj, Mux, Not, Or, Ref,
)


def _mask(width):
    return (1 << width) - 1


def signal_value(graph, sid, env):
    """Value of a whole signal; inputs and instance outputs must be in env."""
    if sid in env:
        return env[sid]
    width = graph.signal(sid).width
    value, found = 0, False
    for node in graph.nodes:
        if isinstance(node, Assign) and node.target.sid == sid:
            bits = node.target.bits(width)
            value |= (evaluate(node.expr, graph, env) & _mask(len(bits))) << bits.start
            found = True
    if not found:
        raise KeyError(f"no value for '{sid.name}'")
    env[sid] = value
    return value


def evaluate(expr, graph, env):
    if isinstance(expr, Ref):
        full = signal_value(graph, expr.sid, env)
        if expr.bit is not None:
            return (full >> expr.bit) & 1
        if expr.hi is not None:
            return (full >> expr.lo) & _mask(expr.hi - expr.lo + 1)
        return full
    if isinstance(expr, Const):
        return expr.value
    if isinstance(expr, Not):
        return ~evaluate(expr.operand, graph, env) & _mask(expr.width(graph))
    if isinstance(expr, And):
        result = -1
        for op in expr.operands:
            result &= evaluate(op, graph, env)
        return result & _mask(expr.width(graph))
    if isinstance(expr, Or):
        result = 0
        for op in expr.operands:
            result |= evaluate(op, graph, env)
        return result
    if isinstance(expr, Maj):
        a, b, c = (evaluate(op, graph, env) for op in expr.children())
        return (a & b) | (a & c) | (b & c)
    if isinstance(expr, Mux):
        if evaluate(expr.sel, graph, env):
            return evaluate(expr.when_high, graph, env)
        return evaluate(expr.when_low, graph, env)
    if isinstance(expr, Lt):
        return int(evaluate(expr.left, graph, env) < evaluate(expr.right, graph, env))
    if isinstance(expr, Eq):
        return int(evaluate(expr.left, graph, env) == evaluate(expr.right, graph, env))
    if isinstance(expr, Concat):
        result = 0
        for part in expr.parts:
            result = (result << part.width(graph)) | evaluate(part, graph, env)
        return result
    raise TypeError(type(expr).__name__)


def evaluate_name(graph, name, env, bit=None):
    """Evaluate a signal (or one bit of it) by flattened name."""
    sid = graph.by_name[name]
    return evaluate(Ref(sid, bit=bit), graph, env)
