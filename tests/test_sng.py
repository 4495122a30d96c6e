import pytest

from sc_synth.config import SNGType
from sc_synth.errors import ConfigurationError
from sc_synth.netlist import Direction, Fragment, Ref, SignalGraph
from sc_synth.sng import ConversionSite, build_conversion

from netlist_eval import evaluate_name


def _network(strategy, m, literal=None):
    frag = Fragment("sng")
    r = frag.declare("r", m, direction=Direction.INPUT)
    v = frag.declare("v", m, direction=Direction.INPUT)
    out = frag.declare("out", 1, direction=Direction.OUTPUT)
    site = ConversionSite(role="x", index=0, random=r, target=Ref(out), m=m,
                          value=None if strategy is SNGType.HARDWIRE else v, literal=literal)
    build_conversion(frag, strategy, site)
    graph = SignalGraph()
    graph.merge(frag)
    graph.validate()
    return graph, r, v


def _ones(graph, r, v, m, value):
    total = 0
    for rv in range(2 ** m):
        total += evaluate_name(graph, "out", {r: rv, v: value})
    return total


@pytest.mark.parametrize("strategy", [SNGType.COMPARATOR, SNGType.MAJORITY, SNGType.WBG,
                                      SNGType.MUX])
@pytest.mark.parametrize("m", [1, 2, 3, 4, 5])
def test_network_outputs_value_ones(strategy, m):
    graph, r, v = _network(strategy, m)
    for value in range(2 ** m):
        assert _ones(graph, r, v, m, value) == value


@pytest.mark.parametrize("m", [1, 2, 3, 4, 5])
def test_hardwire_outputs_value_ones(m):
    for value in range(2 ** m):
        graph, r, v = _network(SNGType.HARDWIRE, m, literal=value)
        assert _ones(graph, r, v, m, value) == value


def test_hardwire_drops_stages_below_lowest_set_bit():
    graph, _, _ = _network(SNGType.HARDWIRE, 4, literal=0b1100)
    assert sorted(n for n in graph.names() if n.startswith("hwire")) == ["hwirex0_2"]


def test_hardwire_zero_is_constant():
    graph, _, _ = _network(SNGType.HARDWIRE, 3, literal=0)
    (node,) = graph.producers("out")
    assert node.expr.value == 0


def test_stage_names():
    graph, _, _ = _network(SNGType.MAJORITY, 3)
    assert {"majorityx0_0", "majorityx0_1"} <= set(graph.names())
    graph, _, _ = _network(SNGType.WBG, 3)
    # the bit 0 term is folded into the output
    assert {"wbgx0_2", "wbgx0_1"} <= set(graph.names())
    assert "wbgx0_0" not in graph.names()


def test_missing_value_signal():
    frag = Fragment("sng")
    r = frag.declare("r", 2)
    site = ConversionSite(role="x", index=0, random=r, target=Ref(r, bit=0), m=2)
    with pytest.raises(ConfigurationError):
        build_conversion(frag, SNGType.MUX, site)
    with pytest.raises(ConfigurationError):
        build_conversion(frag, SNGType.HARDWIRE, site)
