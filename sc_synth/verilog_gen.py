"""
Verilog code generation from a validated wrapper signal graph.

Generates:
1. Structural Verilog wrapper module (DUT)
2. Testbench driving the wrapper with random inputs and printing the
   expected output next to the computed one
"""

from __future__ import annotations
import io
from typing import TYPE_CHECKING, List, Optional, TextIO, Tuple

import numpy as np

from sc_synth.bernstein import expected_output
from sc_synth.fsm import TRANSITIONS, ControlFSM, ControlState
from sc_synth.netlist import (
    And, Assign, Concat, Const, Direction, Eq, Expr, Instance, Lt, Maj, Mux, Not, Or, Ref,
)

if TYPE_CHECKING:
    from sc_synth.wrapper import WrapperDesign


HEADER = "// Generated Verilog from a stochastic Bernstein wrapper graph\n"


def render_expr(expr: Expr) -> str:
    """Render an expression without outer parentheses."""
    if isinstance(expr, Ref):
        if expr.bit is not None:
            return f"{expr.sid.name}[{expr.bit}]"
        if expr.hi is not None:
            return f"{expr.sid.name}[{expr.hi}:{expr.lo}]"
        return expr.sid.name
    if isinstance(expr, Const):
        if expr.nbits == 1:
            return f"1'b{expr.value}"
        return f"{expr.nbits}'d{expr.value}"
    if isinstance(expr, Not):
        return f"~{_wrap(expr.operand)}"
    if isinstance(expr, And):
        return " & ".join(_wrap(op) for op in expr.operands)
    if isinstance(expr, Or):
        return " | ".join(_wrap(op) for op in expr.operands)
    if isinstance(expr, Maj):
        a, b, c = (_wrap(op) for op in expr.children())
        return f"({a} & {b}) | ({a} & {c}) | ({b} & {c})"
    if isinstance(expr, Mux):
        return f"{_wrap(expr.sel)} ? {_wrap(expr.when_high)} : {_wrap(expr.when_low)}"
    if isinstance(expr, Lt):
        return f"{_wrap(expr.left)} < {_wrap(expr.right)}"
    if isinstance(expr, Eq):
        return f"{_wrap(expr.left)} == {_wrap(expr.right)}"
    if isinstance(expr, Concat):
        return "{" + ", ".join(render_expr(p) for p in expr.parts) + "}"
    raise TypeError(f"Cannot render {type(expr).__name__}")


def _wrap(expr: Expr) -> str:
    text = render_expr(expr)
    return text if expr.is_atom() else f"({text})"


def _range(width: int) -> str:
    return f"[{width - 1}:0] " if width > 1 else ""


class VerilogGenerator:
    """Generates Verilog code for a wrapper design."""

    def __init__(self, design: "WrapperDesign", testbench_name: str = None):
        """Initialize generator.

        Args:
            design: Validated wrapper design
            testbench_name: Name for the testbench module (default: "{wrapper}_test")
        """
        self.design = design
        self.graph = design.graph
        self.module_name = design.names.wrapper
        self.testbench_name = testbench_name if testbench_name else f"{self.module_name}_test"

    # ------------------------------------------------------------------
    # Wrapper module
    # ------------------------------------------------------------------

    def generate_module(self, filename: str):
        """Generate Verilog wrapper module file.

        Args:
            filename: Output .v file path
        """
        with open(filename, 'w') as f:
            self._write_module(f)

        print(f"Generated Verilog wrapper: {filename}")

    def render_module(self) -> str:
        buf = io.StringIO()
        self._write_module(buf)
        return buf.getvalue()

    def _write_module(self, f: TextIO):
        self._write_module_header(f)
        for frag in self.graph.fragments:
            self._write_declarations(f, frag)
            for node in frag.nodes:
                self._write_node(f, node)
            if frag.nodes:
                f.write("\n")
        self._write_module_footer(f)

    def _write_module_header(self, f: TextIO):
        """Write file header and module port list."""
        request = self.design.request
        arch = request.architecture
        bits = request.bitstream
        f.write(HEADER)
        f.write(f"// Bernstein coefficients: "
                f"{', '.join(repr(c) for c in request.polynomial.coefficients)}\n")
        f.write(f"// N = {bits.N}, m_input = {bits.m_input}, m_coeff = {bits.m_coeff}\n")
        f.write(f"// RNG: inputs {arch.input_rng.value}, constants {arch.constant_rng.value}\n")
        f.write(f"// SNG: inputs {arch.input_sng.value}, constants {arch.constant_sng.value}\n\n")

        ports = [s for s in self.graph.signals.values() if s.direction is not Direction.INTERNAL]
        f.write(f"module {self.module_name} ( //handles stochastic/binary conversion\n")
        for i, sig in enumerate(ports):
            kind = sig.direction.value + (" reg" if sig.register else "")
            sep = "," if i < len(ports) - 1 else ""
            comment = f" //{sig.comment}" if sig.comment else ""
            f.write(f"    {kind} {_range(sig.width)}{sig.name}{sep}{comment}\n")
        f.write(");\n\n")

    def _write_declarations(self, f: TextIO, frag):
        signals = [s for s in frag.signals if s.direction is Direction.INTERNAL]
        if frag.title and (signals or frag.nodes):
            f.write(f"    //{frag.title}\n")
        for sig in signals:
            kind = "reg" if sig.register else "wire"
            comment = f" //{sig.comment}" if sig.comment else ""
            f.write(f"    {kind} {_range(sig.width)}{sig.name};{comment}\n")
        if signals:
            f.write("\n")

    def _write_node(self, f: TextIO, node):
        if isinstance(node, Assign):
            f.write(f"    assign {render_expr(node.target)} = {render_expr(node.expr)};\n")
        elif isinstance(node, Instance):
            self._write_instance(f, node)
        elif isinstance(node, ControlFSM):
            self._write_control(f, node)
        else:
            raise TypeError(f"Cannot emit node {type(node).__name__}")

    def _write_instance(self, f: TextIO, inst: Instance):
        f.write(f"    {inst.module} {inst.name} (\n")
        for i, port in enumerate(inst.ports):
            sep = "," if i < len(inst.ports) - 1 else ""
            f.write(f"        .{port.port} ({render_expr(port.expr)}){sep}\n")
        f.write("    );\n\n")

    def _write_control(self, f: TextIO, fsm: ControlFSM):
        """Write the clocked process and the next-state logic.

        count, acc, cs and done are assigned nowhere else.
        """
        cs, ns, count, acc, done = (s.name for s in (fsm.cs, fsm.ns, fsm.count, fsm.acc, fsm.done))
        init, running, neg_one = fsm.init.name, fsm.running.name, fsm.neg_one.name

        f.write("    //Finite state machine. States:\n")
        f.write("    //0: finished, in need of resetting\n")
        f.write("    //1: initialized, start counting when start signal falls\n")
        f.write("    //2: running\n")
        f.write(f"    always @(posedge {fsm.clk.name} or posedge {fsm.reset.name}) begin\n")
        f.write(f"        if ({fsm.reset.name}) begin\n")
        f.write(f"            {cs} <= 0;\n")
        f.write(f"            {count} <= 0;\n")
        f.write(f"            {acc} <= 0;\n")
        f.write(f"            {done} <= 0;\n")
        f.write("        end else begin\n")
        f.write(f"            {cs} <= {ns};\n")
        f.write(f"            if ({init}) begin\n")
        f.write(f"                {count} <= 0;\n")
        f.write(f"                {acc} <= 0;\n")
        f.write(f"                {done} <= 0;\n")
        f.write(f"            end else if ({running}) begin\n")
        f.write(f"                if ({count} == {neg_one}) {done} <= 1;\n")
        f.write(f"                {count} <= {count} + 1;\n")
        f.write(f"                {acc} <= {acc} + {fsm.z_stoch.name};\n")
        f.write("            end\n")
        f.write("        end\n")
        f.write("    end\n\n")

        conditions = {"start": fsm.start.name, "terminal": f"{count} == {neg_one}"}
        f.write("    always @(*) begin\n")
        f.write(f"        case ({cs})\n")
        for state, (condition, if_true, if_false) in TRANSITIONS.items():
            f.write(f"            {int(state)}: if ({conditions[condition]}) {ns} = {int(if_true)}; "
                    f"else {ns} = {int(if_false)};\n")
        f.write(f"            default: {ns} = {int(ControlState.IDLE)};\n")
        f.write("        endcase\n")
        f.write("    end\n\n")

    def _write_module_footer(self, f: TextIO):
        """Write module footer."""
        f.write("endmodule\n")

    # ------------------------------------------------------------------
    # Testbench
    # ------------------------------------------------------------------

    def stimulus(self, num_tests: int = 10, seed: Optional[int] = None) -> List[Tuple[float, int, int]]:
        """Random test inputs with their expected outputs.

        Returns:
            (x, binary x on the input port, expected z_bin) per test
        """
        bits = self.design.request.bitstream
        expected = expected_output(self.design.request.polynomial.coefficients,
                                   bits.N, bits.m_input, bits.m_coeff)
        rng = np.random.default_rng(seed)
        return [(float(x), expected.quantize_input(x), expected(x)) for x in rng.random(num_tests)]

    def generate_testbench(self, filename: str, num_tests: int = 10, seed: Optional[int] = None):
        """Generate Verilog testbench with random stimulus.

        Args:
            filename: Output testbench .v file path
            num_tests: Number of random test vectors (default: 10)
            seed: Seed for the stimulus generator
        """
        with open(filename, 'w') as f:
            self._write_testbench(f, num_tests, seed)

        print(f"Generated testbench: {filename}")

    def render_testbench(self, num_tests: int = 10, seed: Optional[int] = None) -> str:
        buf = io.StringIO()
        self._write_testbench(buf, num_tests, seed)
        return buf.getvalue()

    def _write_testbench(self, f: TextIO, num_tests: int, seed: Optional[int]):
        self._write_tb_header(f)
        self._write_tb_signals(f)
        self._write_tb_instance(f)
        self._write_tb_stimulus(f, self.stimulus(num_tests, seed))
        self._write_tb_footer(f)

    def _write_tb_header(self, f: TextIO):
        f.write(HEADER)
        f.write(f"module {self.testbench_name}(); //a testbench for {self.module_name}\n")

    def _write_tb_signals(self, f: TextIO):
        bits = self.design.request.bitstream
        f.write(f"    reg {_range(bits.m_input)}x_bin; //binary value of input\n")
        f.write("    reg start;\n")
        f.write("    wire done;\n")
        f.write(f"    wire {_range(bits.m)}z_bin; //binary value of output\n")
        f.write(f"    reg {_range(bits.m)}expected_z; //expected output\n\n")
        f.write("    reg clk;\n")
        f.write("    reg reset;\n\n")

    def _write_tb_instance(self, f: TextIO):
        ports = [s.name for s in self.graph.signals.values() if s.direction is not Direction.INTERNAL]
        f.write(f"    {self.module_name} dut (\n")
        for i, name in enumerate(ports):
            sep = "," if i < len(ports) - 1 else ""
            f.write(f"        .{name} ({name}){sep}\n")
        f.write("    );\n\n")

    def _write_tb_stimulus(self, f: TextIO, vectors: List[Tuple[float, int, int]]):
        """Apply one vector per run; the done handler re-arms start.

        A run takes N cycles of a 2-unit clock, so vectors are 2N + 6 apart.
        """
        bits = self.design.request.bitstream
        N = bits.N
        f.write("    always begin\n")
        f.write("        #1 clk <= ~clk;\n")
        f.write("    end\n\n")

        f.write("    initial begin\n")
        f.write("        clk = 0;\n")
        f.write("        reset = 1;\n")
        f.write("        #5 reset = 0;\n")
        f.write("        start = 1;\n\n")
        for i, (x, x_bin, z) in enumerate(vectors):
            delay = 10 if i == 0 else 2 * N + 6
            f.write(f"        #{delay} x_bin = {bits.m_input}'d{x_bin}; // x = {x:.6f}\n")
            f.write(f"        expected_z = {bits.m}'d{z};\n")
            f.write("        start = 0;\n\n")
        f.write(f"        #{10 * N + 100} $stop;\n")
        f.write("    end\n\n")

        f.write("    always @(posedge done) begin\n")
        f.write('        $display("x: %b, z: %b, expected_z: %b", x_bin, z_bin, expected_z);\n')
        f.write("        start = 1;\n")
        f.write("    end\n")

    def _write_tb_footer(self, f: TextIO):
        """Write testbench footer."""
        f.write("endmodule\n")
