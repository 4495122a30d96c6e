"""
Verilog source modules instantiated by the wrapper: LFSRs with an inserted
zero state and (bit-reversed) counters.

All modules share the control interface the wrapper expects:
    enable   advance one state per clock
    restart  reload the seed (LFSR) or clear (counter)
    clk, reset

LFSR taps follow Xilinx XAPP052. The all-zero state is spliced into the
sequence right after 0...01, so an n-bit LFSR visits all 2^n states.
"""

from __future__ import annotations
from typing import List, Optional

from sc_synth.errors import ConfigurationError


# width -> tap positions (1-based, width first), Xilinx XAPP052 table 3
LFSR_TAPS = {
    2: (2, 1), 3: (3, 2), 4: (4, 3), 5: (5, 3), 6: (6, 5), 7: (7, 6), 8: (8, 6, 5, 4),
    9: (9, 5), 10: (10, 7), 11: (11, 9), 12: (12, 6, 4, 1), 13: (13, 4, 3, 1),
    14: (14, 5, 3, 1), 15: (15, 14), 16: (16, 15, 13, 4), 17: (17, 14), 18: (18, 11),
    19: (19, 6, 2, 1), 20: (20, 17), 21: (21, 19), 22: (22, 21), 23: (23, 18),
    24: (24, 23, 22, 17), 25: (25, 22), 26: (26, 6, 2, 1), 27: (27, 5, 2, 1), 28: (28, 25),
    29: (29, 27), 30: (30, 6, 4, 1), 31: (31, 28), 32: (32, 22, 2, 1), 33: (33, 20),
    34: (34, 27, 2, 1), 35: (35, 33), 36: (36, 25), 37: (37, 5, 4, 3, 2, 1), 38: (38, 6, 5, 1),
    39: (39, 35), 40: (40, 38, 21, 19), 41: (41, 38), 42: (42, 41, 20, 19),
    43: (43, 42, 38, 37), 44: (44, 43, 18, 17), 45: (45, 44, 42, 41), 46: (46, 45, 26, 25),
    47: (47, 42), 48: (48, 47, 21, 20), 49: (49, 40), 50: (50, 49, 24, 23),
    51: (51, 50, 36, 35), 52: (52, 49), 53: (53, 52, 38, 37), 54: (54, 53, 18, 17),
    55: (55, 31), 56: (56, 55, 35, 34), 57: (57, 50), 58: (58, 39), 59: (59, 58, 38, 37),
    60: (60, 59), 61: (61, 60, 46, 45), 62: (62, 61, 6, 5), 63: (63, 62), 64: (64, 63, 61, 60),
}


def lfsr_module_name(width: int) -> str:
    return f"lfsr_{width}_bit_added_zero"


def counter_module_name(width: int, reverse: bool = False) -> str:
    return f"reverse_counter_{width}_bit" if reverse else f"counter_{width}_bit"


def check_lfsr_width(width: int):
    """Raises ConfigurationError when no tap table entry exists for the width."""
    if width < 1 or (width > 1 and width not in LFSR_TAPS):
        raise ConfigurationError(
            f"No LFSR taps known for width {width} (supported: 1 to {max(LFSR_TAPS)})"
        )


def _control_ports(f: List[str]):
    f.append("    input enable,")
    f.append("    input restart,")
    f.append("    input clk,")
    f.append("    input reset")
    f.append(");")


def gen_verilog_lfsr(width: int, name: Optional[str] = None) -> str:
    """Verilog for a width-bit right-shifting LFSR with the zero state added.

    Tap t (1-based) reads data[width - t]; the feedback enters at the MSB.

    Raises:
        ConfigurationError: no tap table entry for the width
    """
    check_lfsr_width(width)
    name = name or lfsr_module_name(width)
    rng = f"[{width - 1}:0] " if width > 1 else ""

    f = [f"module {name} ( //{width}-bit LFSR visiting all {2 ** width} states",
         f"    input {rng}seed,",
         f"    output reg {rng}data,"]
    _control_ports(f)
    f.append("")

    if width == 1:
        next_value = "~data"
    else:
        taps = " ^ ".join(f"data[{width - t}]" for t in LFSR_TAPS[width])
        f.append(f"    wire xor_feedback = {taps};")
        if width == 2:
            f.append("    wire zero_detect = data[1];")
        else:
            f.append(f"    wire zero_detect = |data[{width - 1}:1];")
        # 0..01 -> 0 -> 10..0 closes the cycle through the zero state
        f.append("    wire feedback = zero_detect ? xor_feedback : ~data[0];")
        next_value = f"{{feedback, data[{width - 1}:1]}}"
    f.append("")

    f.append("    always @(posedge clk or posedge reset) begin")
    f.append("        if (reset)")
    f.append("            data <= seed;")
    f.append("        else if (restart)")
    f.append("            data <= seed;")
    f.append("        else if (enable)")
    f.append(f"            data <= {next_value};")
    f.append("    end")
    f.append("endmodule")
    return "\n".join(f) + "\n"


def gen_verilog_counter(width: int, reverse: bool = False, name: Optional[str] = None) -> str:
    """Verilog for a width-bit counter; the reverse variant outputs the bits mirrored."""
    if width < 1:
        raise ConfigurationError(f"Counter width must be positive, got {width}")
    name = name or counter_module_name(width, reverse)
    rng = f"[{width - 1}:0] " if width > 1 else ""

    f = [f"module {name} ( //{width}-bit {'bit-reversed ' if reverse else ''}counter"]
    if reverse:
        f.append(f"    output {rng}out,")
    else:
        f.append(f"    output reg {rng}out,")
    _control_ports(f)
    f.append("")

    reg = "count" if reverse else "out"
    if reverse:
        f.append(f"    reg {rng}count;")
        bits = ", ".join(f"count[{j}]" for j in range(width))
        f.append(f"    assign out = {{{bits}}};")
        f.append("")

    f.append("    always @(posedge clk or posedge reset) begin")
    f.append("        if (reset)")
    f.append(f"            {reg} <= 0;")
    f.append("        else if (restart)")
    f.append(f"            {reg} <= 0;")
    f.append("        else if (enable)")
    f.append(f"            {reg} <= {reg} + 1;")
    f.append("    end")
    f.append("endmodule")
    return "\n".join(f) + "\n"


# source kind -> generator(width, name)
SOURCE_GENERATORS = {
    "lfsr": lambda width, name: gen_verilog_lfsr(width, name=name),
    "counter": lambda width, name: gen_verilog_counter(width, False, name=name),
    "reverse_counter": lambda width, name: gen_verilog_counter(width, True, name=name),
}


def gen_source_modules(design) -> str:
    """Verilog for every distinct source module a wrapper instantiates.

    Raises:
        ConfigurationError: one module name used for sources of different
            width or kind
    """
    modules = []
    seen = {}
    for source in design.sources.sources:
        shape = (source.width, source.kind)
        if source.module in seen:
            if seen[source.module] != shape:
                raise ConfigurationError(
                    f"Module name '{source.module}' is used for a {seen[source.module][0]}-bit "
                    f"{seen[source.module][1]} and a {source.width}-bit {source.kind}"
                )
            continue
        seen[source.module] = shape
        modules.append(SOURCE_GENERATORS[source.kind](source.width, source.module))
    return "\n".join(modules)
