import importlib.util
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from sc_synth.config import ArchitectureConfig, ConstantRNG
from sc_synth.errors import ConfigurationError
from sc_synth.netlist import SignalId
from sc_synth.rng import SourceInfo
from sc_synth.rng_modules import (
    LFSR_TAPS, gen_source_modules, gen_verilog_counter, gen_verilog_lfsr,
)
from sc_synth.verilog_gen import VerilogGenerator
from sc_synth.wrapper import synthesize_wrapper


def _load_script():
    root = Path(__file__).resolve().parents[1]
    spec = importlib.util.spec_from_file_location("_synthesize_script", root / "script" / "synthesize.py")
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def _lfsr_step(data, width):
    """Model of the generated LFSR: right shift, feedback into the MSB."""
    if width == 1:
        return data ^ 1
    xor = 0
    for t in LFSR_TAPS[width]:
        xor ^= data >> (width - t) & 1
    feedback = xor if data >> 1 else (~data & 1)
    return (feedback << (width - 1)) | (data >> 1)


@pytest.mark.parametrize("width", range(1, 13))
def test_lfsr_visits_every_state(width):
    seen = set()
    data = 1
    for _ in range(2 ** width):
        seen.add(data)
        data = _lfsr_step(data, width)
    assert data == 1
    assert len(seen) == 2 ** width


def test_lfsr_text():
    text = gen_verilog_lfsr(4)
    assert text.startswith("module lfsr_4_bit_added_zero (")
    assert "input [3:0] seed," in text
    assert "output reg [3:0] data," in text
    assert "wire xor_feedback = data[0] ^ data[1];" in text
    assert "wire zero_detect = |data[3:1];" in text
    assert "data <= {feedback, data[3:1]};" in text
    assert "data <= seed;" in text
    assert text.rstrip().endswith("endmodule")


def test_lfsr_width_limits():
    assert "data <= ~data;" in gen_verilog_lfsr(1)
    assert "module lfsr_64_bit_added_zero" in gen_verilog_lfsr(64)
    with pytest.raises(ConfigurationError):
        gen_verilog_lfsr(65)


def test_counter_text():
    text = gen_verilog_counter(3)
    assert text.startswith("module counter_3_bit (")
    assert "out <= out + 1;" in text
    reverse = gen_verilog_counter(3, reverse=True)
    assert reverse.startswith("module reverse_counter_3_bit (")
    assert "assign out = {count[0], count[1], count[2]};" in reverse
    assert "count <= count + 1;" in reverse


def test_source_modules_are_deduplicated():
    design = synthesize_wrapper([0.2, 0.4, 0.6], N=16, m_input=4, m_coeff=4)
    text = gen_source_modules(design)
    assert text.count("endmodule") == 1
    assert "module lfsr_4_bit_added_zero" in text

    arch = ArchitectureConfig(constant_rng=ConstantRNG.COUNTER)
    design = synthesize_wrapper([0.2, 0.4, 0.6], N=16, m_input=4, m_coeff=4, architecture=arch)
    text = gen_source_modules(design)
    assert text.count("endmodule") == 2
    assert "module counter_4_bit" in text


def test_testbench_expected_values():
    design = synthesize_wrapper([0, 0.5, 1], N=16, m_input=2, m_coeff=4)
    vgen = VerilogGenerator(design)
    vectors = vgen.stimulus(num_tests=5, seed=3)
    assert vectors == vgen.stimulus(num_tests=5, seed=3)
    text = vgen.render_testbench(num_tests=5, seed=3)
    assert "module resc_wrapper_test();" in text
    assert "resc_wrapper dut (" in text
    for x, x_bin, z in vectors:
        assert 0 <= x_bin <= 3 and 0 <= z <= 15
        assert f"x_bin = 2'd{x_bin}; // x = {x:.6f}" in text
        assert f"expected_z = 4'd{z};" in text
    assert text.count("#38 x_bin") == 4
    assert "#260 $stop;" in text


def test_generate_files(tmp_path, capsys):
    design = synthesize_wrapper([0.3, 0.6], N=8, m_input=3, m_coeff=3)
    vgen = VerilogGenerator(design, testbench_name="tb")
    vgen.generate_module(str(tmp_path / "w.v"))
    vgen.generate_testbench(str(tmp_path / "t.v"), num_tests=2, seed=0)
    assert (tmp_path / "w.v").read_text() == design.to_verilog()
    assert "module tb();" in (tmp_path / "t.v").read_text()
    assert "Generated Verilog wrapper" in capsys.readouterr().out


def test_cli_writes_three_files(tmp_path, capsys):
    script = _load_script()
    prefix = tmp_path / "poly"
    script.main(["0", "0.5", "1", "-N", "16", "--m-input", "2", "--m-coeff", "4",
                 "--constant-sng", "mux", "-o", str(prefix), "--seed", "1"])
    for suffix in ("_wrapper.v", "_rng.v", "_test.v"):
        assert Path(f"{prefix}{suffix}").exists()
    assert "Synthesis Complete!" in capsys.readouterr().out


def test_cli_reports_configuration_errors(tmp_path, capsys):
    script = _load_script()
    with pytest.raises(SystemExit) as exc:
        script.main(["0.5", "0.5", "-N", "10", "-o", str(tmp_path / "bad")])
    assert exc.value.code == 1
    assert "Error: N must be a power of 2" in capsys.readouterr().out
    assert not (tmp_path / "bad_wrapper.v").exists()


def test_source_module_name_clash():
    data = SignalId("rng", "randx")
    clash = SimpleNamespace(sources=SimpleNamespace(sources=[
        SourceInfo("rand_gen_x_0", "src", data, 4, 1, "lfsr"),
        SourceInfo("rand_gen_w", "src", data, 4, None, "counter"),
    ]))
    with pytest.raises(ConfigurationError, match="'src'"):
        gen_source_modules(clash)


def test_source_modules_per_kind():
    arch = ArchitectureConfig(constant_rng=ConstantRNG.REVERSE_COUNTER)
    design = synthesize_wrapper([0.2, 0.4], N=16, m_input=4, m_coeff=4, architecture=arch)
    text = gen_source_modules(design)
    assert "module lfsr_4_bit_added_zero" in text
    assert "module reverse_counter_4_bit" in text
    assert "assign out = {count[0], count[1], count[2], count[3]};" in text


def test_cli_leaves_no_files_on_error(tmp_path, capsys):
    script = _load_script()
    with pytest.raises(SystemExit) as exc:
        script.main(["0.5"] * 10 + ["-N", "256", "--input-rng", "SingleLFSR",
                                    "-o", str(tmp_path / "p")])
    assert exc.value.code == 1
    assert "Error: No LFSR taps known for width 72" in capsys.readouterr().out
    assert list(tmp_path.iterdir()) == []
