#!/usr/bin/env python3
"""
Synthesis script for the stochastic Bernstein wrapper.

Generates three files with a common prefix:
  - <prefix>_wrapper.v : Wrapper around the stochastic core (DUT)
  - <prefix>_rng.v     : LFSR / counter modules instantiated by the wrapper
  - <prefix>_test.v    : Testbench with random inputs and expected outputs
"""

import argparse
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sc_synth.config import ArchitectureConfig, ModuleNames
from sc_synth.errors import SynthesisError
from sc_synth.rng_modules import gen_source_modules
from sc_synth.verilog_gen import VerilogGenerator
from sc_synth.wrapper import synthesize_wrapper


def synthesize(coefficients, N, m_input, m_coeff, prefix, architecture=None, names=None,
               num_tests=10, seed=None):
    """
    Build the wrapper and write the wrapper, source and testbench files.

    Args:
        coefficients: Bernstein coefficients in [0, 1]
        N: Bitstream length (power of 2)
        m_input: Bits of the binary input
        m_coeff: Bits of the binary weights
        prefix: Output path prefix
        architecture: ArchitectureConfig (default strategies if None)
        names: ModuleNames (defaults if None)
        num_tests: Number of random test vectors
        seed: Seed for the test vectors

    Returns:
        Paths of the generated files
    """
    print("=" * 70)
    print("Stochastic Bernstein Wrapper Synthesis")
    print("=" * 70)
    print()

    print(f"  Coefficients: {', '.join(str(c) for c in coefficients)}")
    print(f"  Degree:       {len(coefficients) - 1}")
    print(f"  N = {N}, m_input = {m_input}, m_coeff = {m_coeff}")
    print()

    design = synthesize_wrapper(coefficients, N, m_input, m_coeff, architecture, names)
    arch = design.request.architecture
    print(f"  RNG: inputs {arch.input_rng.value}, constants {arch.constant_rng.value}")
    print(f"  SNG: inputs {arch.input_sng.value}, constants {arch.constant_sng.value}")
    print(f"  Signals: {len(design.graph.signals)}, sources: {len(design.sources.sources)}")
    print()

    print("Generating output files...")
    wrapper_file = f"{prefix}_wrapper.v"
    rng_file = f"{prefix}_rng.v"
    tb_file = f"{prefix}_test.v"

    # nothing is written until all three files have rendered
    vgen = VerilogGenerator(design)
    outputs = [
        (wrapper_file, vgen.render_module(), "Wrapper:  "),
        (rng_file, gen_source_modules(design), "Sources:  "),
        (tb_file, vgen.render_testbench(num_tests, seed), "Testbench:"),
    ]

    for filename, text, label in outputs:
        with open(filename, 'w') as f:
            f.write(text)
        print(f"  ✓ {label} {filename}")
    print(f"  Random tests: {num_tests}")
    print()

    print("=" * 70)
    print("Synthesis Complete!")
    print("=" * 70)
    print()
    print(f"The core module '{design.names.core}' is not generated and must be supplied.")
    print()
    return wrapper_file, rng_file, tb_file


def build_parser():
    parser = argparse.ArgumentParser(
        description="Generate a Verilog wrapper for a stochastic Bernstein polynomial core")
    parser.add_argument("coefficients", type=float, nargs="+",
                        help="Bernstein coefficients b_0 .. b_n, each in [0, 1]")
    parser.add_argument("-N", type=int, default=256, help="bitstream length (power of 2)")
    parser.add_argument("--m-input", type=int, default=None,
                        help="bits of the binary input (default: log2(N))")
    parser.add_argument("--m-coeff", type=int, default=None,
                        help="bits of the binary weights (default: log2(N))")
    parser.add_argument("--constant-rng", default="SharedLFSR",
                        help="SharedLFSR, LFSR, Counter or ReverseCounter")
    parser.add_argument("--input-rng", default="LFSR", help="LFSR or SingleLFSR")
    parser.add_argument("--constant-sng", default="Comparator",
                        help="Comparator, Majority, WBG, Mux or HardWire")
    parser.add_argument("--input-sng", default="Comparator",
                        help="Comparator, Majority, WBG or Mux")
    parser.add_argument("--core-constant-streams", action="store_true",
                        help="with HardWire weights, pass the weight random streams to the core")
    parser.add_argument("--wrapper-name", default="resc_wrapper")
    parser.add_argument("--core-name", default="resc_core")
    parser.add_argument("-o", "--prefix", default="resc", help="output file prefix")
    parser.add_argument("--tests", type=int, default=10, help="number of random test vectors")
    parser.add_argument("--seed", type=int, default=None, help="seed for the test vectors")
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    m = args.N.bit_length() - 1 if args.N > 0 else 0
    m_input = args.m_input if args.m_input is not None else m
    m_coeff = args.m_coeff if args.m_coeff is not None else m

    try:
        architecture = ArchitectureConfig.from_names(
            args.constant_rng, args.input_rng, args.constant_sng, args.input_sng,
            core_constant_streams=args.core_constant_streams)
        names = ModuleNames(wrapper=args.wrapper_name, core=args.core_name)
        synthesize(args.coefficients, args.N, m_input, m_coeff, args.prefix,
                   architecture, names, args.tests, args.seed)
    except SynthesisError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
