"""
Error taxonomy for wrapper synthesis.

Configuration errors are raised before any graph is built. Consistency
errors come from SignalGraph validation and always mean a builder produced
a broken netlist.
"""


class SynthesisError(Exception):
    """Base class for every failure raised by sc_synth."""


class ConfigurationError(SynthesisError, ValueError):
    """Invalid bit widths, bitstream length, coefficients or strategy pairing."""


class ConsistencyError(SynthesisError, RuntimeError):
    """Signal graph violation: duplicate, dangling, undriven or mis-sized signal."""
