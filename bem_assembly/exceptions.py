"""
Exceptions raised by the assembly engine.

Configuration and shape problems are detected before any quadrature work.
NumericalDegeneracyError signals a coincident point pair reaching a kernel,
which means a cell pair was classified with the wrong rule.
"""


class BEMAssemblyError(Exception):
    """Base class for all assembly errors."""


class ConfigurationError(BEMAssemblyError, ValueError):
    """Unsupported or inconsistent assembly configuration."""


class InvalidOperatorError(ConfigurationError):
    """A (PDE, operator) combination with no defined kernel."""


class DimensionMismatchError(BEMAssemblyError, ValueError):
    """The output container does not match the sizes of the spaces."""


class NumericalDegeneracyError(BEMAssemblyError, ArithmeticError):
    """A kernel was asked to evaluate a coincident point pair."""
