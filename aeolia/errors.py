"""Errors raised by the simulation core.

Only configuration problems are fatal.  Numeric degeneracy inside a single
event invocation is caught by the dispatcher and the invocation is skipped,
so one bad event never corrupts the grid for the rest of the step.
"""

from __future__ import annotations


class AeoliaError(Exception):
    """Base class for all simulation errors."""


class ConfigurationError(AeoliaError):
    """Invalid configuration detected at startup; the simulation must not run."""


class NumericDegeneracyError(AeoliaError):
    """A non-finite quantity reached a grid mutation.

    Raised *before* any state is touched, so the caller may safely skip the
    offending event invocation.
    """


class StaleWindFieldError(AeoliaError):
    """A transport handler read a wind field synthesized for another step."""
