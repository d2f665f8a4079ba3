"""Error taxonomy for the alignment engine.

None of these reach rendering code: frame-path operations catch them and
return a best-effort result carrying a status flag instead.
"""

from __future__ import annotations


class CelestialAlignError(Exception):
    """Base class for engine errors."""


class DomainError(CelestialAlignError):
    """Degenerate geometric input (zero-length vector, pole singularity)."""


class EphemerisUnavailable(CelestialAlignError):
    """The ephemeris provider failed to produce a sample."""


class NumericInstability(CelestialAlignError):
    """NaN or infinity detected while solving a rotation."""
