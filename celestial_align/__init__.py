"""celestial_align: lunar phase geometry and globe alignment for fixed-composition renders."""

__version__ = "0.1.0"

from celestial_align.alignment import AlignmentController, AlignmentSolver, TiltState
from celestial_align.anchor import PerspectiveCamera, ScreenAnchorProjector
from celestial_align.config import EngineConfig, RenderFrameCalibration
from celestial_align.coordinates import CoordinateMapper
from celestial_align.ephemeris import EphemerisProvider, MeeusEphemeris, SkyfieldEphemeris
from celestial_align.errors import (
    CelestialAlignError,
    DomainError,
    EphemerisUnavailable,
    NumericInstability,
)
from celestial_align.models import (
    AlignmentTarget,
    AnchorPlacement,
    CelestialVectors,
    EphemerisSample,
    ObserverLocation,
    PhaseState,
    RotationResult,
    SolveStatus,
    TimeSample,
)
from celestial_align.phase import PhaseGeometryResolver
from celestial_align.vectors import Quaternion

__all__ = [
    "AlignmentController",
    "AlignmentSolver",
    "AlignmentTarget",
    "AnchorPlacement",
    "CelestialAlignError",
    "CelestialVectors",
    "CoordinateMapper",
    "DomainError",
    "EngineConfig",
    "EphemerisProvider",
    "EphemerisSample",
    "EphemerisUnavailable",
    "MeeusEphemeris",
    "NumericInstability",
    "ObserverLocation",
    "PerspectiveCamera",
    "PhaseGeometryResolver",
    "PhaseState",
    "Quaternion",
    "RenderFrameCalibration",
    "RotationResult",
    "ScreenAnchorProjector",
    "SkyfieldEphemeris",
    "SolveStatus",
    "TiltState",
    "TimeSample",
]
