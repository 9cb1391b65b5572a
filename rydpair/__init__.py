# file: rydpair/__init__.py

"""
RydPair: Rydberg one- and two-atom interaction spectra.
Basis construction, cached matrix elements, pair interaction assembly and
diagonalization over large filtered bases of atomic states.
"""

from .basis import Basis, Restrictions, build_pair_basis, build_single_atom_basis
from .cache import CacheKey, ElementKind, MatrixElementCache
from .config import (
    CacheConfig,
    InteractionConfig,
    RunConfig,
    SolverConfig,
    SolverStrategy,
)
from .errors import (
    CacheIOError,
    ConvergenceError,
    GeometryError,
    InvalidStateError,
    NotReadyError,
    RydPairError,
)
from .geometry import Geometry
from .solver import Spectrum, diagonalize
from .state import StateOne, StateTwo
from .system import Stage, SystemOne, SystemTwo
from .utils import get_logger, setup_logging

from . import atomic

__version__ = "0.1.0"

__all__ = [
    "Basis",
    "Restrictions",
    "build_single_atom_basis",
    "build_pair_basis",
    "CacheKey",
    "ElementKind",
    "MatrixElementCache",
    "CacheConfig",
    "InteractionConfig",
    "RunConfig",
    "SolverConfig",
    "SolverStrategy",
    "RydPairError",
    "InvalidStateError",
    "GeometryError",
    "NotReadyError",
    "ConvergenceError",
    "CacheIOError",
    "Geometry",
    "Spectrum",
    "diagonalize",
    "StateOne",
    "StateTwo",
    "Stage",
    "SystemOne",
    "SystemTwo",
    "get_logger",
    "setup_logging",
]
