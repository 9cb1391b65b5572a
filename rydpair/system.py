# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Single-atom and pair systems.

A System owns its basis, operators, geometry and eigen-decomposition and
enforces the build order

    CONFIGURED → BASIS_BUILT → DIAGONAL_BUILT → INTERACTION_BUILT → DIAGONALIZED

Configuration calls validate their input before touching the System and
move it back to the last stage that is still valid (restrictions to
CONFIGURED, fields and geometry to DIAGONAL_BUILT). Reads of a stage that
has not been built raise NotReadyError. A pair system also drops stages
built from constituent bases or fields that have since changed.

File: rydpair/system.py
"""

from __future__ import annotations

import logging
import math
from enum import IntEnum
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import scipy.sparse as sp

from . import operator as ops
from .atomic.species import get_species
from .basis import Basis, Restrictions, build_pair_basis, build_single_atom_basis
from .cache import MatrixElementCache
from .config import InteractionConfig, RunConfig
from .errors import NotReadyError
from .geometry import Geometry
from .rotation import Euler, overlap
from .solver import Spectrum, diagonalize
from .state import State, StateOne

logger = logging.getLogger(__name__)

CacheLike = Union[MatrixElementCache, str, Path, None]


class Stage(IntEnum):
    CONFIGURED = 0
    BASIS_BUILT = 1
    DIAGONAL_BUILT = 2
    INTERACTION_BUILT = 3
    DIAGONALIZED = 4


# ============================================================================
# Shared Stage Machine
# ============================================================================

class _System:
    """Stage bookkeeping, restrictions and read-side queries."""

    def __init__(self, cache: MatrixElementCache, config: RunConfig):
        self.cache = cache
        self.config = config
        self._restrictions = Restrictions()
        self._stage = Stage.CONFIGURED
        self._basis: Optional[Basis] = None
        self._diagonal: Optional[sp.csr_matrix] = None
        self._interaction: Optional[sp.csr_matrix] = None
        self._spectrum: Optional[Spectrum] = None

    # -------------------------------------------------------------------------
    # Stage machine
    # -------------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        self._sync()
        return self._stage

    @property
    def restrictions(self) -> Restrictions:
        return self._restrictions

    def _require(self, stage: Stage, action: str) -> None:
        self._sync()
        if self._stage < stage:
            raise NotReadyError(
                f"Cannot {action}: {self!r} needs {stage.name}"
            )

    def _sync(self) -> None:
        """Drop stages built from inputs that have changed elsewhere."""

    def _invalidate(self, stage: Stage) -> None:
        """Drop everything built after ``stage``."""
        if self._stage <= stage:
            return
        if stage < Stage.DIAGONALIZED:
            self._spectrum = None
        if stage < Stage.INTERACTION_BUILT:
            self._interaction = None
        if stage < Stage.DIAGONAL_BUILT:
            self._diagonal = None
        if stage < Stage.BASIS_BUILT:
            self._basis = None
        self._stage = stage

    def _restrict(self, **windows) -> None:
        restrictions = self._restrictions.replace(**windows)
        self._invalidate(Stage.CONFIGURED)
        self._restrictions = restrictions

    # -------------------------------------------------------------------------
    # Restrictions
    # -------------------------------------------------------------------------

    def restrict_energy(self, e_min: float, e_max: float) -> None:
        """Energy window [GHz]; pair systems restrict the pair energy."""
        self._restrict(energy=(e_min, e_max))

    def restrict_n(self, n_min: int, n_max: int) -> None:
        self._restrict(n=(n_min, n_max))

    def restrict_l(self, l_min: int, l_max: int) -> None:
        self._restrict(l=(l_min, l_max))

    def restrict_j(self, j_min: float, j_max: float) -> None:
        self._restrict(j=(j_min, j_max))

    def restrict_m(self, m_min: float, m_max: float) -> None:
        """Magnetic number window; pair systems restrict M = m1 + m2."""
        self._restrict(m=(m_min, m_max))

    # -------------------------------------------------------------------------
    # Builds
    # -------------------------------------------------------------------------

    def build_basis(self) -> Basis:
        self._sync()
        if self._basis is None:
            self._basis = self._make_basis()
            self._stage = Stage.BASIS_BUILT
        return self._basis

    def build_hamiltonian(self) -> sp.csr_matrix:
        """Diagonal of unperturbed energies [GHz]."""
        self.build_basis()
        if self._diagonal is None:
            self._diagonal = ops.build_diagonal(self._basis)
            self._stage = Stage.DIAGONAL_BUILT
        return self._diagonal

    def build_interaction(self) -> sp.csr_matrix:
        """
        Off-diagonal couplings for the current fields and geometry [GHz].

        Raises:
            NotReadyError: Diagonal not built
            GeometryError: Inconsistent geometry
        """
        self._require(Stage.DIAGONAL_BUILT, "build the interaction")
        interaction = self._make_interaction()
        self._invalidate(Stage.DIAGONAL_BUILT)
        self._interaction = interaction
        self._stage = Stage.INTERACTION_BUILT
        logger.debug("%r: interaction with %d couplings", self, interaction.nnz)
        return interaction

    def diagonalize(self, tolerance: float = 1e-6) -> Spectrum:
        """
        Diagonalize the current Hamiltonian.

        Raises:
            NotReadyError: Hamiltonian (or a required interaction) not built
            ConvergenceError: Iterative solver failed; operators stay intact
        """
        self._require(Stage.DIAGONAL_BUILT, "diagonalize")
        if self._stage < Stage.INTERACTION_BUILT and self._has_couplings():
            raise NotReadyError("Fields or geometry are set; call build_interaction first")

        spectrum = diagonalize(self.get_hamiltonian(), tolerance, self.config.solver)
        self._spectrum = spectrum
        self._stage = Stage.DIAGONALIZED
        return spectrum

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_basis(self) -> Basis:
        self._require(Stage.BASIS_BUILT, "read the basis")
        return self._basis

    def get_hamiltonian(self) -> sp.csr_matrix:
        """Diagonal plus the interaction if built [GHz]."""
        self._require(Stage.DIAGONAL_BUILT, "read the Hamiltonian")
        if self._interaction is None:
            return self._diagonal.copy()
        return (self._diagonal + self._interaction).tocsr()

    def get_eigenvalues(self) -> np.ndarray:
        self._require(Stage.DIAGONALIZED, "read eigenvalues")
        return self._spectrum.eigenvalues

    def get_eigenvectors(self) -> np.ndarray:
        self._require(Stage.DIAGONALIZED, "read eigenvectors")
        return self._spectrum.eigenvectors

    def get_overlap(
        self,
        reference: Union[State, Sequence[State]],
        euler: Euler = (0.0, 0.0, 0.0),
    ) -> np.ndarray:
        """
        Weight of the reference state(s) in each eigenstate.

        Args:
            reference: State or list of states; ``m=None`` means any sublevel
            euler: zyz Euler angles (α, β, γ) of the frame rotation [rad]
        """
        self._require(Stage.DIAGONALIZED, "compute overlaps")
        return overlap(self._basis, self._spectrum.eigenvectors, reference, euler)

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _make_basis(self) -> Basis:
        raise NotImplementedError

    def _make_interaction(self) -> sp.csr_matrix:
        raise NotImplementedError

    def _has_couplings(self) -> bool:
        raise NotImplementedError


def _resolve_cache(cache: CacheLike, config: RunConfig) -> MatrixElementCache:
    if isinstance(cache, MatrixElementCache):
        return cache
    if cache is not None:
        return MatrixElementCache(
            cache, filename=config.cache.filename, timeout=config.cache.timeout
        )
    return MatrixElementCache.from_config(config.cache)


# ============================================================================
# Single Atom
# ============================================================================

class SystemOne(_System):
    """
    One atom of a given species in static fields along z.

    Args:
        species: Species name (e.g. "Rb")
        cache: MatrixElementCache, cache directory, or None for the
            configured cache
        config: Numerical settings (default RunConfig())

    Raises:
        InvalidStateError: Unknown species
    """

    def __init__(
        self,
        species: str,
        cache: CacheLike = None,
        config: Optional[RunConfig] = None,
    ):
        config = config or RunConfig()
        get_species(species)
        super().__init__(_resolve_cache(cache, config), config)
        self.species = species
        self.efield = 0.0
        self.bfield = 0.0

    def set_efield(self, efield: float) -> None:
        """Electric field along z [V/cm]."""
        efield = float(efield)
        if not math.isfinite(efield):
            raise ValueError(f"Electric field must be finite, got {efield}")
        self._invalidate(Stage.DIAGONAL_BUILT)
        self.efield = efield

    def set_bfield(self, bfield: float) -> None:
        """Magnetic field along z [Gauss]."""
        bfield = float(bfield)
        if not math.isfinite(bfield):
            raise ValueError(f"Magnetic field must be finite, got {bfield}")
        self._invalidate(Stage.DIAGONAL_BUILT)
        self.bfield = bfield

    def field_operator(self) -> sp.csr_matrix:
        """Stark and Zeeman couplings over the built basis [GHz]."""
        self._require(Stage.BASIS_BUILT, "build field couplings")
        return ops.build_field(self._basis, self.efield, self.bfield, self.cache)

    def _make_basis(self) -> Basis:
        seed = StateOne(self.species, 1, 0, 0.5, 0.5)
        return build_single_atom_basis(seed, self._restrictions)

    def _make_interaction(self) -> sp.csr_matrix:
        interaction = self.field_operator()
        self.cache.flush()
        return interaction

    def _has_couplings(self) -> bool:
        return self.efield != 0.0 or self.bfield != 0.0

    def __repr__(self) -> str:
        return f"SystemOne({self.species!r}, stage={self._stage.name})"


# ============================================================================
# Atom Pair
# ============================================================================

class SystemTwo(_System):
    """
    Two atoms with multipole interaction and an optional conducting surface.

    Restrictions of a SystemTwo act on pair states; the constituent bases
    come from ``system1`` and ``system2`` and are built on demand. Fields
    set on the constituents enter as H1 ⊗ 1 + 1 ⊗ H2. A new constituent
    basis drops the pair back to CONFIGURED, new constituent fields drop it
    back to DIAGONAL_BUILT.

    Args:
        system1: First atom
        system2: Second atom
        config: Numerical settings (default: those of ``system1``)
    """

    def __init__(
        self,
        system1: SystemOne,
        system2: SystemOne,
        config: Optional[RunConfig] = None,
    ):
        super().__init__(system1.cache, config or system1.config)
        self.system1 = system1
        self.system2 = system2
        self.geometry = Geometry()
        self.order_max = self.config.interaction.order_max
        # Constituent bases and fields the built stages were made from
        self._bases: tuple[Optional[Basis], Optional[Basis]] = (None, None)
        self._fields: tuple[float, ...] = self._constituent_fields()

    # -------------------------------------------------------------------------
    # Constituent tracking
    # -------------------------------------------------------------------------

    def _constituent_fields(self) -> tuple[float, ...]:
        return (
            self.system1.efield,
            self.system1.bfield,
            self.system2.efield,
            self.system2.bfield,
        )

    def _sync(self) -> None:
        if self._stage >= Stage.BASIS_BUILT and (
            self.system1._basis is not self._bases[0]
            or self.system2._basis is not self._bases[1]
        ):
            logger.info("%r: constituent basis changed, pair basis dropped", self)
            self._invalidate(Stage.CONFIGURED)
        elif self._stage > Stage.DIAGONAL_BUILT and self._constituent_fields() != self._fields:
            logger.info("%r: constituent fields changed, couplings dropped", self)
            self._invalidate(Stage.DIAGONAL_BUILT)

    # -------------------------------------------------------------------------
    # Geometry (validate, then assign)
    # -------------------------------------------------------------------------

    def _set_geometry(self, geometry: Geometry, order_max: Optional[int] = None) -> None:
        order_max = self.order_max if order_max is None else order_max
        geometry.validate(order_max)
        self._invalidate(Stage.DIAGONAL_BUILT)
        self.geometry = geometry
        self.order_max = order_max

    def set_distance(self, distance: float) -> None:
        """Interatomic distance [µm]; ``inf`` switches the interaction off."""
        self._set_geometry(self.geometry.replace(distance=float(distance)))

    def set_angle(self, angle: float) -> None:
        """Polar angle of the interatomic axis in the x-z plane [rad]."""
        self._set_geometry(self.geometry.replace(angle=float(angle)))

    def set_surface_distance(self, distance: float) -> None:
        """Height of the pair's midpoint above the surface [µm]."""
        self._set_geometry(self.geometry.replace(surface_distance=float(distance)))

    def enable_green_tensor(self, enable: bool = True) -> None:
        """Include the image-dipole term of the conducting surface."""
        self._set_geometry(self.geometry.replace(green_tensor=bool(enable)))

    def set_order(self, order_max: int) -> None:
        """Highest multipole order κ1 + κ2 + 1 (3 = dipole-dipole)."""
        InteractionConfig(order_max=order_max)
        self._set_geometry(self.geometry, int(order_max))

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def _make_basis(self) -> Basis:
        basis1 = self.system1.build_basis()
        basis2 = self.system2.build_basis()
        self._bases = (basis1, basis2)
        self._fields = self._constituent_fields()
        return build_pair_basis(basis1, basis2, self._restrictions)

    def _make_interaction(self) -> sp.csr_matrix:
        self.geometry.validate(self.order_max)
        basis1, basis2 = self._bases

        interaction = ops.build_interaction(
            basis1,
            basis2,
            self._basis,
            self.geometry,
            self.cache,
            order_max=self.order_max,
            drop_threshold=self.config.interaction.drop_threshold,
        )
        if self.system1._has_couplings() or self.system2._has_couplings():
            fields = ops.embed_single_atom(
                self.system1.field_operator(),
                self.system2.field_operator(),
                basis1,
                basis2,
                self._basis,
            )
            interaction = (interaction + fields).tocsr()
        self._fields = self._constituent_fields()
        self.cache.flush()
        return interaction

    def diagonalize(self, tolerance: float = 1e-6) -> Spectrum:
        spectrum = super().diagonalize(tolerance)
        if self._interaction is None:
            self._fields = self._constituent_fields()
        return spectrum

    def _has_couplings(self) -> bool:
        return (
            math.isfinite(self.geometry.distance)
            or self.system1._has_couplings()
            or self.system2._has_couplings()
        )

    def __repr__(self) -> str:
        return (
            f"SystemTwo({self.system1.species!r}, {self.system2.species!r}, "
            f"stage={self._stage.name})"
        )


__all__ = ["Stage", "SystemOne", "SystemTwo"]
