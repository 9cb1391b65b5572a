# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
End-to-end tests of SystemOne / SystemTwo.

Covers:
  - Stage machine ordering and invalidation
  - Rb 69S pair scenario with the interaction disabled
  - Validate-then-assign geometry configuration
  - Pair interaction, diagonalization and overlaps at finite distance

File: tests/python/test_system.py
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from rydpair import (
    ConvergenceError,
    GeometryError,
    MatrixElementCache,
    NotReadyError,
    RunConfig,
    SolverConfig,
    SolverStrategy,
    Stage,
    StateTwo,
    SystemOne,
    SystemTwo,
)

# ============================================================================
# Helper Functions
# ============================================================================

def _single(n: tuple[int, int], l: tuple[int, int], cache=None) -> SystemOne:
    system = SystemOne("Rb", cache)
    system.restrict_n(*n)
    system.restrict_l(*l)
    return system


def _pair(cache=None, delta: float = 30.0) -> SystemTwo:
    seed = StateTwo.from_label("Rb 60S_1/2 m=1/2")
    cache = cache if cache is not None else MatrixElementCache()
    pair = SystemTwo(_single((59, 60), (0, 1), cache), _single((59, 60), (0, 1), cache))
    pair.restrict_energy(seed.energy - delta, seed.energy + delta)
    return pair


# ============================================================================
# Stage Machine
# ============================================================================

def test_reads_before_build_raise():
    system = _single((60, 60), (0, 1))
    assert system.stage == Stage.CONFIGURED
    with pytest.raises(NotReadyError):
        system.get_basis()
    with pytest.raises(NotReadyError):
        system.get_hamiltonian()
    with pytest.raises(NotReadyError):
        system.get_eigenvalues()
    with pytest.raises(NotReadyError):
        system.build_interaction()
    with pytest.raises(NotReadyError):
        system.diagonalize()


def test_missing_windows_raise_not_ready():
    system = SystemOne("Rb")
    system.restrict_n(59, 61)
    with pytest.raises(NotReadyError):
        system.build_basis()


def test_unknown_species():
    with pytest.raises(ValueError):
        SystemOne("Xx")


def test_single_atom_pipeline_without_fields():
    system = _single((59, 61), (0, 2))
    system.build_hamiltonian()
    assert system.stage == Stage.DIAGONAL_BUILT

    system.diagonalize()
    assert system.stage == Stage.DIAGONALIZED
    assert np.array_equal(system.get_eigenvalues(), system.get_basis().energies)


def test_restriction_after_build_invalidates():
    system = _single((60, 60), (0, 1))
    system.build_hamiltonian()
    system.diagonalize()
    system.restrict_m(0.5, 0.5)
    assert system.stage == Stage.CONFIGURED
    with pytest.raises(NotReadyError):
        system.get_eigenvalues()
    assert all(s.m == 0.5 for s in system.build_basis())


def test_fields_require_interaction_build():
    system = _single((59, 61), (0, 2))
    system.build_hamiltonian()
    system.set_efield(0.5)
    with pytest.raises(NotReadyError):
        system.diagonalize()

    system.build_interaction()
    assert system.stage == Stage.INTERACTION_BUILT
    H = system.get_hamiltonian()
    assert (H - H.T).nnz == 0
    system.diagonalize()
    assert len(system.get_eigenvalues()) == len(system.get_basis())


def test_field_change_invalidates_spectrum():
    system = _single((60, 60), (0, 0))
    system.build_hamiltonian()
    system.set_bfield(5.0)
    system.build_interaction()
    system.diagonalize()
    system.set_bfield(10.0)
    assert system.stage == Stage.DIAGONAL_BUILT
    with pytest.raises(NotReadyError):
        system.get_eigenvectors()


def test_invalid_field_leaves_system_unchanged():
    system = _single((60, 60), (0, 0))
    system.build_hamiltonian()
    system.diagonalize()
    with pytest.raises(ValueError):
        system.set_efield(float("nan"))
    assert system.stage == Stage.DIAGONALIZED
    assert system.efield == 0.0


def test_cache_directory_argument(tmp_path):
    system = SystemOne("Rb", tmp_path)
    assert system.cache.persistent
    assert system.cache.path == tmp_path / RunConfig().cache.filename


# ============================================================================
# Scenarios
# ============================================================================

def test_rb69s_pair_with_interaction_disabled():
    seed = StateTwo.from_label("Rb 69S_1/2 m=1/2")
    cache = MatrixElementCache()
    system1 = _single((67, 71), (0, 2), cache)
    system2 = _single((67, 71), (0, 2), cache)

    pair = SystemTwo(system1, system2)
    pair.restrict_energy(seed.energy - 50.0, seed.energy + 50.0)
    pair.set_angle(math.pi / 2)
    pair.build_hamiltonian()
    pair.build_interaction()

    basis = pair.get_basis()
    assert seed in basis
    assert pair.get_hamiltonian().nnz == np.count_nonzero(basis.energies)

    pair.diagonalize(tolerance=1e-10)
    assert np.array_equal(pair.get_eigenvalues(), basis.energies)

    weights = pair.get_overlap(seed)
    assert weights.max() == 1.0
    assert weights.sum() == pytest.approx(1.0)


def test_surface_below_bound_raises_before_assembly():
    pair = _pair()
    pair.set_distance(6.0)
    pair.set_angle(0.0)
    pair.build_hamiltonian()

    with pytest.raises(GeometryError):
        pair.set_surface_distance(6.0 * math.cos(0.0) / 2 - 0.5)
    assert math.isinf(pair.geometry.surface_distance)
    assert pair.stage == Stage.DIAGONAL_BUILT


def test_distance_change_cannot_violate_surface_bound():
    pair = _pair()
    pair.set_surface_distance(2.0)
    pair.enable_green_tensor()
    with pytest.raises(GeometryError):
        pair.set_distance(6.0)
    assert math.isinf(pair.geometry.distance)


def test_order_requires_axis_along_z():
    pair = _pair()
    pair.set_distance(5.0)
    pair.set_angle(0.5)
    with pytest.raises(GeometryError):
        pair.set_order(4)
    assert pair.order_max == 3

    pair.set_angle(0.0)
    pair.set_order(4)
    assert pair.order_max == 4
    with pytest.raises(GeometryError):
        pair.set_angle(0.5)


def test_order_below_dipole_rejected():
    pair = _pair()
    with pytest.raises(ValueError):
        pair.set_order(2)


def test_pair_at_finite_distance():
    seed = StateTwo.from_label("Rb 60S_1/2 m=1/2")
    pair = _pair()
    pair.set_distance(5.0)
    pair.set_angle(0.4)
    pair.build_hamiltonian()
    with pytest.raises(NotReadyError):
        pair.diagonalize()

    pair.build_interaction()
    H = pair.get_hamiltonian()
    assert (H - H.T).nnz == 0
    assert H.nnz > len(pair.get_basis())

    pair.diagonalize()
    eigenvalues = pair.get_eigenvalues()
    assert np.all(np.diff(eigenvalues) >= 0)

    weights = pair.get_overlap(seed)
    assert np.all(weights <= 1.0 + 1e-12)
    assert weights.sum() == pytest.approx(1.0)

    # Any-m reference summed over sublevels and a rotated frame stay bounded
    rotated = pair.get_overlap(StateTwo.from_label("Rb 60S_1/2"), euler=(0.0, 0.4, 0.0))
    assert np.all(rotated <= 1.0 + 1e-12)


def test_geometry_change_returns_to_diagonal_stage():
    pair = _pair()
    pair.set_distance(5.0)
    pair.build_hamiltonian()
    pair.build_interaction()
    pair.diagonalize()

    pair.set_distance(7.0)
    assert pair.stage == Stage.DIAGONAL_BUILT
    with pytest.raises(NotReadyError):
        pair.get_eigenvalues()
    pair.build_interaction()
    pair.diagonalize()
    assert pair.stage == Stage.DIAGONALIZED


def test_pair_fields_enter_interaction():
    pair = _pair()
    pair.system1.set_efield(1.0)
    pair.build_hamiltonian()
    interaction = pair.build_interaction()
    assert interaction.nnz > 0


def test_interaction_uses_shared_cache(tmp_path):
    cache = MatrixElementCache(tmp_path)
    pair = _pair(cache)
    pair.set_distance(5.0)
    pair.build_hamiltonian()
    pair.build_interaction()
    assert cache.disk_size() > 0

    warm = MatrixElementCache(tmp_path)
    again = _pair(warm)
    again.set_distance(5.0)
    again.build_hamiltonian()
    again.build_interaction()
    assert warm.stats.inserts == 0
    assert warm.stats.disk_hits > 0
    cache.close()
    warm.close()


# ============================================================================
# Constituent Changes
# ============================================================================

def test_constituent_field_invalidates_pair_spectrum():
    pair = _pair()
    pair.build_hamiltonian()
    pair.diagonalize()
    before = pair.get_eigenvalues()

    pair.system1.set_efield(5.0)
    assert pair.stage == Stage.DIAGONAL_BUILT
    with pytest.raises(NotReadyError):
        pair.get_eigenvalues()
    with pytest.raises(NotReadyError):
        pair.diagonalize()

    pair.build_interaction()
    pair.diagonalize()
    assert pair.stage == Stage.DIAGONALIZED
    assert not np.array_equal(pair.get_eigenvalues(), before)


def test_constituent_field_invalidates_built_interaction():
    pair = _pair()
    pair.set_distance(5.0)
    pair.build_hamiltonian()
    pair.build_interaction()
    pair.system2.set_bfield(2.0)
    assert pair.stage == Stage.DIAGONAL_BUILT

    # Unchanged constituents keep the pair where it is
    pair.build_interaction()
    pair.diagonalize()
    assert pair.stage == Stage.DIAGONALIZED


@pytest.mark.parametrize("rebuild_constituent", [True, False])
def test_constituent_restriction_rebuilds_pair_basis(rebuild_constituent):
    pair = _pair()
    pair.set_distance(5.0)
    pair.build_hamiltonian()
    pair.build_interaction()
    pair.diagonalize()

    pair.system1.restrict_n(60, 61)
    if rebuild_constituent:
        pair.system1.build_basis()
    pair.set_distance(8.0)
    assert pair.stage == Stage.CONFIGURED
    with pytest.raises(NotReadyError):
        pair.build_interaction()

    pair.build_hamiltonian()
    pair.build_interaction()
    basis1 = pair.system1.get_basis()
    assert all(state.first in basis1 for state in pair.get_basis())
    assert all(state.first.n >= 60 for state in pair.get_basis())

    pair.diagonalize()
    assert len(pair.get_eigenvalues()) == len(pair.get_basis())


def test_convergence_error_leaves_operators_intact():
    solver = SolverConfig(
        strategy=SolverStrategy.DAVIDSON, n_roots=2, max_cycle=1, max_restarts=0
    )
    system = SystemOne("Rb", config=RunConfig(solver=solver))
    system.restrict_n(59, 61)
    system.restrict_l(0, 2)
    system.set_efield(1.0)
    system.build_hamiltonian()
    system.build_interaction()
    H = system.get_hamiltonian()

    with pytest.raises(ConvergenceError):
        system.diagonalize(tolerance=1e-16)
    assert system.stage == Stage.INTERACTION_BUILT
    assert (system.get_hamiltonian() != H).nnz == 0
    assert len(system.get_basis()) == H.shape[0]
    with pytest.raises(NotReadyError):
        system.get_eigenvalues()
