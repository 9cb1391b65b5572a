# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the eigensolver strategies.

Dense, Davidson and shift-invert results are compared against
numpy.linalg.eigvalsh on small random symmetric matrices.

File: tests/python/test_solver.py
"""

from __future__ import annotations

import numpy as np
import pytest
import scipy.sparse as sp

from rydpair import ConvergenceError, SolverConfig, SolverStrategy, diagonalize
from rydpair.solver import max_residual


# ============================================================================
# Helper Functions
# ============================================================================

def _random_symmetric(n: int, density: float, seed: int = 7, spread: float = 1.0) -> sp.csr_matrix:
    """Sparse symmetric matrix with a spread-out diagonal."""
    rng = np.random.default_rng(seed)
    off = sp.random(n, n, density=density, random_state=rng, format="csr")
    off = 0.05 * (off + off.T)
    diag = sp.diags(spread * np.arange(n, dtype=np.float64))
    return (off + diag).tocsr()


# ============================================================================
# Exact Paths
# ============================================================================

def test_empty_operator_gives_empty_spectrum():
    spectrum = diagonalize(sp.csr_matrix((0, 0)))
    assert len(spectrum) == 0
    assert spectrum.eigenvectors.shape == (0, 0)


def test_diagonal_operator_is_exact():
    values = np.array([3.0, -1.0, 2.5, -1.0, 0.0])
    spectrum = diagonalize(sp.diags(values, format="csr"))
    assert spectrum.strategy == "diagonal"
    assert np.array_equal(spectrum.eigenvalues, np.sort(values, kind="stable"))
    H = np.diag(values)
    assert np.array_equal(H @ spectrum.eigenvectors, spectrum.eigenvectors * spectrum.eigenvalues)


def test_diagonal_operator_with_window():
    values = np.arange(10, dtype=np.float64)
    config = SolverConfig(energy_window=(2.5, 6.0))
    spectrum = diagonalize(sp.diags(values, format="csr"), config=config)
    assert np.array_equal(spectrum.eigenvalues, [3.0, 4.0, 5.0, 6.0])


# ============================================================================
# Dense
# ============================================================================

def test_dense_matches_numpy():
    H = _random_symmetric(60, 0.1)
    spectrum = diagonalize(H, config=SolverConfig(strategy=SolverStrategy.DENSE))
    assert np.allclose(spectrum.eigenvalues, np.linalg.eigvalsh(H.toarray()))
    assert max_residual(H, spectrum.eigenvalues, spectrum.eigenvectors) < 1e-10


def test_auto_uses_dense_for_small_operators():
    H = _random_symmetric(40, 0.1)
    assert diagonalize(H).strategy == SolverStrategy.DENSE.value


def test_diagonalization_is_idempotent():
    H = _random_symmetric(50, 0.1)
    first = diagonalize(H)
    second = diagonalize(H)
    assert np.array_equal(first.eigenvalues, second.eigenvalues)
    assert np.all(np.diff(first.eigenvalues) >= 0)


def test_dense_energy_window():
    H = _random_symmetric(50, 0.1)
    reference = np.linalg.eigvalsh(H.toarray())
    window = (10.5, 20.5)
    spectrum = diagonalize(H, config=SolverConfig(strategy="dense", energy_window=window))
    expected = reference[(reference > window[0]) & (reference <= window[1])]
    assert np.allclose(spectrum.eigenvalues, expected)


def test_prune_threshold_zeroes_small_components():
    H = _random_symmetric(30, 0.2)
    spectrum = diagonalize(H, config=SolverConfig(prune_threshold=1e-3))
    vectors = spectrum.eigenvectors
    assert np.all((vectors == 0) | (np.abs(vectors) >= 1e-3))


# ============================================================================
# Iterative
# ============================================================================

def test_davidson_lowest_roots():
    H = _random_symmetric(300, 0.02)
    config = SolverConfig(strategy=SolverStrategy.DAVIDSON, n_roots=4)
    spectrum = diagonalize(H, tolerance=1e-6, config=config)
    reference = np.linalg.eigvalsh(H.toarray())[:4]
    assert spectrum.strategy == "davidson"
    assert np.allclose(spectrum.eigenvalues, reference, atol=1e-8)
    assert max_residual(H, spectrum.eigenvalues, spectrum.eigenvectors) <= 1e-6


def test_shift_invert_nearest_target():
    H = _random_symmetric(200, 0.02)
    target = 100.3
    config = SolverConfig(strategy=SolverStrategy.SHIFT_INVERT, n_roots=4, target=target)
    spectrum = diagonalize(H, tolerance=1e-8, config=config)
    reference = np.linalg.eigvalsh(H.toarray())
    nearest = np.sort(reference[np.argsort(np.abs(reference - target))[:4]])
    assert spectrum.strategy == "shift_invert"
    assert np.allclose(spectrum.eigenvalues, nearest, atol=1e-8)


def test_auto_selects_iterative_for_large_sparse():
    H = _random_symmetric(120, 0.01)
    config = SolverConfig(dense_limit=50, n_roots=3, target=60.2)
    assert diagonalize(H, config=config).strategy == "shift_invert"
    config = SolverConfig(dense_limit=50, n_roots=3)
    assert diagonalize(H, config=config).strategy == "davidson"


def test_iterative_falls_back_to_dense_when_roots_cover_matrix():
    H = _random_symmetric(5, 0.5)
    config = SolverConfig(strategy=SolverStrategy.DAVIDSON, n_roots=6)
    spectrum = diagonalize(H, config=config)
    assert spectrum.strategy == "dense"
    assert len(spectrum) == 5


def test_davidson_non_convergence_raises():
    rng = np.random.default_rng(3)
    A = rng.standard_normal((200, 200))
    H = sp.csr_matrix(A + A.T)
    config = SolverConfig(strategy=SolverStrategy.DAVIDSON, n_roots=2, max_cycle=1, max_restarts=0)
    with pytest.raises(ConvergenceError):
        diagonalize(H, tolerance=1e-12, config=config)


def _decoupled_level(n: int = 50) -> sp.csr_matrix:
    """Integer diagonal with a single coupled pair; level 10 is isolated."""
    H = sp.lil_matrix(sp.diags(np.arange(n, dtype=np.float64)))
    H[0, 1] = H[1, 0] = 0.05
    return H.tocsr()


def test_shift_invert_on_isolated_level_restarts():
    H = _decoupled_level()
    config = SolverConfig(strategy=SolverStrategy.SHIFT_INVERT, n_roots=3, target=10.0)
    spectrum = diagonalize(H, tolerance=1e-8, config=config)
    assert spectrum.strategy == "shift_invert"
    assert np.allclose(spectrum.eigenvalues, [9.0, 10.0, 11.0], atol=1e-8)


def test_shift_invert_singular_shift_raises_convergence_error():
    H = _decoupled_level()
    config = SolverConfig(
        strategy=SolverStrategy.SHIFT_INVERT, n_roots=3, target=10.0, max_restarts=0
    )
    with pytest.raises(ConvergenceError):
        diagonalize(H, tolerance=1e-8, config=config)
