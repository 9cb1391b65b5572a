# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Eigensolvers for real symmetric sparse operators.

Strategies:
  - dense        : scipy.linalg.eigh, optionally restricted to an energy window
  - davidson     : pyscf Davidson with diagonal preconditioner, lowest roots
  - shift_invert : ARPACK eigsh with sigma, roots nearest a target energy
  - auto         : dense for small or dense matrices, iterative otherwise

Operators without off-diagonal couplings are returned exactly.

File: rydpair/solver.py
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import scipy.sparse as sp
from pyscf import lib
from scipy.linalg import eigh
from scipy.sparse.linalg import ArpackNoConvergence, eigsh

from .config import SolverConfig, SolverStrategy
from .errors import ConvergenceError
from .operator import is_diagonal

logger = logging.getLogger(__name__)

_SIGMA_NUDGE = 1e-6


@dataclass(frozen=True)
class Spectrum:
    """
    Ascending eigenvalues [GHz] and eigenvectors as columns in basis order.
    """
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    strategy: str = SolverStrategy.DENSE.value

    def __len__(self) -> int:
        return int(self.eigenvalues.size)

    @classmethod
    def empty(cls, dim: int = 0) -> Spectrum:
        return cls(np.zeros(0), np.zeros((dim, 0)), "empty")


# ============================================================================
# Helpers
# ============================================================================

def _sorted(eigenvalues: np.ndarray, eigenvectors: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    order = np.argsort(eigenvalues, kind="stable")
    return eigenvalues[order], eigenvectors[:, order]


def max_residual(operator: sp.spmatrix, eigenvalues: np.ndarray, eigenvectors: np.ndarray) -> float:
    """max_k ‖H v_k − λ_k v_k‖ for normalized columns v_k."""
    if eigenvalues.size == 0:
        return 0.0
    residual = operator @ eigenvectors - eigenvectors * eigenvalues[None, :]
    return float(np.max(np.linalg.norm(residual, axis=0)))


def _select_strategy(operator: sp.csr_matrix, config: SolverConfig) -> SolverStrategy:
    if config.strategy != SolverStrategy.AUTO:
        return config.strategy

    n = operator.shape[0]
    density = operator.nnz / (n * n) if n > 0 else 0.0
    # Dense solver for small or dense matrices
    if n < config.dense_limit or density > config.density_limit:
        return SolverStrategy.DENSE
    if config.target is not None:
        return SolverStrategy.SHIFT_INVERT
    return SolverStrategy.DAVIDSON


# ============================================================================
# Strategies
# ============================================================================

def _solve_diagonal(operator: sp.csr_matrix, config: SolverConfig) -> tuple[np.ndarray, np.ndarray]:
    """Sorted diagonal and permutation eigenvectors."""
    diag = operator.diagonal().astype(np.float64)
    order = np.argsort(diag, kind="stable")
    if config.energy_window is not None:
        lo, hi = config.energy_window
        order = order[(diag[order] > lo) & (diag[order] <= hi)]
    vectors = np.zeros((diag.size, order.size))
    vectors[order, np.arange(order.size)] = 1.0
    return diag[order], vectors


def _solve_dense(operator: sp.csr_matrix, config: SolverConfig) -> tuple[np.ndarray, np.ndarray]:
    H = operator.toarray()
    if config.energy_window is not None:
        return eigh(H, subset_by_value=tuple(config.energy_window))
    return eigh(H)


def _solve_davidson(
    operator: sp.csr_matrix, tolerance: float, config: SolverConfig
) -> tuple[np.ndarray, np.ndarray]:
    """Davidson diagonalization for the lowest roots with diagonal preconditioner."""
    n = operator.shape[0]
    nroots = min(config.n_roots, n)
    diag = operator.diagonal()

    # Initial guess: unit vectors on the lowest diagonal elements
    x0 = []
    for i in np.argsort(diag, kind="stable")[:nroots]:
        v = np.zeros(n)
        v[i] = 1.0
        x0.append(v)

    def precond(r, e, x0):
        shift = diag - e
        shift[np.abs(shift) < 1e-8] = 1e-8
        return r / shift

    for attempt in range(config.max_restarts + 1):
        e, x = lib.linalg_helper.davidson(
            lambda v: operator @ v,
            x0,
            precond,
            nroots=nroots,
            max_cycle=config.max_cycle * (attempt + 1),
            max_space=12 + 4 * attempt + nroots,
            tol=tolerance**2,
            verbose=0,
        )
        e = np.atleast_1d(e)
        vectors = np.asarray(x).reshape(e.size, n).T
        residual = max_residual(operator, e, vectors)
        if residual <= tolerance:
            return e, vectors

        logger.warning(
            "Davidson attempt %d: residual %.2e above tolerance %.2e, restarting",
            attempt + 1, residual, tolerance,
        )
        x0 = list(vectors.T)

    raise ConvergenceError(
        f"Davidson did not converge within {config.max_restarts} restarts "
        f"(residual {residual:.2e} > {tolerance:.2e})"
    )


def _solve_shift_invert(
    operator: sp.csr_matrix, tolerance: float, config: SolverConfig
) -> tuple[np.ndarray, np.ndarray]:
    """Eigenpairs nearest ``config.target`` by shift-invert Lanczos."""
    n = operator.shape[0]
    k = min(config.n_roots, n - 1)
    target = config.target if config.target is not None else float(np.median(operator.diagonal()))
    # Restarts move the shift off eigenvalues that make A - σI singular
    nudge = _SIGMA_NUDGE * max(1.0, abs(target))
    # Deterministic start vector
    v0 = np.random.default_rng(0).standard_normal(n)
    A = operator.tocsc()

    residual = math.inf
    for attempt in range(config.max_restarts + 1):
        sigma = target + attempt * nudge
        ncv = min(n, max(2 * k + 1, 20) * (attempt + 1))
        try:
            e, vectors = eigsh(
                A, k=k, sigma=sigma, which="LM", v0=v0, ncv=ncv,
                maxiter=config.max_cycle * n * (attempt + 1), tol=0.1 * tolerance,
            )
        except ArpackNoConvergence as exc:
            logger.warning("Shift-invert attempt %d did not converge: %s", attempt + 1, exc)
            continue
        except RuntimeError as exc:
            # Singular factorization or ARPACK failure at this shift
            logger.warning("Shift-invert attempt %d failed at sigma=%.12g: %s", attempt + 1, sigma, exc)
            continue
        residual = max_residual(operator, e, vectors)
        if residual <= tolerance:
            return e, vectors
        logger.warning(
            "Shift-invert attempt %d: residual %.2e above tolerance %.2e, restarting",
            attempt + 1, residual, tolerance,
        )

    raise ConvergenceError(
        f"Shift-invert did not converge within {config.max_restarts} restarts "
        f"(residual {residual:.2e} > {tolerance:.2e})"
    )


# ============================================================================
# Entry Point
# ============================================================================

def diagonalize(
    operator: sp.spmatrix,
    tolerance: float = 1e-6,
    config: Optional[SolverConfig] = None,
) -> Spectrum:
    """
    Diagonalize a real symmetric operator.

    Args:
        operator: Square sparse matrix [GHz]
        tolerance: Bound on the eigenpair residual ‖Hv − λv‖ [GHz]
        config: Solver parameters (default SolverConfig())

    Returns:
        Spectrum with ascending eigenvalues

    Raises:
        ConvergenceError: Iterative solver failed after all restarts
    """
    config = config or SolverConfig()
    operator = sp.csr_matrix(operator, dtype=np.float64)
    n = operator.shape[0]
    if n == 0:
        return Spectrum.empty()

    if is_diagonal(operator):
        eigenvalues, eigenvectors = _solve_diagonal(operator, config)
        used = "diagonal"
    else:
        strategy = _select_strategy(operator, config)
        # Iterative solvers need a subspace smaller than the matrix
        if strategy != SolverStrategy.DENSE and config.n_roots >= n - 1:
            strategy = SolverStrategy.DENSE
        if strategy == SolverStrategy.DENSE:
            eigenvalues, eigenvectors = _solve_dense(operator, config)
        elif strategy == SolverStrategy.SHIFT_INVERT:
            eigenvalues, eigenvectors = _solve_shift_invert(operator, tolerance, config)
        else:
            eigenvalues, eigenvectors = _solve_davidson(operator, tolerance, config)
        used = strategy.value

    eigenvalues, eigenvectors = _sorted(np.asarray(eigenvalues), np.asarray(eigenvectors))
    if config.prune_threshold > 0:
        eigenvectors = eigenvectors.copy()
        eigenvectors[np.abs(eigenvectors) < config.prune_threshold] = 0.0

    logger.info(
        "[rydpair.main]Diagonalized %d x %d operator (%s):[/] [rydpair.accent]%d eigenpairs[/]",
        n, n, used, eigenvalues.size,
    )
    return Spectrum(eigenvalues, eigenvectors, used)


__all__ = ["Spectrum", "diagonalize", "max_residual"]
