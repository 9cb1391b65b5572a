# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Operator assembly over a Basis.

Single-atom multipole matrices <a| r^κ C^κ_q |b> are assembled level by
level: the m-independent factor (radial × reduced_commutes ×
reduced_multipole) is evaluated once per pair of (n, l, j) levels and
multiplied by the angular 3j factor for each allowed Δm = q. Every factor
goes through the MatrixElementCache.

Pair operators are tensor products of single-atom matrices restricted to
the rows and columns of the pair basis:

    V = Σ_{κ1 κ2 q1 q2} C^{κ1 κ2}_{q1 q2} O1^{κ1}_{q1} ⊗ O2^{κ2}_{q2}

Matrix elements are evaluated in atomic units and converted to GHz once.
All operators are real symmetric CSR matrices.

File: rydpair/operator.py
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import scipy.sparse as sp

from .atomic import angular
from .atomic.provider import get_provider
from .basis import Basis
from .cache import CacheKey, ElementKind, MatrixElementCache
from .geometry import Geometry, dipole_coefficients, multipole_coefficients
from .units import G_ELECTRON, GAUSS_IN_AU, HARTREE_IN_GHZ, MU_B_AU, VCM_IN_AU

logger = logging.getLogger(__name__)

Level = tuple[str, int, int, float, float]  # (species, n, l, j, s)


# ============================================================================
# Helpers
# ============================================================================

def _levels(basis: Basis) -> dict[Level, dict[float, int]]:
    """Group basis indices by (species, n, l, j, s), keyed by m."""
    levels: dict[Level, dict[float, int]] = {}
    for index, state in enumerate(basis):
        level = (state.species, state.n, state.l, state.j, state.s)
        levels.setdefault(level, {})[state.m] = index
    return levels


def _to_csr(rows: list, cols: list, vals: list, dim: int) -> sp.csr_matrix:
    matrix = sp.coo_matrix(
        (np.asarray(vals, dtype=np.float64), (np.asarray(rows, dtype=np.int64),
                                              np.asarray(cols, dtype=np.int64))),
        shape=(dim, dim),
    ).tocsr()
    matrix.sum_duplicates()
    return matrix


def symmetrize(matrix: sp.spmatrix) -> sp.csr_matrix:
    """Mirror the upper triangle into the lower one (exact Hermiticity)."""
    upper = sp.triu(matrix, format="csr")
    strict = sp.triu(matrix, k=1, format="csr")
    return (upper + strict.conj().T).tocsr()


def _drop_small(matrix: sp.csr_matrix, threshold: float) -> sp.csr_matrix:
    if threshold > 0 and matrix.nnz:
        matrix.data[np.abs(matrix.data) < threshold] = 0.0
    matrix.eliminate_zeros()
    return matrix


# ============================================================================
# Cached Element Factors
# ============================================================================

def _radial(cache: MatrixElementCache, species: str, bra: tuple, ket: tuple, power: int) -> float:
    # Radial integrals are symmetric in bra and ket
    first, second = sorted((bra, ket))
    key = CacheKey(ElementKind.RADIAL, (species,) + first, second, (power,))
    return cache.get_or_compute(
        key, lambda: get_provider().radial_element(species, first, second, power)
    )


def _reduced(cache: MatrixElementCache, bra: Level, ket: Level, kappa: int) -> float:
    """m-independent part of <bra|| r^κ C^κ ||ket>, zero if forbidden."""
    species, n1, l1, j1, s = bra
    _, n2, l2, j2, _ = ket
    if not angular.selection_rules(l1, j1, l2, j2, kappa):
        return 0.0

    commutes = cache.get_or_compute(
        CacheKey(ElementKind.REDUCED_COMMUTES, (s, l1, j1), (l2, j2), (kappa,)),
        lambda: angular.reduced_commutes(s, l1, j1, kappa, l2, j2),
    )
    if commutes == 0.0:
        return 0.0
    multipole = cache.get_or_compute(
        CacheKey(ElementKind.REDUCED_MULTIPOLE, (l1,), (l2,), (kappa,)),
        lambda: angular.reduced_multipole(l1, kappa, l2),
    )
    if multipole == 0.0:
        return 0.0
    radial = _radial(cache, species, (n1, l1, j1), (n2, l2, j2), kappa)
    return radial * commutes * multipole


def _angular(cache: MatrixElementCache, j1: float, m1: float, kappa: int, q: int,
             j2: float, m2: float) -> float:
    return cache.get_or_compute(
        CacheKey(ElementKind.ANGULAR, (j1, m1), (j2, m2), (kappa, q)),
        lambda: angular.angular_factor(j1, m1, kappa, q, j2, m2),
    )


# ============================================================================
# Single-Atom Operators
# ============================================================================

def build_diagonal(basis: Basis) -> sp.csr_matrix:
    """Unperturbed energies [GHz] on the diagonal."""
    return sp.diags(basis.energies, format="csr", dtype=np.float64)


def multipole_matrix(
    basis: Basis,
    kappa: int,
    q: int,
    cache: Optional[MatrixElementCache] = None,
) -> sp.csr_matrix:
    """
    Matrix of r^κ C^κ_q over a single-atom basis [bohr^κ].

    Args:
        basis: Single-atom basis
        kappa: Multipole rank (1 = dipole)
        q: Spherical component, couples m_bra = m_ket + q
        cache: Matrix element cache (memory-only if None)

    Returns:
        Square CSR matrix in basis order
    """
    cache = cache if cache is not None else MatrixElementCache()
    levels = _levels(basis)
    rows: list[int] = []
    cols: list[int] = []
    vals: list[float] = []

    for bra, bra_ms in levels.items():
        for ket, ket_ms in levels.items():
            if bra[0] != ket[0] or abs(bra[2] - ket[2]) > kappa:
                continue
            reduced = _reduced(cache, bra, ket, kappa)
            if reduced == 0.0:
                continue
            j1, j2 = bra[3], ket[3]
            for m2, col in ket_ms.items():
                row = bra_ms.get(m2 + q)
                if row is None:
                    continue
                value = reduced * _angular(cache, j1, m2 + q, kappa, q, j2, m2)
                if value != 0.0:
                    rows.append(row)
                    cols.append(col)
                    vals.append(value)

    return _to_csr(rows, cols, vals, len(basis))


def zeeman_matrix(basis: Basis) -> sp.csr_matrix:
    """
    Matrix of (L_z + g_s S_z) over a single-atom basis [ħ].

    Diagonal in n, l and m; couples the two fine-structure components of
    an l level (j-mixing).
    """
    levels = _levels(basis)
    rows: list[int] = []
    cols: list[int] = []
    vals: list[float] = []

    for bra, bra_ms in levels.items():
        species, n, l, j1, s = bra
        for j2 in (j1 - 1.0, j1, j1 + 1.0):
            ket_ms = levels.get((species, n, l, j2, s))
            if ket_ms is None:
                continue
            reduced = (
                angular.reduced_orbital(s, l, j1, j2)
                + G_ELECTRON * angular.reduced_spin(s, l, j1, j2)
            )
            if reduced == 0.0:
                continue
            for m, col in ket_ms.items():
                row = bra_ms.get(m)
                if row is None:
                    continue
                value = reduced * angular.angular_factor(j1, m, 1, 0, j2, m)
                if value != 0.0:
                    rows.append(row)
                    cols.append(col)
                    vals.append(value)

    return _to_csr(rows, cols, vals, len(basis))


def build_field(
    basis: Basis,
    efield: float = 0.0,
    bfield: float = 0.0,
    cache: Optional[MatrixElementCache] = None,
) -> sp.csr_matrix:
    """
    Static field couplings along z [GHz].

    Args:
        basis: Single-atom basis
        efield: Electric field [V/cm]
        bfield: Magnetic field [Gauss]
        cache: Matrix element cache

    Returns:
        Stark plus Zeeman operator (zero matrix without fields)
    """
    dim = len(basis)
    field = sp.csr_matrix((dim, dim), dtype=np.float64)
    if efield != 0.0:
        # Electron potential energy e F z, with z = r C^1_0
        field = field + efield * VCM_IN_AU * multipole_matrix(basis, 1, 0, cache)
    if bfield != 0.0:
        field = field + MU_B_AU * bfield * GAUSS_IN_AU * zeeman_matrix(basis)
    return symmetrize(field * HARTREE_IN_GHZ)


# ============================================================================
# Pair Operators
# ============================================================================

def _pair_index(basis1: Basis, basis2: Basis, pair_basis: Basis) -> np.ndarray:
    """Flattened product index i1 * N2 + i2 of each pair state."""
    n2 = len(basis2)
    return np.fromiter(
        (basis1.index_of(s.first) * n2 + basis2.index_of(s.second) for s in pair_basis),
        dtype=np.int64,
        count=len(pair_basis),
    )


def _restrict(product: sp.spmatrix, index: np.ndarray) -> sp.csr_matrix:
    return product.tocsr()[index][:, index].tocsr()


def embed_single_atom(
    op1: sp.spmatrix,
    op2: sp.spmatrix,
    basis1: Basis,
    basis2: Basis,
    pair_basis: Basis,
) -> sp.csr_matrix:
    """Pair-basis matrix of op1 ⊗ 1 + 1 ⊗ op2."""
    index = _pair_index(basis1, basis2, pair_basis)
    eye1 = sp.identity(len(basis1), dtype=np.float64, format="csr")
    eye2 = sp.identity(len(basis2), dtype=np.float64, format="csr")
    product = sp.kron(op1, eye2, format="csr") + sp.kron(eye1, op2, format="csr")
    return _restrict(product, index)


def _interaction_terms(geometry: Geometry, order_max: int) -> list[tuple[int, int, dict]]:
    """(κ1, κ2, coefficients) for all orders κ1 + κ2 + 1 <= order_max."""
    terms = [(1, 1, dipole_coefficients(geometry))]
    for order in range(4, order_max + 1):
        for kappa1 in range(1, order - 1):
            kappa2 = order - 1 - kappa1
            terms.append((kappa1, kappa2, multipole_coefficients(kappa1, kappa2, geometry)))
    return [t for t in terms if t[2]]


def build_interaction(
    basis1: Basis,
    basis2: Basis,
    pair_basis: Basis,
    geometry: Geometry,
    cache: Optional[MatrixElementCache] = None,
    order_max: int = 3,
    drop_threshold: float = 0.0,
) -> sp.csr_matrix:
    """
    Interatomic interaction over a pair basis [GHz].

    Args:
        basis1: Basis of the first atom (contains every ``pair.first``)
        basis2: Basis of the second atom (contains every ``pair.second``)
        pair_basis: Pair basis indexing the result
        geometry: Distance, angle and surface configuration
        cache: Matrix element cache
        order_max: Highest order κ1 + κ2 + 1 of the multipole expansion
        drop_threshold: Couplings with |V| below this value [GHz] are dropped

    Returns:
        Real symmetric CSR matrix

    Raises:
        GeometryError: Inconsistent geometry for the requested order
    """
    geometry.validate(order_max)
    dim = len(pair_basis)
    cache = cache if cache is not None else MatrixElementCache()

    terms = _interaction_terms(geometry, order_max) if dim else []
    if not terms:
        return sp.csr_matrix((dim, dim), dtype=np.float64)

    index = _pair_index(basis1, basis2, pair_basis)
    single1: dict[tuple[int, int], sp.csr_matrix] = {}
    single2: dict[tuple[int, int], sp.csr_matrix] = {}

    interaction = sp.csr_matrix((dim, dim), dtype=np.float64)
    for kappa1, kappa2, coefficients in terms:
        for (q1, q2), coefficient in coefficients.items():
            if (kappa1, q1) not in single1:
                single1[(kappa1, q1)] = multipole_matrix(basis1, kappa1, q1, cache)
            if (kappa2, q2) not in single2:
                single2[(kappa2, q2)] = multipole_matrix(basis2, kappa2, q2, cache)
            op1, op2 = single1[(kappa1, q1)], single2[(kappa2, q2)]
            if op1.nnz == 0 or op2.nnz == 0:
                continue
            product = sp.kron(op1, op2, format="csr")
            interaction = interaction + coefficient * _restrict(product, index)

    cache.flush()
    interaction = symmetrize(interaction * HARTREE_IN_GHZ)
    interaction = _drop_small(interaction, drop_threshold)

    logger.info(
        "Interaction at R=%g µm: %d couplings over %d pair states (density %.2e)",
        geometry.distance, interaction.nnz, dim,
        interaction.nnz / dim**2 if dim else 0.0,
    )
    return interaction


def is_diagonal(matrix: sp.spmatrix) -> bool:
    """True if all stored non-zeros lie on the diagonal."""
    coo = sp.coo_matrix(matrix)
    mask = coo.data != 0
    return bool(np.all(coo.row[mask] == coo.col[mask]))


__all__ = [
    "build_diagonal",
    "multipole_matrix",
    "zeeman_matrix",
    "build_field",
    "embed_single_atom",
    "build_interaction",
    "symmetrize",
    "is_diagonal",
]
