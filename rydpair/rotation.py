# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Rotated reference states and eigenstate overlaps.

Euler angles (α, β, γ) in the zyz convention rotate the coordinate frame,
so a reference state is expanded in the rotated frame with the inverse
rotation (-γ, -β, -α):

    |j m>' = Σ_{m'} D^j_{m' m}(-γ, -β, -α) |j m'>

Pair references rotate each atom and take the tensor product.

File: rydpair/rotation.py
"""

from __future__ import annotations

from typing import Iterable, Sequence, Union

import numpy as np

from .atomic.angular import wigner_D_matrix
from .basis import Basis
from .state import State, StateOne, StateTwo

Euler = tuple[float, float, float]

_COMPONENT_CUTOFF = 1e-14


def rotate_state(state: StateOne, euler: Euler = (0.0, 0.0, 0.0)) -> list[tuple[StateOne, complex]]:
    """
    Components of a single-atom state with fixed m in the rotated frame.

    Returns:
        (state with m', coefficient) for all non-vanishing m'
    """
    if state.m is None:
        raise ValueError("Only states with a fixed m can be rotated; expand sublevels first")
    alpha, beta, gamma = euler
    if alpha == beta == gamma == 0.0:
        return [(state, 1.0 + 0.0j)]

    D = wigner_D_matrix(state.j, -gamma, -beta, -alpha)
    column = int(round(state.m + state.j))
    components = []
    for row in range(D.shape[0]):
        coefficient = complex(D[row, column])
        if abs(coefficient) > _COMPONENT_CUTOFF:
            components.append((state.with_m(-state.j + row), coefficient))
    return components


def rotate_reference(state: State, euler: Euler = (0.0, 0.0, 0.0)) -> list[tuple[State, complex]]:
    """Rotate a single-atom or pair state with fixed magnetic numbers."""
    if isinstance(state, StateOne):
        return rotate_state(state, euler)

    first = rotate_state(state.first, euler)
    second = rotate_state(state.second, euler)
    return [(StateTwo(a, b), ca * cb) for a, ca in first for b, cb in second]


def _as_list(references: Union[State, Iterable[State]]) -> list[State]:
    if isinstance(references, (StateOne, StateTwo)):
        return [references]
    return list(references)


def overlap(
    basis: Basis,
    eigenvectors: np.ndarray,
    references: Union[State, Sequence[State]],
    euler: Euler = (0.0, 0.0, 0.0),
) -> np.ndarray:
    """
    Weight of the (rotated) references in each eigenvector.

    References with ``m=None`` are expanded over all sublevels; squared
    overlaps of all sublevels and all references are summed. Components
    outside the basis are dropped.

    Args:
        basis: Basis indexing the eigenvector rows
        eigenvectors: Eigenvectors as columns
        references: Reference state or list of reference states
        euler: zyz Euler angles of the frame rotation [rad]

    Returns:
        One weight per eigenvector
    """
    eigenvectors = np.asarray(eigenvectors)
    weights = np.zeros(eigenvectors.shape[1])

    for reference in _as_list(references):
        for sublevel in reference.sublevels():
            amplitude = np.zeros(eigenvectors.shape[1], dtype=np.complex128)
            for component, coefficient in rotate_reference(sublevel, euler):
                index = basis.find(component)
                if index is not None:
                    amplitude += np.conj(coefficient) * eigenvectors[index]
            weights += np.abs(amplitude) ** 2
    return weights


__all__ = ["rotate_state", "rotate_reference", "overlap"]
