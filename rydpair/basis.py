# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Basis construction under composable restrictions.

Single-atom bases are enumerated inside mandatory n and l windows, filtered
by the cheap integer windows (j, m) first and by the energy window last.
Pair bases are the cartesian product of two single-atom bases, pruned by the
pair energy window and the total-M window before any operator sees them.

Pair states are ordered: (A, B) and (B, A) are distinct basis states.

File: rydpair/basis.py
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from collections.abc import Sequence
from typing import Iterable, Iterator, Optional, overload

import numpy as np

from .atomic.provider import get_provider
from .errors import NotReadyError
from .state import State, StateOne, StateTwo

logger = logging.getLogger(__name__)

Window = Optional[tuple[float, float]]

_EPS = 1e-9


def _check_window(name: str, window: Window) -> Window:
    if window is None:
        return None
    lo, hi = window
    if lo > hi:
        raise ValueError(f"{name} window must satisfy min <= max, got ({lo}, {hi})")
    return (lo, hi)


def _inside(value: float, window: Window) -> bool:
    return window is None or window[0] - _EPS <= value <= window[1] + _EPS


# ============================================================================
# Restrictions
# ============================================================================

@dataclass(frozen=True)
class Restrictions:
    """
    Closed windows combined conjunctively; ``None`` disables a window.

    For pair states the energy window applies to the pair energy, the m
    window to the total magnetic number, and n/l/j to each constituent.
    """
    energy: Window = None
    n: Window = None
    l: Window = None
    j: Window = None
    m: Window = None

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            object.__setattr__(self, f.name, _check_window(f.name, getattr(self, f.name)))

    def replace(self, **windows: Window) -> Restrictions:
        return dataclasses.replace(self, **windows)

    @classmethod
    def around(
        cls,
        seed: State,
        *,
        delta_n: int,
        delta_l: int,
        delta_energy: Optional[float] = None,
    ) -> Restrictions:
        """Windows centred on a seed state's quantum numbers and energy."""
        atoms = (seed,) if isinstance(seed, StateOne) else tuple(seed)
        n_values = [a.n for a in atoms]
        l_values = [a.l for a in atoms]
        energy = None
        if delta_energy is not None:
            energy = (seed.energy - delta_energy, seed.energy + delta_energy)
        return cls(
            energy=energy,
            n=(max(1, min(n_values) - delta_n), max(n_values) + delta_n),
            l=(max(0, min(l_values) - delta_l), max(l_values) + delta_l),
        )

    # -------------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------------

    def admits_nlj(self, n: int, l: int, j: float) -> bool:
        return _inside(n, self.n) and _inside(l, self.l) and _inside(j, self.j)

    def admits_m(self, m: float) -> bool:
        return _inside(m, self.m)

    def admits_energy(self, energy: float) -> bool:
        return _inside(energy, self.energy)

    def admits(self, state: State) -> bool:
        """True if ``state`` satisfies every active window."""
        if isinstance(state, StateOne):
            return (
                self.admits_nlj(state.n, state.l, state.j)
                and (state.m is None or self.admits_m(state.m))
                and self.admits_energy(state.energy)
            )
        total_m = state.total_m
        return (
            all(self.admits_nlj(a.n, a.l, a.j) for a in state)
            and (total_m is None or self.admits_m(total_m))
            and self.admits_energy(state.energy)
        )


# ============================================================================
# Basis
# ============================================================================

class Basis(Sequence):
    """
    Ordered, deduplicated states with a bijective state ↔ index mapping.

    States are ordered canonically by unperturbed energy. A Basis is frozen;
    restricting again produces a new Basis.
    """

    def __init__(self, states: Iterable[State] = ()):
        unique = dict.fromkeys(states)
        ordered = sorted(unique, key=lambda s: s.sort_key)
        kinds = {type(s) for s in ordered}
        if len(kinds) > 1:
            raise TypeError("A basis cannot mix single-atom and pair states")

        self._states: tuple[State, ...] = tuple(ordered)
        self._index: dict[State, int] = {s: i for i, s in enumerate(self._states)}
        self._energies: Optional[np.ndarray] = None

    @property
    def states(self) -> tuple[State, ...]:
        return self._states

    @property
    def is_pair(self) -> bool:
        return bool(self._states) and isinstance(self._states[0], StateTwo)

    @property
    def energies(self) -> np.ndarray:
        """Unperturbed energies [GHz] in basis order."""
        if self._energies is None:
            self._energies = np.fromiter(
                (s.energy for s in self._states), dtype=np.float64, count=len(self._states)
            )
        return self._energies

    def index_of(self, state: State) -> int:
        """
        Index of ``state``.

        Raises:
            KeyError: State not in basis
        """
        return self._index[state]

    def find(self, state: State) -> Optional[int]:
        return self._index.get(state)

    def __len__(self) -> int:
        return len(self._states)

    @overload
    def __getitem__(self, index: int) -> State: ...
    @overload
    def __getitem__(self, index: slice) -> tuple[State, ...]: ...

    def __getitem__(self, index):
        return self._states[index]

    def __iter__(self) -> Iterator[State]:
        return iter(self._states)

    def __contains__(self, state: object) -> bool:
        return state in self._index

    def __repr__(self) -> str:
        kind = "pair" if self.is_pair else "single-atom"
        return f"Basis({len(self)} {kind} states)"


# ============================================================================
# Builders
# ============================================================================

def _half_range(lo: float, hi: float) -> Iterator[float]:
    value = lo
    while value <= hi + _EPS:
        yield value
        value += 1.0


def build_single_atom_basis(seed: StateOne, restrictions: Restrictions) -> Basis:
    """
    Enumerate all states of the seed's species inside the restriction windows.

    Args:
        seed: Provides species and spin
        restrictions: n and l windows are mandatory

    Returns:
        Basis of StateOne sorted by energy (possibly empty)

    Raises:
        NotReadyError: n or l window missing
    """
    if restrictions.n is None or restrictions.l is None:
        raise NotReadyError("Restrict n and l before enumerating a single-atom basis")

    provider = get_provider()
    species, s = seed.species, seed.s
    n_lo, n_hi = int(np.ceil(restrictions.n[0] - _EPS)), int(np.floor(restrictions.n[1] + _EPS))
    l_lo, l_hi = int(np.ceil(restrictions.l[0] - _EPS)), int(np.floor(restrictions.l[1] + _EPS))

    states = []
    for n in range(max(1, n_lo), n_hi + 1):
        for l in range(max(0, l_lo), min(l_hi, n - 1) + 1):
            if not provider.is_allowed(species, n, l):
                continue
            for j in _half_range(abs(l - s), l + s):
                if not restrictions.admits_nlj(n, l, j):
                    continue
                if not restrictions.admits_energy(provider.energy(species, n, l, j)):
                    continue
                for m in _half_range(-j, j):
                    if restrictions.admits_m(m):
                        states.append(StateOne(species, n, l, j, m, s))

    basis = Basis(states)
    logger.info(
        "[rydpair.main]Single-atom basis %s:[/] [rydpair.accent]%d states[/]",
        species, len(basis),
    )
    return basis


def build_pair_basis(
    basis1: Basis,
    basis2: Basis,
    restrictions: Optional[Restrictions] = None,
) -> Basis:
    """
    Cartesian product of two single-atom bases pruned by pair restrictions.

    Per-atom n/l/j windows prune the factors first; pair energy and total-M
    windows are then applied to the vectorized product.

    Args:
        basis1: Basis of the first atom
        basis2: Basis of the second atom
        restrictions: Pair restrictions

    Returns:
        Basis of StateTwo sorted by pair energy (possibly empty)
    """
    restrictions = restrictions or Restrictions()

    def _prune(basis: Basis) -> list[StateOne]:
        return [s for s in basis if restrictions.admits_nlj(s.n, s.l, s.j)]

    atoms1, atoms2 = _prune(basis1), _prune(basis2)
    if not atoms1 or not atoms2:
        return Basis()

    e1 = np.array([s.energy for s in atoms1])
    e2 = np.array([s.energy for s in atoms2])
    m1 = np.array([s.m for s in atoms1], dtype=np.float64)
    m2 = np.array([s.m for s in atoms2], dtype=np.float64)

    mask = np.ones((len(atoms1), len(atoms2)), dtype=bool)
    if restrictions.energy is not None:
        e_pair = e1[:, None] + e2[None, :]
        mask &= (e_pair >= restrictions.energy[0] - _EPS) & (e_pair <= restrictions.energy[1] + _EPS)
    if restrictions.m is not None:
        m_pair = m1[:, None] + m2[None, :]
        mask &= (m_pair >= restrictions.m[0] - _EPS) & (m_pair <= restrictions.m[1] + _EPS)

    idx1, idx2 = np.nonzero(mask)
    basis = Basis(StateTwo(atoms1[a], atoms2[b]) for a, b in zip(idx1, idx2))
    logger.info(
        "[rydpair.main]Pair basis:[/] [rydpair.accent]%d[/] of %d product states kept",
        len(basis), mask.size,
    )
    return basis


__all__ = [
    "Restrictions",
    "Basis",
    "build_single_atom_basis",
    "build_pair_basis",
]
