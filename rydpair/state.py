# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
State identity model.

StateOne and StateTwo are immutable value objects: equality and hashing over
species and quantum numbers make them usable as basis-index and cache keys,
ordering follows the unperturbed energy.

A StateOne with ``m=None`` denotes "any magnetic sublevel" and is only meant
as a reference for overlap queries; basis states always carry m.

File: rydpair/state.py
"""

from __future__ import annotations

import itertools
import math
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import Iterator, Optional, Sequence, Union

from .atomic.provider import get_provider
from .atomic.species import get_species
from .errors import InvalidStateError

L_LETTERS = "SPDFGHIKLMNOQRTUV"

_LABEL_RE = re.compile(
    r"^\s*(?P<species>[A-Z][a-z]?\d*)\s+"
    r"(?P<n>\d+)\s*(?P<l>[" + L_LETTERS + r"])_?(?P<j>\d+(?:/2)?)"
    r"(?:\s*,?\s*m\s*=\s*(?P<m>[+-]?\d+(?:/2)?))?\s*$"
)


def _is_half_integer(value: float) -> bool:
    return abs(2 * value - round(2 * value)) < 1e-9


def _format_half(value: float) -> str:
    frac = Fraction(value).limit_denominator(2)
    return str(frac.numerator) if frac.denominator == 1 else f"{frac.numerator}/2"


# ============================================================================
# Single-Atom State
# ============================================================================

@dataclass(frozen=True)
class StateOne:
    """
    Single-atom state |species; n, l, j, m>.

    Raises:
        InvalidStateError: Unknown species or inconsistent quantum numbers
    """
    species: str
    n: int
    l: int
    j: float
    m: Optional[float] = None
    s: float = 0.5

    def __post_init__(self) -> None:
        get_species(self.species)
        n, l, j, s = self.n, self.l, self.j, self.s

        if int(n) != n or int(l) != l:
            raise InvalidStateError(f"n and l must be integers, got n={n}, l={l}")
        if n < 1:
            raise InvalidStateError(f"n must be >= 1, got {n}")
        if l < 0 or l >= n:
            raise InvalidStateError(f"l must satisfy 0 <= l < n, got n={n}, l={l}")
        if not (_is_half_integer(j) and _is_half_integer(s)) or j < 0:
            raise InvalidStateError(f"j and s must be non-negative half-integers, got j={j}")
        if not (abs(l - s) <= j <= l + s) or not float(j - l - s).is_integer():
            raise InvalidStateError(f"j={j} cannot couple l={l} and s={s}")

        object.__setattr__(self, "n", int(n))
        object.__setattr__(self, "l", int(l))
        object.__setattr__(self, "j", float(j))
        object.__setattr__(self, "s", float(s))

        if self.m is not None:
            m = float(self.m)
            if abs(m) > j:
                raise InvalidStateError(f"|m| must not exceed j, got m={m}, j={j}")
            if not float(j - m).is_integer():
                raise InvalidStateError(f"j - m must be an integer, got j={j}, m={m}")
            object.__setattr__(self, "m", m)

    @classmethod
    def from_label(cls, label: str, m: Optional[float] = None) -> StateOne:
        """
        Parse labels like ``"Rb 69S_1/2 m=1/2"`` or ``"Cs 60 D5/2"``.

        Args:
            label: Spectroscopic label
            m: Magnetic number, overrides an ``m=`` suffix in the label

        Raises:
            InvalidStateError: Malformed label
        """
        match = _LABEL_RE.match(label)
        if match is None:
            raise InvalidStateError(f"Cannot parse state label {label!r}")

        j = float(Fraction(match["j"]))
        if m is None and match["m"] is not None:
            m = float(Fraction(match["m"]))

        return cls(
            species=match["species"],
            n=int(match["n"]),
            l=L_LETTERS.index(match["l"]),
            j=j,
            m=m,
        )

    # -------------------------------------------------------------------------
    # Derived quantities
    # -------------------------------------------------------------------------

    @property
    def energy(self) -> float:
        """Unperturbed energy [GHz]."""
        return get_provider().energy(self.species, self.n, self.l, self.j)

    @property
    def is_reference(self) -> bool:
        """True if the magnetic sublevel is unspecified."""
        return self.m is None

    @property
    def label(self) -> str:
        text = f"{self.species} {self.n}{L_LETTERS[self.l]}_{_format_half(self.j)}"
        if self.m is not None:
            text += f" m={_format_half(self.m)}"
        return text

    def sublevels(self) -> tuple[StateOne, ...]:
        """All states with fixed m (itself if m is already set)."""
        if self.m is not None:
            return (self,)
        n_m = int(round(2 * self.j)) + 1
        return tuple(
            StateOne(self.species, self.n, self.l, self.j, -self.j + k, self.s)
            for k in range(n_m)
        )

    def with_m(self, m: Optional[float]) -> StateOne:
        return StateOne(self.species, self.n, self.l, self.j, m, self.s)

    @property
    def sort_key(self) -> tuple:
        m = -math.inf if self.m is None else self.m
        return (self.energy, self.species, self.n, self.l, self.j, m)

    def __lt__(self, other: StateOne) -> bool:
        if not isinstance(other, StateOne):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        return self.label


# ============================================================================
# Pair State
# ============================================================================

@dataclass(frozen=True)
class StateTwo:
    """Ordered pair of single-atom states |first> ⊗ |second>."""
    first: StateOne
    second: StateOne

    @classmethod
    def from_arrays(
        cls,
        species: Union[str, Sequence[str]],
        n: Sequence[int],
        l: Sequence[int],
        j: Sequence[float],
        m: Optional[Sequence[Optional[float]]] = None,
    ) -> StateTwo:
        """
        Build from parallel per-atom quantum numbers (each of length 2).

        Raises:
            InvalidStateError: Arrays of wrong length or invalid quantum numbers
        """
        species_pair = (species, species) if isinstance(species, str) else tuple(species)
        m_pair = (None, None) if m is None else tuple(m)
        arrays = (species_pair, tuple(n), tuple(l), tuple(j), m_pair)
        if any(len(a) != 2 for a in arrays):
            raise InvalidStateError("Pair quantum number arrays must have length 2")

        atoms = [
            StateOne(species_pair[k], n[k], l[k], j[k], m_pair[k]) for k in range(2)
        ]
        return cls(*atoms)

    @classmethod
    def from_label(cls, label: str) -> StateTwo:
        """Symmetric pair |label> ⊗ |label>."""
        state = StateOne.from_label(label)
        return cls(state, state)

    @property
    def energy(self) -> float:
        """Unperturbed pair energy [GHz] (sum of constituents)."""
        return self.first.energy + self.second.energy

    @property
    def species(self) -> tuple[str, str]:
        return (self.first.species, self.second.species)

    @property
    def n(self) -> tuple[int, int]:
        return (self.first.n, self.second.n)

    @property
    def l(self) -> tuple[int, int]:
        return (self.first.l, self.second.l)

    @property
    def j(self) -> tuple[float, float]:
        return (self.first.j, self.second.j)

    @property
    def m(self) -> tuple[Optional[float], Optional[float]]:
        return (self.first.m, self.second.m)

    @property
    def total_m(self) -> Optional[float]:
        if self.first.m is None or self.second.m is None:
            return None
        return self.first.m + self.second.m

    @property
    def is_reference(self) -> bool:
        return self.first.is_reference or self.second.is_reference

    @property
    def label(self) -> str:
        return f"{self.first.label}; {self.second.label}"

    def sublevels(self) -> tuple[StateTwo, ...]:
        return tuple(
            StateTwo(a, b)
            for a, b in itertools.product(self.first.sublevels(), self.second.sublevels())
        )

    @property
    def sort_key(self) -> tuple:
        return (self.energy,) + self.first.sort_key[1:] + self.second.sort_key[1:]

    def __lt__(self, other: StateTwo) -> bool:
        if not isinstance(other, StateTwo):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __iter__(self) -> Iterator[StateOne]:
        return iter((self.first, self.second))

    def __getitem__(self, index: int) -> StateOne:
        return (self.first, self.second)[index]

    def __str__(self) -> str:
        return self.label


State = Union[StateOne, StateTwo]

__all__ = ["StateOne", "StateTwo", "State", "L_LETTERS"]
