# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Atomic data provider.

Pure functions of the quantum numbers: unperturbed energies from the
Rydberg-Ritz formula and radial matrix elements from Numerov wavefunctions.
Expensive radial elements are memoized by the MatrixElementCache, energies
by a small in-process LRU table.

File: rydpair/atomic/provider.py
"""

from __future__ import annotations

from functools import lru_cache

from . import numerov
from .species import Species, get_species


class AtomicDataProvider:
    """Energies [GHz] and radial elements [atomic units] for alkali species."""

    def energy(self, species: str, n: int, l: int, j: float) -> float:
        """Unperturbed energy in GHz relative to the ionization threshold."""
        return _energy(species, int(n), int(l), float(j))

    def is_allowed(self, species: str, n: int, l: int) -> bool:
        """True if (n, l) is not below the ground-state shell."""
        return get_species(species).is_allowed_shell(n, l)

    def radial_element(
        self,
        species: str,
        bra: tuple[int, int, float],
        ket: tuple[int, int, float],
        power: int,
    ) -> float:
        """
        Radial integral <n l j| r^power |n' l' j'> in units of bohr^power.

        Args:
            species: Species identifier
            bra: (n, l, j) of the bra state
            ket: (n, l, j) of the ket state
            power: Power of r
        """
        data = get_species(species)
        wf_bra = numerov.wavefunction(data.effective_n(*bra), int(bra[1]))
        wf_ket = numerov.wavefunction(data.effective_n(*ket), int(ket[1]))
        return numerov.radial_integral(wf_bra, wf_ket, power)


@lru_cache(maxsize=65536)
def _energy(species: str, n: int, l: int, j: float) -> float:
    return get_species(species).energy(n, l, j)


_DEFAULT_PROVIDER: AtomicDataProvider | None = None


def get_provider() -> AtomicDataProvider:
    """Process-wide default provider."""
    global _DEFAULT_PROVIDER
    if _DEFAULT_PROVIDER is None:
        _DEFAULT_PROVIDER = AtomicDataProvider()
    return _DEFAULT_PROVIDER


__all__ = ["AtomicDataProvider", "get_provider"]
