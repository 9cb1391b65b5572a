# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Species data: Rydberg-Ritz quantum defects and ground-state shells.

Energies follow the extended Rydberg-Ritz formula

    E(n, l, j) = -Ry_species / (n - δ(n, l, j))^2
    δ = d0 + d2/(n-d0)^2 + d4/(n-d0)^4 + ...

relative to the ionization threshold. Partial waves without tabulated
defects are hydrogenic (δ = 0).

File: rydpair/atomic/species.py
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import InvalidStateError
from ..units import wavenumber_to_ghz

# Energetically sorted shells (n, l) up to 8s
SORTED_SHELLS = [
    (1, 0), (2, 0), (2, 1), (3, 0), (3, 1), (4, 0), (3, 2), (4, 1), (5, 0),
    (4, 2), (5, 1), (6, 0), (4, 3), (5, 2), (6, 1), (7, 0), (5, 3), (6, 2),
    (7, 1), (8, 0),
]


@dataclass(frozen=True)
class QuantumDefect:
    """Rydberg-Ritz coefficients for one (l, j) series."""
    d0: float
    d2: float = 0.0
    d4: float = 0.0
    d6: float = 0.0

    def __call__(self, n: int) -> float:
        x = 1.0 / (n - self.d0) ** 2
        return self.d0 + x * (self.d2 + x * (self.d4 + x * self.d6))


@dataclass(frozen=True, eq=False)
class Species:
    """Alkali species: Rydberg constant, ground shell and defect table."""
    name: str
    rydberg_cm: float  # mass-corrected Rydberg constant [cm^-1]
    ground_n: int
    ground_l: int
    s: float = 0.5
    defects: dict[tuple[int, float], QuantumDefect] = field(default_factory=dict)

    @property
    def rydberg_ghz(self) -> float:
        return wavenumber_to_ghz(self.rydberg_cm)

    def quantum_defect(self, n: int, l: int, j: float) -> float:
        qd = self.defects.get((l, float(j)))
        return 0.0 if qd is None else qd(n)

    def effective_n(self, n: int, l: int, j: float) -> float:
        """n* = n - δ(n, l, j)."""
        return n - self.quantum_defect(n, l, j)

    def energy(self, n: int, l: int, j: float) -> float:
        """Unperturbed energy in GHz relative to the ionization threshold."""
        return -self.rydberg_ghz / self.effective_n(n, l, j) ** 2

    def is_allowed_shell(self, n: int, l: int) -> bool:
        """True if (n, l) lies at or above the ground-state shell."""
        if n > 10 or (n, l) not in SORTED_SHELLS:
            return True
        gs_id = SORTED_SHELLS.index((self.ground_n, self.ground_l))
        return SORTED_SHELLS.index((n, l)) >= gs_id


# ============================================================================
# Species Tables
# ============================================================================

_RUBIDIUM = Species(
    name="Rb",
    rydberg_cm=109736.62301604665,
    ground_n=5,
    ground_l=0,
    defects={
        (0, 0.5): QuantumDefect(3.1311804, 0.1784),
        (1, 0.5): QuantumDefect(2.6548849, 0.2900),
        (1, 1.5): QuantumDefect(2.6416737, 0.2950),
        (2, 1.5): QuantumDefect(1.34809171, -0.60286),
        (2, 2.5): QuantumDefect(1.34646572, -0.59600),
        (3, 2.5): QuantumDefect(0.0165192, -0.085),
        (3, 3.5): QuantumDefect(0.0165437, -0.086),
    },
)

_CESIUM = Species(
    name="Cs",
    rydberg_cm=109736.8627339,
    ground_n=6,
    ground_l=0,
    defects={
        (0, 0.5): QuantumDefect(4.0493532, 0.2391, 0.06),
        (1, 0.5): QuantumDefect(3.5915871, 0.36273),
        (1, 1.5): QuantumDefect(3.5590676, 0.37469),
        (2, 1.5): QuantumDefect(2.475365, 0.5554),
        (2, 2.5): QuantumDefect(2.4663144, 0.01381),
        (3, 2.5): QuantumDefect(0.03341424, -0.198674),
        (3, 3.5): QuantumDefect(0.033537, -0.191),
    },
)

_SODIUM = Species(
    name="Na",
    rydberg_cm=109734.69,
    ground_n=3,
    ground_l=0,
    defects={
        (0, 0.5): QuantumDefect(1.34796938, 0.0609892),
        (1, 0.5): QuantumDefect(0.85544502, 0.112067),
        (1, 1.5): QuantumDefect(0.85462615, 0.112344),
        (2, 1.5): QuantumDefect(0.014909286, -0.042506),
        (2, 2.5): QuantumDefect(0.01492422, -0.042585),
        (3, 2.5): QuantumDefect(0.001632977, -0.0069906),
        (3, 3.5): QuantumDefect(0.001630875, -0.0069824),
    },
)

SPECIES: dict[str, Species] = {
    "Rb": _RUBIDIUM,
    "Rb87": _RUBIDIUM,
    "Cs": _CESIUM,
    "Cs133": _CESIUM,
    "Na": _SODIUM,
    "Na23": _SODIUM,
}


def get_species(name: str) -> Species:
    """
    Look up species data.

    Raises:
        InvalidStateError: Unknown species
    """
    try:
        return SPECIES[name]
    except KeyError:
        raise InvalidStateError(
            f"Unknown species {name!r}; available: {sorted(SPECIES)}"
        ) from None


__all__ = ["QuantumDefect", "Species", "SPECIES", "SORTED_SHELLS", "get_species"]
