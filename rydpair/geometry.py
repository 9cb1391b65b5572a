# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Pair geometry and interaction prefactors.

The interatomic axis lies in the x-z plane at polar angle θ from the
quantization axis z. An optional perfectly conducting surface is the plane
z = 0, with the pair's midpoint at height ``surface_distance`` above it:

    atom 1 at (-R/2 sinθ, 0, h - R/2 cosθ)
    atom 2 at (+R/2 sinθ, 0, h + R/2 cosθ)

Dipole-dipole couplings use the Green's tensor

    G = T(r1 - r2) + T(r1 - r2') M,   T(r) = (1 - 3 r̂ r̂ᵀ) / |r|^3

with r2' the mirror image of atom 2 and M = diag(-1, -1, 1) the image-dipole
reflection; V = d1ᵀ G d2. Higher multipoles use the expansion along z.

File: rydpair/geometry.py
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass

import numpy as np

from .errors import GeometryError
from .units import UM_IN_BOHR

# Columns: spherical components q = -1, 0, +1 of a Cartesian vector
_SPHERICAL = np.array(
    [
        [1 / math.sqrt(2), 0.0, -1 / math.sqrt(2)],
        [1j / math.sqrt(2), 0.0, 1j / math.sqrt(2)],
        [0.0, 1.0, 0.0],
    ],
    dtype=np.complex128,
)
_MIRROR = np.diag([-1.0, -1.0, 1.0])


@dataclass(frozen=True)
class Geometry:
    """
    Spatial configuration of a pair. Lengths in µm, angle in rad.

    ``distance = inf`` switches the interaction off.
    """
    distance: float = math.inf
    angle: float = 0.0
    surface_distance: float = math.inf
    green_tensor: bool = False

    def replace(self, **changes) -> Geometry:
        return dataclasses.replace(self, **changes)

    def validate(self, order_max: int = 3) -> None:
        """
        Check physical consistency.

        Raises:
            GeometryError: Non-positive distances, an atom at or below the
                surface, or higher multipoles with a tilted axis or surface
        """
        if not self.distance > 0:
            raise GeometryError(f"Interatomic distance must be positive, got {self.distance}")
        if not self.surface_distance > 0:
            raise GeometryError(
                f"Surface distance must be positive, got {self.surface_distance}"
            )
        if math.isfinite(self.distance) and math.isfinite(self.surface_distance):
            lowest = self.surface_distance - 0.5 * self.distance * abs(math.cos(self.angle))
            if lowest <= 0:
                raise GeometryError(
                    f"Surface distance {self.surface_distance} µm places an atom at or "
                    f"below the surface (needs > distance*|cos(angle)|/2 = "
                    f"{0.5 * self.distance * abs(math.cos(self.angle))} µm)"
                )
        if order_max > 3 and (self.angle != 0.0 or self.green_tensor):
            raise GeometryError(
                "A non-zero angle or the surface term can only be used with "
                "dipole-dipole interaction (order_max = 3)"
            )

    # -------------------------------------------------------------------------
    # Positions [bohr]
    # -------------------------------------------------------------------------

    @property
    def axis(self) -> np.ndarray:
        """Unit vector from atom 1 to atom 2."""
        return np.array([math.sin(self.angle), 0.0, math.cos(self.angle)])

    def positions(self) -> tuple[np.ndarray, np.ndarray]:
        """Atom positions in bohr (midpoint at the origin without surface)."""
        height = self.surface_distance if math.isfinite(self.surface_distance) else 0.0
        center = np.array([0.0, 0.0, height]) * UM_IN_BOHR
        half = 0.5 * self.distance * UM_IN_BOHR * self.axis
        return center - half, center + half


def _dipole_tensor(r: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(r))
    unit = r / norm
    return (np.eye(3) - 3.0 * np.outer(unit, unit)) / norm**3


def green_tensor(geometry: Geometry) -> np.ndarray:
    """Cartesian coupling tensor G [hartree / (e bohr)^2]; zero at infinite distance."""
    if not math.isfinite(geometry.distance):
        return np.zeros((3, 3))

    r1, r2 = geometry.positions()
    G = _dipole_tensor(r1 - r2)
    if geometry.green_tensor and math.isfinite(geometry.surface_distance):
        image = r2 * np.array([1.0, 1.0, -1.0])
        G = G + _dipole_tensor(r1 - image) @ _MIRROR
    return G


def dipole_coefficients(geometry: Geometry) -> dict[tuple[int, int], float]:
    """
    Spherical coefficients C_{q1 q2} with V = Σ C_{q1 q2} d1_{q1} d2_{q2}.

    Only non-zero coefficients are returned.
    """
    C = _SPHERICAL.T @ green_tensor(geometry) @ _SPHERICAL
    # Axis and image lie in the x-z plane, so C is real
    C = C.real
    cutoff = 1e-13 * float(np.max(np.abs(C))) if C.size else 0.0
    return {
        (q1, q2): float(C[q1 + 1, q2 + 1])
        for q1 in (-1, 0, 1)
        for q2 in (-1, 0, 1)
        if abs(C[q1 + 1, q2 + 1]) > cutoff
    }


def multipole_coefficients(
    kappa1: int, kappa2: int, geometry: Geometry
) -> dict[tuple[int, int], float]:
    """
    Coefficients of the rank-(κ1, κ2) term for an axis along z:

        (-1)^κ2 (κ1+κ2)! / sqrt((κ1+q)!(κ1-q)!(κ2+q)!(κ2-q)!) / R^(κ1+κ2+1)

    coupling component q of atom 1 with component -q of atom 2.
    """
    if not math.isfinite(geometry.distance):
        return {}

    distance = geometry.distance * UM_IN_BOHR
    prefactor = (-1.0) ** kappa2 * math.factorial(kappa1 + kappa2)
    prefactor /= distance ** (kappa1 + kappa2 + 1)

    coefficients = {}
    for q in range(-min(kappa1, kappa2), min(kappa1, kappa2) + 1):
        denom = math.sqrt(
            math.factorial(kappa1 + q) * math.factorial(kappa1 - q)
            * math.factorial(kappa2 + q) * math.factorial(kappa2 - q)
        )
        coefficients[(q, -q)] = prefactor / denom
    return coefficients


__all__ = [
    "Geometry",
    "green_tensor",
    "dipole_coefficients",
    "multipole_coefficients",
]
