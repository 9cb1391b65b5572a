# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Coulomb-approximation radial wavefunctions via Numerov integration.

The radial equation u'' = [l(l+1)/r^2 - 2/r - 2E] u with E = -1/(2 n*^2)
is integrated inwards on the scaled grid x = sqrt(r), u(r) = x^{1/2} X(x):

    X'' = g(x) X,   g(x) = (2l + 1/2)(2l + 3/2)/x^2 - 8 + 4 x^2 / n*^2

All wavefunctions share the grid x_i = i * dx, so radial integrals between
different states reduce to sums over the overlapping index range:

    <r^k> = ∫ u1 u2 r^k dr = ∫ 2 x^(2k+2) X1 X2 dx

File: rydpair/atomic/numerov.py
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np

DX = 0.01
R_CORE = 1.0  # [bohr] below which the Coulomb approximation is truncated
_SEED = 1e-10


@dataclass(frozen=True, eq=False)
class RadialWavefunction:
    """
    Normalized scaled wavefunction X on grid points i_start .. i_start+len-1.

    Outermost lobe is positive.
    """
    i_start: int
    values: np.ndarray
    dx: float = DX

    @property
    def i_stop(self) -> int:
        return self.i_start + self.values.shape[0]

    @property
    def x(self) -> np.ndarray:
        return np.arange(self.i_start, self.i_stop) * self.dx


def inner_turning_point(n_star: float, l: int) -> float:
    """Inner classical turning point of the effective Coulomb potential [bohr]."""
    ratio = l * (l + 1) / n_star**2
    return n_star**2 * (1.0 - math.sqrt(max(0.0, 1.0 - ratio)))


def integrate(n_star: float, l: int, dx: float = DX) -> RadialWavefunction:
    """
    Integrate the scaled radial equation inwards from r_max = 2 n* (n* + 15).

    Integration stops inside x_stop = sqrt(max(r_turn, R_CORE)) as soon as
    |X| grows inwards (admixture of the irregular solution); points further
    in are discarded.

    Args:
        n_star: Effective principal quantum number
        l: Orbital angular momentum
        dx: Grid step in x = sqrt(r)

    Returns:
        Normalized RadialWavefunction
    """
    if n_star <= 0:
        raise ValueError(f"Effective principal quantum number must be positive, got {n_star}")

    x_max = math.sqrt(2.0 * n_star * (n_star + 15.0))
    i_max = int(math.ceil(x_max / dx))
    x_stop = math.sqrt(max(inner_turning_point(n_star, l), R_CORE))

    x = np.arange(i_max + 1, dtype=np.float64) * dx
    g = np.empty_like(x)
    g[1:] = (2 * l + 0.5) * (2 * l + 1.5) / x[1:] ** 2 - 8.0 + 4.0 * x[1:] ** 2 / n_star**2
    g[0] = np.inf
    f = 1.0 - dx * dx * g / 12.0

    X = np.zeros_like(x)
    X[i_max - 1] = _SEED
    i_start = 1
    for i in range(i_max - 1, 1, -1):
        X[i - 1] = ((12.0 - 10.0 * f[i]) * X[i] - f[i + 1] * X[i + 1]) / f[i - 1]
        if x[i - 1] < x_stop and abs(X[i - 1]) > abs(X[i]):
            X[i - 1] = 0.0
            i_start = i
            break

    values = X[i_start:]
    norm = math.sqrt(float(np.sum(2.0 * x[i_start:] ** 2 * values**2) * dx))
    return RadialWavefunction(i_start=i_start, values=values / norm, dx=dx)


@lru_cache(maxsize=512)
def wavefunction(n_star: float, l: int) -> RadialWavefunction:
    """Memoized ``integrate`` on the shared grid."""
    return integrate(n_star, l)


def radial_integral(
    bra: RadialWavefunction,
    ket: RadialWavefunction,
    power: int,
) -> float:
    """
    Radial matrix element <bra| r^power |ket> in atomic units.

    Raises:
        ValueError: Wavefunctions live on different grids
    """
    if bra.dx != ket.dx:
        raise ValueError("Radial wavefunctions must share the same grid step")

    lo = max(bra.i_start, ket.i_start)
    hi = min(bra.i_stop, ket.i_stop)
    if hi <= lo:
        return 0.0

    x = np.arange(lo, hi) * bra.dx
    y1 = bra.values[lo - bra.i_start:hi - bra.i_start]
    y2 = ket.values[lo - ket.i_start:hi - ket.i_start]
    return float(np.sum(2.0 * x ** (2 * power + 2) * y1 * y2) * bra.dx)


__all__ = [
    "DX",
    "R_CORE",
    "RadialWavefunction",
    "inner_turning_point",
    "integrate",
    "wavefunction",
    "radial_integral",
]
