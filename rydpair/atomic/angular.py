# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Angular-momentum algebra.

Wigner-Eckart decomposition of a single-atom multipole element
<n l j m| r^k C^k_q |n' l' j' m'> into

    angular            (-1)^(j-m) (j k j'; -m q m')
    reduced_commutes   (-1)^(l+s+j'+k) sqrt((2j+1)(2j'+1)) {l j s; j' l' k}
    reduced_multipole  (-1)^l sqrt((2l+1)(2l'+1)) (l k l'; 0 0 0)

times the radial integral. Wigner symbols come from sympy and are memoized.

File: rydpair/atomic/angular.py
"""

from __future__ import annotations

import math
from functools import lru_cache

import numpy as np
from sympy import Rational
from sympy.physics.wigner import wigner_3j as _sympy_wigner_3j
from sympy.physics.wigner import wigner_6j as _sympy_wigner_6j


def _half(value: float) -> Rational:
    """Exact (half-)integer for sympy."""
    return Rational(int(round(2 * value)), 2)


def _phase(exponent: float) -> float:
    """(-1)^exponent for an integer-valued exponent."""
    return -1.0 if int(round(exponent)) % 2 else 1.0


@lru_cache(maxsize=None)
def wigner_3j(j1: float, j2: float, j3: float, m1: float, m2: float, m3: float) -> float:
    """Wigner 3j symbol (zero where selection rules forbid it)."""
    if abs(m1 + m2 + m3) > 1e-9:
        return 0.0
    return float(_sympy_wigner_3j(*(_half(v) for v in (j1, j2, j3, m1, m2, m3))))


@lru_cache(maxsize=None)
def wigner_6j(j1: float, j2: float, j3: float, j4: float, j5: float, j6: float) -> float:
    """Wigner 6j symbol {j1 j2 j3; j4 j5 j6}."""
    try:
        value = _sympy_wigner_6j(*(_half(v) for v in (j1, j2, j3, j4, j5, j6)))
    except ValueError:
        # sympy rejects non-integer perimeters of a triad instead of returning 0
        return 0.0
    return float(value)


# ============================================================================
# Reduced Matrix Elements
# ============================================================================

def angular_factor(j1: float, m1: float, kappa: int, q: int, j2: float, m2: float) -> float:
    """(-1)^(j1-m1) (j1 κ j2; -m1 q m2)."""
    return _phase(j1 - m1) * wigner_3j(j1, kappa, j2, -m1, q, m2)


def reduced_commutes(s: float, l1: int, j1: float, kappa: int, l2: int, j2: float) -> float:
    """<l1 s j1 || C^κ(l) || l2 s j2> / <l1 || C^κ || l2>."""
    return (
        _phase(l1 + s + j2 + kappa)
        * math.sqrt((2 * j1 + 1) * (2 * j2 + 1))
        * wigner_6j(l1, j1, s, j2, l2, kappa)
    )


def reduced_multipole(l1: int, kappa: int, l2: int) -> float:
    """<l1 || C^κ || l2> for Racah-normalized spherical harmonics."""
    return (
        _phase(l1)
        * math.sqrt((2 * l1 + 1) * (2 * l2 + 1))
        * wigner_3j(l1, kappa, l2, 0, 0, 0)
    )


def reduced_orbital(s: float, l: int, j1: float, j2: float) -> float:
    """<l s j1 || L || l s j2>."""
    return (
        _phase(l + s + j2 + 1)
        * math.sqrt((2 * j1 + 1) * (2 * j2 + 1))
        * wigner_6j(l, j1, s, j2, l, 1)
        * math.sqrt(l * (l + 1) * (2 * l + 1))
    )


def reduced_spin(s: float, l: int, j1: float, j2: float) -> float:
    """<l s j1 || S || l s j2>."""
    return (
        _phase(l + s + j1 + 1)
        * math.sqrt((2 * j1 + 1) * (2 * j2 + 1))
        * wigner_6j(s, j1, l, j2, s, 1)
        * math.sqrt(s * (s + 1) * (2 * s + 1))
    )


def selection_rules(l1: int, j1: float, l2: int, j2: float, kappa: int) -> bool:
    """Triangle and parity conditions for a rank-κ multipole coupling."""
    if abs(l1 - l2) > kappa or l1 + l2 < kappa:
        return False
    if (l1 + l2 + kappa) % 2:
        return False
    return abs(j1 - j2) <= kappa <= j1 + j2


# ============================================================================
# Rotations
# ============================================================================

@lru_cache(maxsize=None)
def _d_coefficients(j: float, mp: float, m: float) -> tuple[tuple[float, int, int], ...]:
    """Terms (prefactor, cos power, sin power) of d^j_{m'm}(β)."""
    jp, jm = int(round(j + mp)), int(round(j - mp))
    kp, km = int(round(j + m)), int(round(j - m))
    diff = int(round(mp - m))
    norm = math.sqrt(
        math.factorial(jp) * math.factorial(jm) * math.factorial(kp) * math.factorial(km)
    )
    terms = []
    for s in range(max(0, -diff), min(kp, jm) + 1):
        denom = (
            math.factorial(kp - s) * math.factorial(s)
            * math.factorial(diff + s) * math.factorial(jm - s)
        )
        sign = -1.0 if (diff + s) % 2 else 1.0
        terms.append((sign * norm / denom, kp + jm - 2 * s, diff + 2 * s))
    return tuple(terms)


def wigner_small_d(j: float, mp: float, m: float, beta: float) -> float:
    """Wigner small-d element d^j_{m'm}(β)."""
    c, s = math.cos(beta / 2), math.sin(beta / 2)
    return sum(pref * c**pc * s**ps for pref, pc, ps in _d_coefficients(j, mp, m))


def wigner_D_matrix(j: float, alpha: float, beta: float, gamma: float) -> np.ndarray:
    """
    Wigner D matrix D^j_{m'm}(α, β, γ) = e^{-i m' α} d^j_{m'm}(β) e^{-i m γ}.

    Rows index m' and columns index m, both ascending from -j to j.
    """
    ms = np.arange(-j, j + 0.5, 1.0)
    D = np.empty((ms.size, ms.size), dtype=np.complex128)
    for a, mp in enumerate(ms):
        for b, m in enumerate(ms):
            D[a, b] = (
                np.exp(-1j * mp * alpha)
                * wigner_small_d(j, mp, m, beta)
                * np.exp(-1j * m * gamma)
            )
    return D


__all__ = [
    "wigner_3j",
    "wigner_6j",
    "angular_factor",
    "reduced_commutes",
    "reduced_multipole",
    "reduced_orbital",
    "reduced_spin",
    "selection_rules",
    "wigner_small_d",
    "wigner_D_matrix",
]
