# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Tests for restrictions and basis construction.

Soundness (every basis state satisfies every active window) and
completeness (every admissible state is present) are checked against a
brute-force enumeration.

File: tests/python/test_basis.py
"""

from __future__ import annotations

import itertools

import numpy as np
import pytest

from rydpair import (
    Basis,
    NotReadyError,
    Restrictions,
    StateOne,
    StateTwo,
    build_pair_basis,
    build_single_atom_basis,
)

SEED = StateOne("Rb", 60, 0, 0.5, 0.5)


# ============================================================================
# Helper Functions
# ============================================================================

def _brute_force_single(restrictions: Restrictions, n_range, l_range) -> set[StateOne]:
    states = set()
    for n in n_range:
        for l in l_range:
            if l >= n:
                continue
            for j in (l - 0.5, l + 0.5):
                if j < 0:
                    continue
                for m in np.arange(-j, j + 0.5, 1.0):
                    state = StateOne("Rb", n, l, j, float(m))
                    if restrictions.admits(state):
                        states.add(state)
    return states


# ============================================================================
# Restrictions
# ============================================================================

def test_window_must_be_ordered():
    with pytest.raises(ValueError):
        Restrictions(n=(5, 4))


def test_windows_are_conjunctive():
    r = Restrictions(n=(59, 61), l=(0, 1), m=(0.5, 0.5))
    assert r.admits(SEED)
    assert not r.admits(SEED.with_m(-0.5))
    assert not r.admits(StateOne("Rb", 62, 0, 0.5, 0.5))
    assert not r.admits(StateOne("Rb", 60, 2, 2.5, 0.5))


def test_around_seed():
    r = Restrictions.around(SEED, delta_n=2, delta_l=2, delta_energy=10.0)
    assert r.n == (58, 62)
    assert r.l == (0, 2)
    assert r.energy == pytest.approx((SEED.energy - 10.0, SEED.energy + 10.0))


def test_pair_restrictions_use_total_m():
    pair = StateTwo(SEED, SEED.with_m(-0.5))
    assert Restrictions(m=(0, 0)).admits(pair)
    assert not Restrictions(m=(1, 1)).admits(pair)


# ============================================================================
# Single-Atom Basis
# ============================================================================

def test_requires_n_and_l_windows():
    with pytest.raises(NotReadyError):
        build_single_atom_basis(SEED, Restrictions(n=(59, 61)))
    with pytest.raises(NotReadyError):
        build_single_atom_basis(SEED, Restrictions(l=(0, 1)))


@pytest.mark.parametrize(
    "restrictions",
    [
        Restrictions(n=(59, 61), l=(0, 2)),
        Restrictions(n=(59, 61), l=(0, 3), j=(1.5, 2.5)),
        Restrictions(n=(58, 62), l=(0, 2), m=(-0.5, 0.5)),
        Restrictions(
            n=(58, 62), l=(0, 3), energy=(SEED.energy - 40.0, SEED.energy + 40.0)
        ),
    ],
)
def test_single_atom_basis_sound_and_complete(restrictions):
    basis = build_single_atom_basis(SEED, restrictions)
    expected = _brute_force_single(restrictions, range(55, 66), range(0, 5))

    assert all(restrictions.admits(s) for s in basis)
    assert set(basis) == expected
    assert len(basis) == len(expected)


def test_basis_sorted_by_energy_with_index_map():
    basis = build_single_atom_basis(SEED, Restrictions(n=(59, 61), l=(0, 2)))
    energies = basis.energies
    assert np.all(np.diff(energies) >= 0)
    for i, state in enumerate(basis):
        assert basis.index_of(state) == i
    assert basis.find(StateOne("Rb", 70, 0, 0.5, 0.5)) is None
    with pytest.raises(KeyError):
        basis.index_of(StateOne("Rb", 70, 0, 0.5, 0.5))


def test_empty_basis_is_valid():
    basis = build_single_atom_basis(SEED, Restrictions(n=(60, 60), l=(0, 0), energy=(0.0, 1.0)))
    assert len(basis) == 0
    assert basis.energies.shape == (0,)


def test_low_shells_are_excluded():
    basis = build_single_atom_basis(SEED, Restrictions(n=(4, 5), l=(0, 3)))
    nl = {(s.n, s.l) for s in basis}
    # Rb ground state is 5s; 4s and 4p lie below it
    assert (4, 0) not in nl
    assert (4, 1) not in nl
    assert (4, 2) in nl
    assert (5, 0) in nl


def test_basis_deduplicates():
    basis = Basis([SEED, SEED, SEED.with_m(-0.5)])
    assert len(basis) == 2


def test_basis_cannot_mix_kinds():
    with pytest.raises(TypeError):
        Basis([SEED, StateTwo(SEED, SEED)])


# ============================================================================
# Pair Basis
# ============================================================================

@pytest.fixture(scope="module")
def single_basis() -> Basis:
    return build_single_atom_basis(SEED, Restrictions(n=(59, 61), l=(0, 1)))


@pytest.mark.parametrize(
    "restrictions",
    [
        Restrictions(),
        Restrictions(energy=(2 * SEED.energy - 25.0, 2 * SEED.energy + 25.0)),
        Restrictions(energy=(2 * SEED.energy - 60.0, 2 * SEED.energy + 60.0), m=(1, 1)),
        Restrictions(l=(0, 0), m=(-1, 0)),
    ],
)
def test_pair_basis_sound_and_complete(single_basis, restrictions):
    pairs = build_pair_basis(single_basis, single_basis, restrictions)
    expected = {
        StateTwo(a, b)
        for a, b in itertools.product(single_basis, single_basis)
        if restrictions.admits(StateTwo(a, b))
    }
    assert all(restrictions.admits(p) for p in pairs)
    assert set(pairs) == expected
    assert pairs.is_pair or len(pairs) == 0


def test_pair_basis_keeps_both_orders(single_basis):
    pairs = build_pair_basis(single_basis, single_basis)
    a = StateOne("Rb", 60, 0, 0.5, 0.5)
    b = StateOne("Rb", 60, 1, 1.5, 0.5)
    assert StateTwo(a, b) in pairs
    assert StateTwo(b, a) in pairs
    assert len(pairs) == len(single_basis) ** 2


def test_pair_basis_sorted_by_pair_energy(single_basis):
    pairs = build_pair_basis(
        single_basis, single_basis,
        Restrictions(energy=(2 * SEED.energy - 60.0, 2 * SEED.energy + 60.0)),
    )
    assert np.all(np.diff(pairs.energies) >= 0)
