# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Unit registry and conversion factors.

Public API units: energies in GHz, distances in µm, electric fields in V/cm,
magnetic fields in Gauss. Internally, matrix elements are evaluated in
atomic units and converted once with the factors below.

File: rydpair/units.py
"""

from __future__ import annotations

import pint

ureg = pint.UnitRegistry()

# Energy
HARTREE_IN_GHZ: float = ureg.Quantity(1.0, "hartree").to("GHz", "spectroscopy").magnitude

# Length
UM_IN_BOHR: float = ureg.Quantity(1.0, "micrometer").to("bohr").magnitude

# Fields: atomic units of field strength
VCM_IN_AU: float = (
    ureg.Quantity(1.0, "V/cm").to("hartree / (elementary_charge * bohr)").magnitude
)
GAUSS_IN_AU: float = (
    ureg.Quantity(1.0e-4, "tesla").to("hbar / (elementary_charge * bohr**2)").magnitude
)

# Bohr magneton in atomic units is 1/2 (e ħ / 2 m_e)
MU_B_AU: float = 0.5
G_ELECTRON: float = 2.0023193043622


def wavenumber_to_ghz(value_cm: float) -> float:
    """Convert a wavenumber in cm^-1 to GHz."""
    return ureg.Quantity(value_cm, "1/cm").to("GHz", "spectroscopy").magnitude


__all__ = [
    "ureg",
    "HARTREE_IN_GHZ",
    "UM_IN_BOHR",
    "VCM_IN_AU",
    "GAUSS_IN_AU",
    "MU_B_AU",
    "G_ELECTRON",
    "wavenumber_to_ghz",
]
