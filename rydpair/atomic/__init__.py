# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Atomic data: species tables, radial wavefunctions and angular algebra.

Treated as a pure external collaborator by the rest of the package.
"""

from .provider import AtomicDataProvider, get_provider
from .species import SPECIES, Species, get_species

__all__ = [
    "AtomicDataProvider",
    "get_provider",
    "SPECIES",
    "Species",
    "get_species",
]
