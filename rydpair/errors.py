# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Exception taxonomy for RydPair.

Configuration-time errors (InvalidStateError, GeometryError) abort only the
offending call. ConvergenceError aborts only a diagonalization. CacheIOError
is recovered inside the matrix element cache.

File: rydpair/errors.py
"""

from __future__ import annotations


class RydPairError(Exception):
    """Base class for all RydPair errors."""


class InvalidStateError(RydPairError, ValueError):
    """Quantum numbers are physically inconsistent or the species is unknown."""


class GeometryError(RydPairError, ValueError):
    """Spatial configuration of the atoms (and surface) is inconsistent."""


class NotReadyError(RydPairError, RuntimeError):
    """Operation invoked before the stages it depends on were built."""


class ConvergenceError(RydPairError, RuntimeError):
    """Iterative eigensolver did not reach the requested tolerance."""


class CacheIOError(RydPairError, OSError):
    """Durable tier of the matrix element cache is unavailable."""


__all__ = [
    "RydPairError",
    "InvalidStateError",
    "GeometryError",
    "NotReadyError",
    "ConvergenceError",
    "CacheIOError",
]
