# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Configuration management using Pydantic.

Groups the numerical knobs of a calculation (cache location, interaction
orders, eigensolver strategy) so that a sweep can be reproduced from a
single YAML file.

File: rydpair/config.py
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class SolverStrategy(str, Enum):
    """Eigensolver selection."""
    AUTO = "auto"
    DENSE = "dense"
    DAVIDSON = "davidson"
    SHIFT_INVERT = "shift_invert"


# ============================================================================
# Sub-Configurations
# ============================================================================

class CacheConfig(BaseModel):
    """Matrix element cache location; ``directory=None`` keeps it in memory."""
    model_config = ConfigDict(frozen=True)

    directory: Optional[Path] = None
    filename: str = "matrix_elements.db"
    timeout: float = 30.0  # SQLite busy timeout [s]


class InteractionConfig(BaseModel):
    """Multipole expansion of the pair interaction."""
    model_config = ConfigDict(frozen=True)

    order_max: int = Field(3, ge=3)  # 3 = dipole-dipole, 4 = +dipole-quadrupole, ...
    drop_threshold: float = 1e-12  # |V_ij| [GHz] below which couplings are discarded

    @field_validator("drop_threshold")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("drop_threshold must be non-negative")
        return value


class SolverConfig(BaseModel):
    """
    Diagonalization parameters.

    ``energy_window`` selects a spectral window for the dense solver,
    ``target``/``n_roots`` select eigenpairs nearest a target energy for the
    iterative solvers.
    """
    model_config = ConfigDict(frozen=True)

    strategy: SolverStrategy = SolverStrategy.AUTO
    dense_limit: int = 2000
    density_limit: float = 0.1
    n_roots: int = Field(6, ge=1)
    target: Optional[float] = None  # [GHz]
    energy_window: Optional[tuple[float, float]] = None  # [GHz]
    max_cycle: int = 200
    max_restarts: int = Field(3, ge=0)
    prune_threshold: float = 0.0


class RunConfig(BaseModel):
    """Static snapshot of a calculation's numerical settings."""
    cache: CacheConfig = Field(default_factory=CacheConfig)
    interaction: InteractionConfig = Field(default_factory=InteractionConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "RunConfig":
        """Load from YAML file; relative cache directories resolve next to it."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        cache = data.get("cache") or {}
        directory = cache.get("directory")
        if directory is not None and not Path(directory).is_absolute():
            cache["directory"] = str(path.parent / directory)
            data["cache"] = cache

        return cls(**data)

    def save(self, path: Union[str, Path]) -> None:
        """Save to YAML file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)


__all__ = [
    "SolverStrategy",
    "CacheConfig",
    "InteractionConfig",
    "SolverConfig",
    "RunConfig",
]
