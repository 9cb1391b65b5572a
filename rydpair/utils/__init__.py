# Copyright 2025 The RydPair Authors - All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared utilities (logging)."""

from .logger import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
