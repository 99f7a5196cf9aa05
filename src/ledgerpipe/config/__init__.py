# SPDX-License-Identifier: Apache-2.0
"""Configuration models and loading."""

from __future__ import annotations

from .loader import ConfigVersionError, load_config
from .streamer import CURRENT_CONFIG_VERSION, MIN_SUPPORTED_VERSION, StreamerConfig

__all__ = [
    "StreamerConfig",
    "load_config",
    "ConfigVersionError",
    "CURRENT_CONFIG_VERSION",
    "MIN_SUPPORTED_VERSION",
]
