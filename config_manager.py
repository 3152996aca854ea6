"""
Configuration management for the dither lab.
Handles loading, merging with defaults, and saving render settings.
"""

import copy
import json
import logging
import os
from typing import Any, Dict

__all__ = [
    'ConfigManager',
]

logger = logging.getLogger(__name__)


class ConfigManager:
    """Render settings backed by a JSON file, with every missing key filled from defaults."""

    DEFAULT_CONFIG = {
        # Source sizing and the core pipeline
        "render": {
            "width": 256,
            "height": 256,
            "scale_mode": "cover",  # "cover", "contain", "stretch", "none"
            "gradient_mode": "oklab",  # color space used to blend gradient sources
            "dither_mode": "bayer4",
            "dither_strength": 0.25,
            "seed": 0,
            "kernel": "floyd-steinberg",
            "voronoi_cells": 8,
            "voronoi_jitter": 0.85,
            "reduction": "palette",  # "none", "palette", "binary"
            "binary_threshold": 127,
            "distance_space": "oklab",
            "gamma": 1.0
        },

        # Statistical fit of the source distribution toward the palette
        "gamut": {
            "enabled": False,
            "color_space": "oklab",
            "overall": 1.0,
            "translation": 1.0,
            "rotation": 0.0,
            "axis": [1.0, 1.0, 1.0],
            "max_sample_points": 4096
        },

        # Pull colors toward nearby palette entries before dithering
        "palette_nudge": {
            "enabled": False,
            "softness": 0.035,
            "lightness_strength": 0.35,
            "chroma_strength": 0.5,
            "ambiguity_boost": 0.0
        },

        # Scale dither strength by palette error / ambiguity
        "modulation": {
            "error_enabled": False,
            "error_normalizer": 0.25,
            "error_exponent": 1.0,
            "error_bias": 0.0,
            "ambiguity_enabled": False,
            "ambiguity_exponent": 1.0,
            "ambiguity_bias": 0.0
        },

        # Reduce dither on edges
        "masking": {
            "strength": 0.0
        },

        "perceptual": {
            "blur_radius": 1.25,
            "distance_space": "oklab"
        },

        "output": {
            "prefix": "preview",
            "stages": ["source", "dither", "reduced"]
        }
    }

    def __init__(self, config_file: str = "dither_lab.json", create_if_missing: bool = False):
        """
        Initialize config manager.

        Args:
            config_file: Path to config file
            create_if_missing: Write the defaults to config_file when it does not exist
        """
        self.config_file = config_file
        self.create_if_missing = create_if_missing
        self.config = self._load_config()

    @classmethod
    def with_defaults(cls, loaded: Dict) -> Dict:
        """Return a fresh dict of the defaults with ``loaded`` merged over them."""
        return cls._merge_configs(copy.deepcopy(cls.DEFAULT_CONFIG), loaded or {})

    def _load_config(self) -> Dict:
        """Load config from file, or fall back to defaults if it does not exist."""
        if os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.error(f"Error loading config {self.config_file}: {e}")
                return copy.deepcopy(self.DEFAULT_CONFIG)
            if not isinstance(loaded, dict):
                logger.warning(f"Config {self.config_file} is not a JSON object; using defaults")
                return copy.deepcopy(self.DEFAULT_CONFIG)
            return self.with_defaults(loaded)

        config = copy.deepcopy(self.DEFAULT_CONFIG)
        if self.create_if_missing:
            self.config = config
            self.save()
        return config

    @staticmethod
    def _merge_configs(default: Dict, loaded: Dict) -> Dict:
        """
        Recursively merge loaded config with defaults.
        Ensures all default keys exist even if not in loaded config; keys only
        present in ``loaded`` are kept as well.
        """
        for key, value in loaded.items():
            if isinstance(default.get(key), dict) and isinstance(value, dict):
                default[key] = ConfigManager._merge_configs(default[key], value)
            else:
                default[key] = value
        return default

    def save(self):
        """Save current config to file."""
        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4)
        except OSError as e:
            logger.error(f"Error saving config {self.config_file}: {e}")

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get config value by nested keys.

        Example:
            config.get("render", "dither_mode")  # Returns "bayer4"
        """
        value = self.config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, *keys: str, value: Any):
        """
        Set config value by nested keys.

        Example:
            config.set("render", "gamma", value=2.2)
        """
        if len(keys) == 0:
            return

        current = self.config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value
