"""
Configuration System

Manages configuration for cortex-kg with a layered approach.

Configuration Priority (highest to lowest):
    1. Programmatic (passed to CortexConfig())
    2. Environment variables (CORTEX_* prefix, provider API keys)
    3. Config file (CortexConfig.from_file)
    4. Built-in defaults
"""

from cortex_kg.config.settings import CortexConfig

__all__ = ["CortexConfig"]
