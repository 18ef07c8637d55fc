"""
Configuration module for the brain cycle service.

This module provides centralized configuration: encoding and cycle
constants, agent role defaults, and environment-driven settings.
"""

from .constants import (
    VECTOR_SIZE,
    STEPS_PER_CYCLE,
    MAX_FALLBACK_TEXT_CHARS,
    ROLE_TRANSLATOR,
    ROLE_COGNITIVE,
)
from .settings import Settings, load_settings
