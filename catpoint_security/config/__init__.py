"""Configuration components for the catpoint security system."""

from .defaults import (
    DEFAULT_PATHS,
    MODEL_SETTINGS
)

__all__ = [
    'DEFAULT_PATHS',
    'MODEL_SETTINGS'
]
