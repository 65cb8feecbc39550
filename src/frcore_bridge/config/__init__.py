"""Configuration module for the FR-Core HL7 bridge."""

from frcore_bridge.config.base import Settings
from frcore_bridge.config.loader import get_settings

__all__ = ["Settings", "get_settings"]
