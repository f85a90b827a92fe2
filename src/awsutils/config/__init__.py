"""Configuration management for awsutils.

This module exports the main Settings class and configuration utilities.
"""

from awsutils.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
