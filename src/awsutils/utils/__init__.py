"""Utility modules for awsutils.

This package provides common utilities for:
- SSM command normalisation
"""

from awsutils.utils.commands import normalize_commands

__all__ = ["normalize_commands"]
