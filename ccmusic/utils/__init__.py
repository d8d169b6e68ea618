"""Utility modules."""

from ccmusic.utils.errors import (
    CcmusicError,
    ConversionError,
    InvalidNameError,
    ToolProvisioningError,
)
from ccmusic.utils.logging import setup_logging

__all__ = [
    "CcmusicError",
    "ConversionError",
    "InvalidNameError",
    "ToolProvisioningError",
    "setup_logging",
]
