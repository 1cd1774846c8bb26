"""
seqframe Configuration

Environment-driven protocol settings.
"""

from .schemas import ProtocolSettings
from .settings import get_settings, load_settings

__all__ = [
    "ProtocolSettings",
    "get_settings",
    "load_settings",
]
