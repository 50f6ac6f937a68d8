# Common utilities and shared modules
"""
Shared components used by the document, asset, serializer and publisher
packages:
- Project configuration
- Logging configuration
"""

from .config import PROJECT_ROOT, Settings, settings
from .logging import setup_logging

__all__ = [
    "PROJECT_ROOT",
    "Settings",
    "settings",
    "setup_logging",
]
