"""
Docker Compose integration services.

Parses compose files into typed documents for image and bind-mount discovery.
"""

from .models import BindMount, ComposeDocument, ComposeService
from .parser import ComposeFileError, ComposeParser, interpolate

__all__ = [
    "BindMount",
    "ComposeDocument",
    "ComposeService",
    "ComposeFileError",
    "ComposeParser",
    "interpolate",
]
