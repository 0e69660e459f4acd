"""Host discovery used by deployment preflight checks."""

from .hwdetect import SystemDetector

__all__ = ["SystemDetector"]
