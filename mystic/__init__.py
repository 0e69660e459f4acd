"""mystic - offline transfer toolkit for the Mystic Home Server."""

__version__ = "0.1.0"
