"""Project insight consolidation system."""

__version__ = "0.1.0"
