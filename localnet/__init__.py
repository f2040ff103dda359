"""Local test network runner."""

__version__ = "0.1.0"
