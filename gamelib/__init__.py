"""GameLib: cross-platform game library sync."""

__version__ = "1.0.0"
