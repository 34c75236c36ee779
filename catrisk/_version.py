"""Version information for catrisk."""

__version__ = "0.3.0"
