"""Turn-based tactical grid combat engine."""

__version__ = "0.1.0"
