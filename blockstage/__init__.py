"""Block program execution engine for stage actors."""

__version__ = "0.1.0"
