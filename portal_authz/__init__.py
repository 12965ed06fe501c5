"""Permission resolution and management engine for the operations portal."""

__version__ = "1.0.0"
