"""College basketball lineup and player statistics engine."""

__version__ = "0.1.0"
