"""blockpad: structured block document engine."""

__version__ = "0.1.0"
