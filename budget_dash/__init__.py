"""Finance aggregation library and HTTP backend for the budget dashboard."""

__version__ = "0.1.0"
