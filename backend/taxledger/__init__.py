"""FIFO tax lot accounting with fiscal year profit aggregation."""

__version__ = "1.0.0"
