"""Interface counters, per-process network activity, host statistics and connection analysis for Unix systems."""

__version__ = "0.2.0"