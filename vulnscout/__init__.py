"""Options, vulnerability database management and cache operations for a vulnerability scanner."""

__version__ = "0.1.0"