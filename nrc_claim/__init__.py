"""Claim Nike Run Club activities and convert them to GPX."""

__version__ = "0.1.0"
