"""Confidential health score client."""

__version__ = "0.1.0"
