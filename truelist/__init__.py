"""Truelist email validation client."""

__version__ = "0.1.0"
