"""Faceted query engine for the business registry."""

__version__ = "0.1.0"
