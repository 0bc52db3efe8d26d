"""Authenticated crawler that builds a deduplicated media catalog from a listing site."""

__version__ = "0.1.0"
