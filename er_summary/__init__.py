"""Simplified ER diagrams for a chosen subset of tables, inferred from FK metadata."""

__version__ = "0.1.0"
