"""Procedural world generation on a Voronoi poly map."""

__version__ = "0.1.0"
