"""Flux Studio batch pipeline for image AI tools."""

__version__ = "1.0.0"
