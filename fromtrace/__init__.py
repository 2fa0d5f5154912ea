"""Provenance tracking and traversal for string values"""

__version__ = "0.1.0"
