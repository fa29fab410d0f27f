"""Asynchronous automation pipeline for a multi-platform inbox."""

__version__ = "0.1.0"
