"""Neurobrief - resilient daily neurotech news pipeline."""

__version__ = "0.4.0"
