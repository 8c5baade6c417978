"""Reconciles design-survey and field-survey pole data into per-pole records."""

__version__ = "1.0.0"
