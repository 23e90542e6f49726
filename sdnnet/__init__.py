"""Cluster network models, validation, parsing and egress DNS tracking."""

__version__ = "0.1.0"