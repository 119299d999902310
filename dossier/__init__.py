"""Claim dossier pipeline: literature search, evidence extraction, verdict synthesis."""

__version__ = "0.1.0"
