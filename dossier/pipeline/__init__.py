"""Dossier job pipeline: orchestration, job state and progress."""
