"""Pydantic schemas for source records, papers, evidence and API responses."""
