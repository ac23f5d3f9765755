"""Pydantic models for parsed documents and import results."""
