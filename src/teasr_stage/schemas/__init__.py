# src/teasr_stage/schemas/__init__.py
"""Pydantic schemas for API request and response validation."""
