# src/teasr_stage/models/ids.py
"""Identifier helpers for ORM models."""

import uuid


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return str(uuid.uuid4())
