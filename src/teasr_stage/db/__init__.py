# src/teasr_stage/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, SessionLocal, engine, get_db

__all__ = ["Base", "engine", "get_db", "SessionLocal"]
