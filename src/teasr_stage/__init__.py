"""TEASR Stage: pay-to-reveal content service."""

__version__ = "0.1.0"
