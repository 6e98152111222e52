"""
cachestack — Observability Module

Structured JSON logging for the cachestack logger tree.

Usage:
    from cachestack.observability import setup_logging

    setup_logging("DEBUG")
"""

from .logging import JSONFormatter, setup_logging

__all__ = [
    "JSONFormatter",
    "setup_logging",
]
