# backend/carteira/utils/__init__.py
"""
Utility modules for carteira.

This package contains cross-cutting utilities used throughout the application:
- logging: Logging configuration and setup
- date_utils: Calendar-date helpers (month arithmetic, year fractions)

Usage:
    from carteira.utils import setup_logging, get_logger
    from carteira.utils.date_utils import add_months
"""

from carteira.utils.logging import setup_logging, get_logger

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
]
