"""Warranty desk: ticket workflow engine for multi-tenant warranty claims."""

__version__ = "0.1.0"
