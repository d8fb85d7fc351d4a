"""Persisted session rows."""

from .table import SessionTable

__all__ = ["SessionTable"]
