"""Infra layer utilities (connection pooling)."""

from .pool import ConnectionPool

__all__ = ["ConnectionPool"]
