"""Threat-intelligence feed clients."""

from .abuseipdb import AbuseIpDbClient

__all__ = ["AbuseIpDbClient"]
