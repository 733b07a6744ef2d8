"""Shared schema exports."""

from .account import AccountSummary, PublicProfile

__all__ = [
    "AccountSummary",
    "PublicProfile",
]
