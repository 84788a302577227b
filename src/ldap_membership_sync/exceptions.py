"""Exceptions raised outside the evaluation core.

Rule evaluation itself never raises: missing attributes, unknown DNs and
broken patterns all degrade to "no match".  Everything here belongs either
to talking to the directory server or to loading configuration.
"""
from __future__ import annotations

__all__ = [
    "DirectorySyncError",
    "DirectoryConnectionError",
    "DirectoryAuthenticationError",
    "DirectorySearchError",
    "RuleConfigError",
]


class DirectorySyncError(Exception):
    """Base class for all errors raised by this package."""


class DirectoryConnectionError(DirectorySyncError):
    """Socket, TLS or StartTLS failure while reaching the directory."""


class DirectoryAuthenticationError(DirectorySyncError):
    """The sync account bind was rejected."""


class DirectorySearchError(DirectorySyncError):
    """A (paged) search against one of the base DNs failed."""

    def __init__(self, base_dn: str, message: str) -> None:
        super().__init__(f"Search under {base_dn!r} failed: {message}")
        self.base_dn = base_dn


class RuleConfigError(DirectorySyncError):
    """A user/group filter or membership rule document is malformed."""
