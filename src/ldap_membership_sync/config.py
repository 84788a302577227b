"""Central configuration dataclass loaded from environment variables.

Connection settings for the directory server live here.  The user/group
filters and membership rules are structured data and are read from the JSON
file named by ``LDAP_RULES_FILE`` (see :mod:`ldap_membership_sync.rules`).
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from typing import List

from .core.constants import (
    YES_VALUES,
    TLS_MODES,
    DEFAULT_LDAP_SERVER,
    DEFAULT_LDAP_PORT,
    DEFAULT_LDAP_TLS,
    DEFAULT_LDAP_PAGE_SIZE,
    DEFAULT_LDAP_TIMEOUT,
    DEFAULT_SYNC_INTERVAL,
    DEFAULT_MAX_FAILURES,
)

logger = logging.getLogger("ldap_membership_sync.config")


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip() in YES_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def split_dn_list(raw: str | None) -> List[str]:
    """Split a list of DNs.

    The delimiter is a semicolon, a pipe or a comma *followed by whitespace*.
    Commas inside a DN are not followed by whitespace, so
    ``"ou=a,dc=x, ou=b,dc=x"`` yields two DNs.
    """
    if not raw:
        return []
    return [p.strip() for p in re.split(r";|\||,\s+", raw) if p.strip()]


def sanitize_dn(dn: str) -> str:
    """Placeholder for DN sanitisation against LDAP injection.

    See https://cheatsheetseries.owasp.org/cheatsheets/LDAP_Injection_Prevention_Cheat_Sheet.html
    """
    # TODO: escape RFC 4514 special characters once untrusted input reaches this path
    return dn


@dataclass(slots=True)
class Config:
    """Runtime configuration derived from environment variables."""

    # LDAP --------------------------------------------------------------
    ldap_server: str = field(default_factory=lambda: os.getenv('LDAP_SERVER', DEFAULT_LDAP_SERVER))
    ldap_port: int = field(default_factory=lambda: _env_int('LDAP_PORT', DEFAULT_LDAP_PORT))
    ldap_tls: str = field(default_factory=lambda: os.getenv('LDAP_TLS', DEFAULT_LDAP_TLS))
    ldap_base_dns: List[str] = field(default_factory=lambda: split_dn_list(os.getenv('LDAP_BASE_DNS')))

    ldap_requires_auth: bool = field(default_factory=lambda: _env_bool('LDAP_REQUIRES_AUTH', False))
    ldap_bind_dn: str = field(default_factory=lambda: os.getenv('LDAP_BIND_DN', ''))
    ldap_bind_password: str = field(default_factory=lambda: os.getenv('LDAP_BIND_PASSWORD', ''))

    ldap_page_size: int = field(default_factory=lambda: _env_int('LDAP_PAGE_SIZE', DEFAULT_LDAP_PAGE_SIZE))
    ldap_timeout: int = field(default_factory=lambda: _env_int('LDAP_TIMEOUT', DEFAULT_LDAP_TIMEOUT))

    ignore_ldaps_cert: bool = field(default_factory=lambda: _env_bool('IGNORE_LDAPS_CERT', False))
    ldap_ca_file: str | None = field(default_factory=lambda: os.getenv('LDAP_CA_FILE') or None)

    # Rules -------------------------------------------------------------
    rules_file: str | None = field(default_factory=lambda: os.getenv('LDAP_RULES_FILE') or None)

    # Loop --------------------------------------------------------------
    sync_interval: int = field(default_factory=lambda: _env_int('SYNC_INTERVAL', DEFAULT_SYNC_INTERVAL))
    max_failures: int = field(default_factory=lambda: _env_int('MAX_CONSECUTIVE_FAILURES', DEFAULT_MAX_FAILURES))
    run_once: bool = field(default_factory=lambda: _env_bool('RUN_ONCE', False))

    debug: str = field(default_factory=lambda: os.getenv('DEBUG', '').upper())

    def __post_init__(self) -> None:
        self.ldap_tls = self.ldap_tls.strip().lower() or DEFAULT_LDAP_TLS
        if self.ldap_tls not in TLS_MODES:
            raise ValueError(f"LDAP_TLS must be one of {', '.join(TLS_MODES)}, got {self.ldap_tls!r}")
        if self.ldap_page_size < 1:
            logger.warning("LDAP_PAGE_SIZE must be positive, using %s", DEFAULT_LDAP_PAGE_SIZE)
            self.ldap_page_size = DEFAULT_LDAP_PAGE_SIZE

    def sanitized(self) -> "Config":
        """Return the config with every base DN passed through :func:`sanitize_dn`."""
        return replace(self, ldap_base_dns=[sanitize_dn(dn) for dn in self.ldap_base_dns])
