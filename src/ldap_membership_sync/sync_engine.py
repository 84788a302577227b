"""Main synchronisation engine – fetch, classify, and project membership.

This module is intentionally *pure* apart from the injected fetcher (no
direct I/O except logging) so that it is easy to unit-test by providing a
stubbed fetcher.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Callable, List

from .config import Config
from .ldap_client import fetch_entries
from .models import LdapEntry, UsersAndGroups
from .rules import SyncRules, load_rules
from .snapshot import DirectorySnapshot

logger = logging.getLogger("ldap_membership_sync.engine")

__all__ = ["masked_config", "default_fetcher", "build_snapshot", "run_sync"]

Fetcher = Callable[[Config], List[LdapEntry]]


def masked_config(cfg: Config) -> dict:
    """Config as a dict with passwords and secrets replaced by ``***``."""
    cfg_dict = asdict(cfg)
    for k in cfg_dict:
        if any(s in k.lower() for s in ("password", "secret", "token")):
            cfg_dict[k] = "***"
    return cfg_dict


def default_fetcher(cfg: Config) -> List[LdapEntry]:
    return fetch_entries(
        server=cfg.ldap_server,
        port=cfg.ldap_port,
        tls=cfg.ldap_tls,
        base_dns=cfg.ldap_base_dns,
        requires_auth=cfg.ldap_requires_auth,
        bind_dn=cfg.ldap_bind_dn,
        bind_password=cfg.ldap_bind_password,
        page_size=cfg.ldap_page_size,
        ignore_cert=cfg.ignore_ldaps_cert,
        ca_file=cfg.ldap_ca_file,
        timeout=cfg.ldap_timeout,
    )


def build_snapshot(
    cfg: Config,
    *,
    fetcher: Fetcher | None = None,
    rules: SyncRules | None = None,
) -> DirectorySnapshot:
    """Fetch the directory and wrap it in a :class:`DirectorySnapshot`."""
    cfg = cfg.sanitized()
    logger.debug("Starting sync run with config: %s", masked_config(cfg))

    if rules is None:
        rules = load_rules(cfg.rules_file)

    entries = (fetcher or default_fetcher)(cfg)
    logger.debug("Fetched %d LDAP entries from %d base DN(s)", len(entries), len(cfg.ldap_base_dns))
    return DirectorySnapshot(entries, rules)


def run_sync(
    cfg: Config,
    *,
    fetcher: Fetcher | None = None,
    rules: SyncRules | None = None,
) -> UsersAndGroups:
    """Execute a full sync cycle and return the membership report.

    The *fetcher* and *rules* are injectable for unit-tests; if ``None``
    the LDAP server and the configured rules file are used.
    """
    snapshot = build_snapshot(cfg, fetcher=fetcher, rules=rules)

    report = snapshot.users_and_groups()
    for u in report.users:
        logger.debug("User: %s – %s", u.id, u.dn)
    for g in report.groups:
        logger.debug("Group: %s – %s – %d member(s)", g.id, g.dn, len(g.members))

    logger.info(
        "Sync complete: %d entries, %d users, %d groups, %d memberships",
        len(snapshot.entries),
        len(report.users),
        len(report.groups),
        sum(len(g.members) for g in report.groups),
    )
    return report
