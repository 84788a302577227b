"""LDAP client: fetch the raw directory snapshot and authenticate users.

Built on *ldap3* so it works with any directory flavour (389ds/FreeIPA,
OpenLDAP, Active Directory…).  No filtering happens server side: every
entry below each base DN is fetched with ``(objectClass=*)`` and all user
attributes, and classification is left to
:mod:`ldap_membership_sync.snapshot`.

Features
~~~~~~~~
* Transport modes ``none`` (plain ``ldap://``), ``tls`` (implicit TLS) and
  ``starttls`` (plain connection upgraded with StartTLS).
* Certificate handling: ignore the certificate, or validate against a CA
  file.
* Optional simple bind with a sync account.
* Paged subtree search over one or more base DNs; results of all pages and
  bases are concatenated in order.
* Every failure is raised as one of the typed errors from
  :mod:`ldap_membership_sync.exceptions`.

:func:`authenticate` is a separate one-shot bind used to check a user's
credentials.  A rejected password is *not* an error: it is reported as
``AuthResult(success=False, ...)``.
"""
from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Sequence

from ldap3 import ALL_ATTRIBUTES, NONE, SUBTREE, Connection, Server, Tls
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException

from .config import sanitize_dn
from .core.constants import (
    DEFAULT_LDAP_PAGE_SIZE,
    DEFAULT_LDAP_PORT,
    DEFAULT_LDAP_TIMEOUT,
    DEFAULT_SEARCH_FILTER,
    TLS_IMPLICIT,
    TLS_MODES,
    TLS_NONE,
    TLS_STARTTLS,
)
from .exceptions import DirectoryAuthenticationError, DirectoryConnectionError, DirectorySearchError
from .models import AuthResult, LdapAttribute, LdapEntry

logger = logging.getLogger("ldap_membership_sync.ldap")

__all__ = ["AuthRequest", "fetch_entries", "authenticate"]

ConnectionFactory = Callable[..., Connection]


# Helper ---------------------------------------------------------------------


def _build_server(
    host: str,
    port: int,
    tls_mode: str,
    ignore_cert: bool = False,
    ca_file: str | None = None,
    timeout: int | float = DEFAULT_LDAP_TIMEOUT,
) -> Server:
    """Build an ldap3 :class:`Server` with correct TLS settings."""
    tls: Tls | None = None
    if tls_mode != TLS_NONE:
        if ignore_cert:
            tls = Tls(validate=ssl.CERT_NONE)
        elif ca_file:
            tls = Tls(validate=ssl.CERT_REQUIRED, ca_certs_file=ca_file)
        else:
            tls = Tls()
    return Server(
        host,
        port=port,
        use_ssl=tls_mode == TLS_IMPLICIT,
        tls=tls,
        get_info=NONE,
        connect_timeout=timeout,
    )


def _open(conn: Connection, tls_mode: str, where: str) -> None:
    """Open the socket and negotiate StartTLS if requested."""
    try:
        conn.open()
        if tls_mode == TLS_STARTTLS and not conn.start_tls():
            raise DirectoryConnectionError(f"StartTLS refused by {where}: {conn.result}")
    except LDAPException as exc:
        raise DirectoryConnectionError(f"Cannot connect to {where}: {exc}") from exc


def _close(conn: Connection) -> None:
    if not conn.closed:
        conn.unbind()


def _decode(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _to_entry(item: Mapping[str, Any]) -> LdapEntry:
    """Materialise one ``searchResEntry`` response into an :class:`LdapEntry`."""
    raw = item.get("raw_attributes") or {}
    attributes = []
    for name, values in raw.items():
        if not isinstance(values, (list, tuple)):
            values = [values]
        attributes.append(LdapAttribute(name=name, values=tuple(_decode(v) for v in values)))
    return LdapEntry(dn=item.get("dn", ""), attributes=tuple(attributes))


# Public API -----------------------------------------------------------------


def fetch_entries(
    *,
    server: str,
    base_dns: Sequence[str],
    port: int = DEFAULT_LDAP_PORT,
    tls: str = TLS_NONE,
    requires_auth: bool = False,
    bind_dn: str = "",
    bind_password: str = "",
    page_size: int = DEFAULT_LDAP_PAGE_SIZE,
    ignore_cert: bool = False,
    ca_file: str | None = None,
    timeout: int | float = DEFAULT_LDAP_TIMEOUT,
    connection_factory: ConnectionFactory = Connection,
) -> List[LdapEntry]:
    """Retrieve every entry below each of *base_dns*.

    Raises :class:`DirectoryConnectionError`,
    :class:`DirectoryAuthenticationError` or :class:`DirectorySearchError`.
    """
    ldap_server = _build_server(server, port, tls, ignore_cert=ignore_cert, ca_file=ca_file, timeout=timeout)
    where = f"{server}:{port}"
    conn = connection_factory(
        ldap_server,
        user=bind_dn if requires_auth else None,
        password=bind_password if requires_auth else None,
        raise_exceptions=True,
        receive_timeout=timeout,
    )

    entries: list[LdapEntry] = []
    try:
        _open(conn, tls, where)

        if requires_auth:
            logger.debug(f"Binding to {where} as {bind_dn}")
            try:
                bound = conn.bind()
            except LDAPCommunicationError as exc:
                raise DirectoryConnectionError(f"Connection to {where} lost during bind: {exc}") from exc
            except LDAPException as exc:
                raise DirectoryAuthenticationError(f"Bind as {bind_dn!r} rejected: {exc}") from exc
            if not bound:
                raise DirectoryAuthenticationError(f"Bind as {bind_dn!r} rejected: {conn.result}")

        for base_dn in base_dns:
            base_dn = sanitize_dn(base_dn)
            logger.debug(f"Fetching LDAP at {base_dn} with filter: {DEFAULT_SEARCH_FILTER} (page size {page_size})")
            count = 0
            try:
                for item in conn.extend.standard.paged_search(
                    search_base=base_dn,
                    search_filter=DEFAULT_SEARCH_FILTER,
                    search_scope=SUBTREE,
                    attributes=ALL_ATTRIBUTES,
                    paged_size=page_size,
                    generator=True,
                ):
                    if item.get("type") != "searchResEntry":
                        continue  # referrals, intermediate responses
                    entries.append(_to_entry(item))
                    count += 1
            except LDAPException as exc:
                raise DirectorySearchError(base_dn, str(exc)) from exc
            logger.debug("Fetched %d entries under %s", count, base_dn)
    finally:
        _close(conn)

    return entries


@dataclass(slots=True)
class AuthRequest:
    """Credentials to check with :func:`authenticate`.

    The bind DN is ``"{uid}={user},{base_dn}"``, e.g.
    ``uid=johnd,ou=users,dc=example,dc=org``.
    """

    server: str
    user: str
    password: str
    base_dn: str
    uid: str = "uid"
    port: int = DEFAULT_LDAP_PORT
    tls: str = TLS_NONE

    def __post_init__(self) -> None:
        self.tls = (self.tls or TLS_NONE).strip().lower()
        if self.tls not in TLS_MODES:
            raise ValueError(f"tls must be one of {', '.join(TLS_MODES)}, got {self.tls!r}")

    @property
    def bind_dn(self) -> str:
        return f"{self.uid}={sanitize_dn(self.user)},{sanitize_dn(self.base_dn)}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthRequest":
        """Build from the JSON payload ``{server, port, tls, uid, urdns, user, pwd}``."""
        port = data.get("port") or DEFAULT_LDAP_PORT
        return cls(
            server=data["server"],
            port=int(port),
            tls=data.get("tls") or TLS_NONE,
            uid=data.get("uid") or "uid",
            base_dn=data.get("urdns", ""),
            user=data.get("user", ""),
            password=data.get("pwd", ""),
        )

    def __repr__(self) -> str:  # pragma: no cover – cosmetic
        return f"AuthRequest(server={self.server!r}, port={self.port}, tls={self.tls!r}, bind_dn={self.bind_dn!r})"


def authenticate(
    request: AuthRequest,
    *,
    ignore_cert: bool = False,
    ca_file: str | None = None,
    timeout: int | float = DEFAULT_LDAP_TIMEOUT,
    connection_factory: ConnectionFactory = Connection,
) -> AuthResult:
    """Check a user's password with a one-shot simple bind.

    Returns ``AuthResult(success=False, error_message=...)`` when the
    directory rejects the credentials; only transport failures raise
    :class:`DirectoryConnectionError`.
    """
    if not request.password:
        # an empty password would turn into an anonymous bind and "succeed"
        return AuthResult(success=False, error_message="empty password not allowed")

    ldap_server = _build_server(request.server, request.port, request.tls, ignore_cert=ignore_cert, ca_file=ca_file, timeout=timeout)
    where = f"{request.server}:{request.port}"
    conn = connection_factory(
        ldap_server,
        user=request.bind_dn,
        password=request.password,
        raise_exceptions=False,
        receive_timeout=timeout,
    )

    try:
        _open(conn, request.tls, where)
        try:
            bound = conn.bind()
        except LDAPCommunicationError as exc:
            raise DirectoryConnectionError(f"Connection to {where} lost during bind: {exc}") from exc
        except LDAPException as exc:
            # some ldap3 strategies raise on a rejected bind even without raise_exceptions
            logger.info("Authentication failed for %s: %s", request.bind_dn, exc)
            return AuthResult(success=False, error_message=str(exc))
        result = dict(conn.result or {})
    finally:
        _close(conn)

    if not bound:
        message = result.get("message") or result.get("description") or "invalid credentials"
        logger.info("Authentication failed for %s: %s", request.bind_dn, message)
        return AuthResult(success=False, error_message=message)

    logger.debug("Authentication succeeded for %s", request.bind_dn)
    return AuthResult(success=True)
