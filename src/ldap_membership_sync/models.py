"""Plain data types shared by the Directory Source and the evaluation core.

Entries are frozen and hold tuples so a fetched snapshot cannot change
under the classifier.  Attribute names are compared case-sensitively; an
entry may carry the same attribute name more than once.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Tuple

__all__ = [
    "LdapAttribute",
    "LdapEntry",
    "User",
    "Group",
    "UsersAndGroups",
    "AuthResult",
]


@dataclass(frozen=True, slots=True)
class LdapAttribute:
    """An LDAP attribute: a name and an ordered list of values."""

    name: str
    values: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.name} -> {list(self.values)}"


@dataclass(frozen=True, slots=True)
class LdapEntry:
    dn: str
    attributes: Tuple[LdapAttribute, ...] = ()

    @classmethod
    def build(cls, dn: str, attributes: dict[str, list[str]] | None = None) -> "LdapEntry":
        """Convenience constructor from a ``{name: [values]}`` mapping."""
        attrs = tuple(LdapAttribute(name, tuple(vals)) for name, vals in (attributes or {}).items())
        return cls(dn=dn, attributes=attrs)

    def get_values(self, name: str) -> Tuple[str, ...] | None:
        """Values of the first attribute called *name*, ``None`` if absent."""
        for att in self.attributes:
            if att.name == name:
                return att.values
        return None

    def has_value(self, name: str, value: str) -> bool:
        return any(att.name == name and value in att.values for att in self.attributes)

    def any_value_matches(self, name: str, regex: re.Pattern[str]) -> bool:
        """True if some value of attribute *name* contains a match of *regex*."""
        for att in self.attributes:
            if att.name != name:
                continue
            for v in att.values:
                if regex.search(v):
                    return True
        return False

    def __repr__(self) -> str:  # pragma: no cover – cosmetic
        return f"LdapEntry(dn={self.dn!r}, attributes={len(self.attributes)} items)"


# Report ---------------------------------------------------------------------


@dataclass(slots=True)
class User:
    id: str  # simple name, e.g. johnd
    dn: str  # e.g. uid=johnd,ou=users,dc=company,dc=com


@dataclass(slots=True)
class Group:
    id: str
    dn: str
    members: List[str] = field(default_factory=list)  # user DNs


@dataclass(slots=True)
class UsersAndGroups:
    """Membership report produced by a sync cycle."""

    users: List[User] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)

    def group(self, dn: str) -> Group | None:
        return next((g for g in self.groups if g.dn == dn), None)


@dataclass(slots=True)
class AuthResult:
    """Outcome of :func:`ldap_membership_sync.ldap_client.authenticate`."""

    success: bool
    error_message: str = ""
