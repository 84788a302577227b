"""Directory snapshot: classify fetched entries and project group membership.

A :class:`DirectorySnapshot` owns one immutable, ordered list of entries
and the compiled rules.  The user/group partition is computed on first use
and memoised for the lifetime of the snapshot; re-classifying means
building a new snapshot.

Nothing in here raises on bad data.  An unknown DN, a missing attribute or
a broken pattern just means "not a member" / "no match".
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Tuple

from .filters import CompiledFilterNode, FilterNode, compile_filter
from .membership import CompiledMembershipNode, MembershipNode, compile_membership
from .models import Group, LdapEntry, User, UsersAndGroups
from .rules import SyncRules

__all__ = [
    "Classification",
    "MembershipStatus",
    "DirectorySnapshot",
    "classify",
    "project",
    "simple_name",
]


def simple_name(dn: str) -> str:
    """Value of the first RDN, e.g. ``johnd`` for ``uid=johnd,ou=users,...``.

    Returns an empty string if the first RDN has no ``=``.
    """
    _, sep, value = dn.split(",", 1)[0].partition("=")
    return value if sep else ""


@dataclass(frozen=True, slots=True)
class Classification:
    users: Tuple[LdapEntry, ...]
    groups: Tuple[LdapEntry, ...]


def classify(
    entries: Iterable[LdapEntry],
    user_filter: FilterNode | CompiledFilterNode,
    group_filter: FilterNode | CompiledFilterNode,
) -> Classification:
    """Partition *entries* into users and groups, preserving fetch order.

    An entry may land in neither, either or both lists; overlapping filters
    are a configuration concern.
    """
    entries = tuple(entries)
    uf = compile_filter(user_filter)
    gf = compile_filter(group_filter)
    return Classification(
        users=tuple(e for e in entries if uf.matches(e)),
        groups=tuple(e for e in entries if gf.matches(e)),
    )


class MembershipStatus(Enum):
    """Detailed answer of :meth:`DirectorySnapshot.membership_status`."""

    MEMBER = "member"
    NOT_MEMBER = "not_member"
    UNKNOWN_USER = "unknown_user"
    UNKNOWN_GROUP = "unknown_group"


class DirectorySnapshot:
    """Entries fetched in one sync operation plus the rules to interpret them."""

    def __init__(self, entries: Iterable[LdapEntry], rules: SyncRules) -> None:
        self.entries: Tuple[LdapEntry, ...] = tuple(entries)
        self._user_filter = compile_filter(rules.user_filter)
        self._group_filter = compile_filter(rules.group_filter)
        self._membership: CompiledMembershipNode = compile_membership(rules.membership)
        self._classification: Classification | None = None
        self._users_by_dn: Dict[str, LdapEntry] = {}
        self._groups_by_dn: Dict[str, LdapEntry] = {}

    def __repr__(self) -> str:
        return f"DirectorySnapshot({len(self.entries)} entries)"

    def classify(self) -> Classification:
        """Return the user/group partition, computing it only once."""
        if self._classification is None:
            self._classification = classify(self.entries, self._user_filter, self._group_filter)
            # on duplicate DNs the last entry wins
            self._users_by_dn = {u.dn: u for u in self._classification.users}
            self._groups_by_dn = {g.dn: g for g in self._classification.groups}
        return self._classification

    @property
    def users(self) -> Tuple[LdapEntry, ...]:
        return self.classify().users

    @property
    def groups(self) -> Tuple[LdapEntry, ...]:
        return self.classify().groups

    def membership_status(self, user_dn: str, group_dn: str) -> MembershipStatus:
        """Like :meth:`is_member` but tells unknown DNs apart from non-members."""
        self.classify()
        group = self._groups_by_dn.get(group_dn)
        if group is None:
            return MembershipStatus.UNKNOWN_GROUP
        user = self._users_by_dn.get(user_dn)
        if user is None:
            return MembershipStatus.UNKNOWN_USER
        if self._membership.is_member(user, group):
            return MembershipStatus.MEMBER
        return MembershipStatus.NOT_MEMBER

    def is_member(self, user_dn: str, group_dn: str) -> bool:
        """Check whether *user_dn* belongs to *group_dn*.

        Returns ``False`` both for non-members and for DNs that are not a
        classified user/group; use :meth:`membership_status` to tell them
        apart.
        """
        return self.membership_status(user_dn, group_dn) is MembershipStatus.MEMBER

    def users_and_groups(self) -> UsersAndGroups:
        """Build the membership report: every user, every group and its member DNs."""
        report = UsersAndGroups(
            users=[User(id=simple_name(u.dn), dn=u.dn) for u in self.users],
            groups=[Group(id=simple_name(g.dn), dn=g.dn) for g in self.groups],
        )
        for user in report.users:
            for group in report.groups:
                if self.is_member(user.dn, group.dn):
                    group.members.append(user.dn)
        return report


def project(
    entries: Iterable[LdapEntry],
    user_filter: FilterNode | CompiledFilterNode,
    group_filter: FilterNode | CompiledFilterNode,
    associator: MembershipNode,
) -> UsersAndGroups:
    """One-shot helper: classify *entries* and return the membership report."""
    rules = SyncRules(user_filter=user_filter, group_filter=group_filter, membership=associator)
    return DirectorySnapshot(entries, rules).users_and_groups()
