"""Group membership associator.

Decides whether a user entry belongs to a group entry.  A
:class:`MembershipNode` chains :class:`Constraint` objects and child nodes
with AND/OR, exactly like a filter node, e.g. for ``posixGroup``::

    MembershipNode(Operator.OR, [Constraint("uid", "memberUid")])

and for ``groupOfNames`` plus ``memberOf`` overlays::

    MembershipNode(Operator.OR, [
        Constraint("dn", "member"),
        Constraint("memberOf", "dn"),
    ])
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from .core.constants import DN_ATTRIBUTE
from .filters import Operator, evaluate
from .models import LdapEntry

__all__ = ["Constraint", "MembershipNode", "CompiledMembershipNode", "compile_membership", "is_member"]


def _is_dn(name: str) -> bool:
    return name.lower() == DN_ATTRIBUTE


@dataclass(frozen=True, slots=True)
class Constraint:
    """Compare a user attribute with a group attribute; either may be ``dn``."""

    user_attribute: str  # e.g. memberOf
    group_attribute: str  # e.g. dn

    def is_member(self, user: LdapEntry, group: LdapEntry) -> bool:
        if _is_dn(self.user_attribute):
            if _is_dn(self.group_attribute):
                return user.dn == group.dn
            return group.has_value(self.group_attribute, user.dn)

        if _is_dn(self.group_attribute):
            return user.has_value(self.user_attribute, group.dn)

        user_values = user.get_values(self.user_attribute)
        group_values = group.get_values(self.group_attribute)
        if user_values is None or group_values is None:
            return False  # attribute missing on one side
        return not set(user_values).isdisjoint(group_values)


@dataclass(slots=True)
class MembershipNode:
    operator: Operator = Operator.AND
    constraints: List[Constraint] = field(default_factory=list)
    children: List["MembershipNode"] = field(default_factory=list)

    def is_member(self, user: LdapEntry, group: LdapEntry) -> bool:
        return evaluate(
            self.operator,
            self.constraints,
            self.children,
            lambda c: c.is_member(user, group),
            lambda child: child.is_member(user, group),
        )

    def compile(self) -> "CompiledMembershipNode":
        return compile_membership(self)


@dataclass(frozen=True, slots=True)
class CompiledMembershipNode:
    """Immutable copy of a :class:`MembershipNode`, safe to share."""

    operator: Operator
    constraints: Tuple[Constraint, ...] = ()
    children: Tuple["CompiledMembershipNode", ...] = ()

    def is_member(self, user: LdapEntry, group: LdapEntry) -> bool:
        return evaluate(
            self.operator,
            self.constraints,
            self.children,
            lambda c: c.is_member(user, group),
            lambda child: child.is_member(user, group),
        )


def compile_membership(node: MembershipNode | CompiledMembershipNode) -> CompiledMembershipNode:
    """Return an immutable, ready-to-evaluate copy of *node*."""
    if isinstance(node, CompiledMembershipNode):
        return node
    return CompiledMembershipNode(
        operator=node.operator,
        constraints=tuple(node.constraints),
        children=tuple(compile_membership(c) for c in node.children),
    )


def is_member(node: MembershipNode | CompiledMembershipNode, user: LdapEntry, group: LdapEntry) -> bool:
    """Return ``True`` if *user* belongs to *group* according to *node*."""
    return node.is_member(user, group)
