"""Filter engine used to classify directory entries as users or groups.

A filter is a tree of AND/OR nodes.  Each node carries a list of
expressions and a list of child nodes, e.g. the LDAP filter::

    (&(memberOf=cn=access,cn=groups,dc=example,dc=org)(cn=*Developers*))

is written as::

    FilterNode(Operator.AND, [
        FilterExpression("memberOf", "cn=access,cn=groups,dc=example,dc=org"),
        FilterExpression("cn", "Developers"),
    ])

Expression semantics
~~~~~~~~~~~~~~~~~~~~
* ``name == "dn"`` (any case): the entry DN must equal ``value`` exactly.
  No regular expression is involved.
* any other ``name``: ``value`` is a regular expression and the expression
  matches when *some* value of that attribute contains a match
  (:func:`re.search`, not a full-string match).
* a pattern that does not compile never matches.  The rest of the tree is
  still evaluated.

Raw trees (:class:`FilterNode`) are plain mutable dataclasses, convenient
to build from configuration.  They are turned into immutable
:class:`CompiledFilterNode` trees by :func:`compile_filter` before any
evaluation, so regular expressions are compiled exactly once and a
compiled tree can be shared between threads.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Tuple, TypeVar, Union

from .core.constants import DN_ATTRIBUTE
from .models import LdapEntry

logger = logging.getLogger("ldap_membership_sync.filters")

__all__ = [
    "Operator",
    "evaluate",
    "FilterExpression",
    "FilterNode",
    "DnExpression",
    "RegexExpression",
    "CompiledFilterNode",
    "compile_filter",
    "matches",
]

P = TypeVar("P")
C = TypeVar("C")


class Operator(Enum):
    """Logical operator chaining a node's predicates and child nodes."""

    AND = "and"
    OR = "or"

    @classmethod
    def parse(cls, raw: Union[str, int, "Operator"]) -> "Operator":
        """Accept ``"and"``/``"or"``, ``"&"``/``"|"`` or the integers 0/1."""
        if isinstance(raw, Operator):
            return raw
        if isinstance(raw, bool):
            raise ValueError(f"Unknown operator {raw!r}")
        if isinstance(raw, int):
            if raw == 0:
                return cls.AND
            if raw == 1:
                return cls.OR
        elif isinstance(raw, str):
            val = raw.strip().lower()
            if val in ("and", "&"):
                return cls.AND
            if val in ("or", "|"):
                return cls.OR
        raise ValueError(f"Unknown operator {raw!r}")


def evaluate(
    operator: Operator,
    predicates: Iterable[P],
    children: Iterable[C],
    check_predicate: Callable[[P], bool],
    check_child: Callable[[C], bool],
) -> bool:
    """Short-circuiting AND/OR fold over a node's predicates, then its children.

    AND stops at the first failure and is true when nothing failed, so an
    empty AND node is satisfied.  OR stops at the first success and is false
    when nothing succeeded, so an empty OR node is not.
    """
    if operator is Operator.AND:
        return all(check_predicate(p) for p in predicates) and all(check_child(c) for c in children)
    if operator is Operator.OR:
        return any(check_predicate(p) for p in predicates) or any(check_child(c) for c in children)
    return False


# Raw (configuration) form ---------------------------------------------------


@dataclass(slots=True)
class FilterExpression:
    name: str
    value: str


@dataclass(slots=True)
class FilterNode:
    operator: Operator = Operator.AND
    expressions: List[FilterExpression] = field(default_factory=list)
    children: List["FilterNode"] = field(default_factory=list)

    def compile(self) -> "CompiledFilterNode":
        return compile_filter(self)


# Compiled form --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DnExpression:
    """Literal distinguished-name equality."""

    value: str

    def matches(self, entry: LdapEntry) -> bool:
        return entry.dn == self.value


@dataclass(frozen=True, slots=True)
class RegexExpression:
    """Regular expression searched in every value of one attribute.

    ``regex`` is ``None`` when ``pattern`` failed to compile; such an
    expression never matches.
    """

    name: str
    pattern: str
    regex: re.Pattern[str] | None

    def matches(self, entry: LdapEntry) -> bool:
        if self.regex is None:
            return False
        return entry.any_value_matches(self.name, self.regex)


Expression = Union[DnExpression, RegexExpression]


@dataclass(frozen=True, slots=True)
class CompiledFilterNode:
    operator: Operator
    expressions: Tuple[Expression, ...] = ()
    children: Tuple["CompiledFilterNode", ...] = ()

    def matches(self, entry: LdapEntry | None) -> bool:
        if entry is None:
            return False  # never match an absent entry
        return evaluate(
            self.operator,
            self.expressions,
            self.children,
            lambda expr: expr.matches(entry),
            lambda child: child.matches(entry),
        )


def _compile_expression(expr: FilterExpression) -> Expression:
    if expr.name.lower() == DN_ATTRIBUTE:
        return DnExpression(expr.value)
    try:
        regex = re.compile(expr.value)
    except re.error as exc:
        logger.warning("Filter on %s: invalid pattern %r (%s), expression will never match", expr.name, expr.value, exc)
        regex = None
    return RegexExpression(name=expr.name, pattern=expr.value, regex=regex)


def compile_filter(node: FilterNode | CompiledFilterNode) -> CompiledFilterNode:
    """Return an immutable, ready-to-evaluate copy of *node*."""
    if isinstance(node, CompiledFilterNode):
        return node
    return CompiledFilterNode(
        operator=node.operator,
        expressions=tuple(_compile_expression(e) for e in node.expressions),
        children=tuple(compile_filter(c) for c in node.children),
    )


def matches(node: FilterNode | CompiledFilterNode, entry: LdapEntry | None) -> bool:
    """Evaluate *node* against *entry*.

    Raw nodes are compiled on every call; compile once with
    :func:`compile_filter` when evaluating many entries.
    """
    return compile_filter(node).matches(entry)
