"""Load user/group filters and membership rules from structured data.

The expected document (JSON) looks like::

    {
      "userFilter":  {"operator": "and",
                      "filters": [{"name": "objectClass", "value": "^person$"}],
                      "filterGroups": []},
      "groupFilter": {"operator": "or",
                      "filters": [{"name": "objectClass", "value": "^groupOfNames$"}]},
      "groupMembership": {"operator": "or",
                          "constraints": [{"userAttribute": "dn", "groupAttribute": "member"}],
                          "additionalRules": []}
    }

Keys are matched case-insensitively so documents written for the Go
``encoding/json`` field names (``Operator``, ``Filters``, ``FilterGroups``,
``UserAttribute``…) load unchanged.  Operators may be given as strings or
as the integers ``0`` (AND) / ``1`` (OR).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .core.constants import DEFAULT_RULES
from .exceptions import RuleConfigError
from .filters import FilterExpression, FilterNode, Operator
from .membership import Constraint, MembershipNode

logger = logging.getLogger("ldap_membership_sync.rules")

__all__ = ["SyncRules", "parse_filter", "parse_membership", "load_rules"]


def _lookup(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Case-insensitive ``data.get(key, default)``."""
    wanted = key.lower()
    for k, v in data.items():
        if isinstance(k, str) and k.lower() == wanted:
            return v
    return default


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise RuleConfigError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _require_list(data: Any, what: str) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        raise RuleConfigError(f"{what} must be a list, got {type(data).__name__}")
    return data


def _require_str(data: Mapping[str, Any], key: str, what: str) -> str:
    val = _lookup(data, key)
    if not isinstance(val, str):
        raise RuleConfigError(f"{what}: '{key}' must be a string")
    return val


def _parse_operator(data: Mapping[str, Any], what: str) -> Operator:
    raw = _lookup(data, "operator")
    if raw is None:
        return Operator.AND
    try:
        return Operator.parse(raw)
    except ValueError as exc:
        raise RuleConfigError(f"{what}: {exc}") from exc


def parse_filter(data: Any, what: str = "filter") -> FilterNode:
    data = _require_mapping(data, what)
    expressions = [
        FilterExpression(
            name=_require_str(_require_mapping(e, f"{what}.filters[{i}]"), "name", f"{what}.filters[{i}]"),
            value=_require_str(e, "value", f"{what}.filters[{i}]"),
        )
        for i, e in enumerate(_require_list(_lookup(data, "filters"), f"{what}.filters"))
    ]
    children = [
        parse_filter(c, f"{what}.filterGroups[{i}]")
        for i, c in enumerate(_require_list(_lookup(data, "filterGroups"), f"{what}.filterGroups"))
    ]
    return FilterNode(operator=_parse_operator(data, what), expressions=expressions, children=children)


def parse_membership(data: Any, what: str = "groupMembership") -> MembershipNode:
    data = _require_mapping(data, what)
    constraints = []
    for i, c in enumerate(_require_list(_lookup(data, "constraints"), f"{what}.constraints")):
        where = f"{what}.constraints[{i}]"
        c = _require_mapping(c, where)
        constraints.append(
            Constraint(
                user_attribute=_require_str(c, "userAttribute", where),
                group_attribute=_require_str(c, "groupAttribute", where),
            )
        )
    children = [
        parse_membership(r, f"{what}.additionalRules[{i}]")
        for i, r in enumerate(_require_list(_lookup(data, "additionalRules"), f"{what}.additionalRules"))
    ]
    return MembershipNode(operator=_parse_operator(data, what), constraints=constraints, children=children)


@dataclass(slots=True)
class SyncRules:
    """The three rule trees driving a sync."""

    user_filter: FilterNode
    group_filter: FilterNode
    membership: MembershipNode

    @classmethod
    def from_dict(cls, data: Any) -> "SyncRules":
        data = _require_mapping(data, "rules")
        # An absent tree would silently become an empty AND node, i.e. match everything.
        for key in ("userFilter", "groupFilter", "groupMembership"):
            if _lookup(data, key) is None:
                raise RuleConfigError(f"rules: '{key}' is required")
        return cls(
            user_filter=parse_filter(_lookup(data, "userFilter"), "userFilter"),
            group_filter=parse_filter(_lookup(data, "groupFilter"), "groupFilter"),
            membership=parse_membership(_lookup(data, "groupMembership"), "groupMembership"),
        )

    @classmethod
    def default(cls) -> "SyncRules":
        return cls.from_dict(DEFAULT_RULES)


def load_rules(path: str | Path | None) -> SyncRules:
    """Read rules from a JSON file, or the defaults when *path* is falsy."""
    if not path:
        logger.debug("No rules file configured, using default rules")
        return SyncRules.default()

    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuleConfigError(f"Cannot read rules file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RuleConfigError(f"Rules file {path} is not valid JSON: {exc}") from exc

    logger.debug("Loaded rules from %s", path)
    return SyncRules.from_dict(data)
