from dataclasses import dataclass

import pytest

from ldap_membership_sync.filters import (
    CompiledFilterNode,
    DnExpression,
    FilterExpression,
    FilterNode,
    Operator,
    RegexExpression,
    compile_filter,
    matches,
)
from ldap_membership_sync.models import LdapEntry


DEVS = LdapEntry.build(
    "cn=Developers,ou=groups,dc=example,dc=org",
    {"cn": ["Developers"], "objectClass": ["top", "groupOfNames"]},
)
JOHN = LdapEntry.build(
    "uid=johnd,ou=users,dc=example,dc=org",
    {"uid": ["johnd"], "objectClass": ["top", "person", "inetOrgPerson"], "mail": ["johnd@example.org"]},
)


@dataclass
class CountingPredicate:
    """Stand-in for an expression or child node that records evaluations."""

    result: bool
    calls: int = 0

    def matches(self, entry):
        self.calls += 1
        return self.result


@pytest.mark.parametrize("operator,expected", [(Operator.AND, True), (Operator.OR, False)])
def test_empty_node(operator, expected):
    assert matches(FilterNode(operator), JOHN) is expected


def test_none_entry_never_matches():
    assert matches(FilterNode(Operator.AND), None) is False


def test_and_short_circuits_on_first_failing_expression():
    later = CountingPredicate(True)
    child = CountingPredicate(True)
    node = CompiledFilterNode(Operator.AND, (CountingPredicate(False), later), (child,))
    assert node.matches(JOHN) is False
    assert later.calls == 0
    assert child.calls == 0


def test_and_short_circuits_on_first_failing_child():
    first, second = CountingPredicate(False), CountingPredicate(True)
    node = CompiledFilterNode(Operator.AND, (CountingPredicate(True),), (first, second))
    assert node.matches(JOHN) is False
    assert first.calls == 1
    assert second.calls == 0


def test_or_short_circuits_on_first_match():
    later = CountingPredicate(False)
    child = CountingPredicate(True)
    node = CompiledFilterNode(Operator.OR, (CountingPredicate(True), later), (child,))
    assert node.matches(JOHN) is True
    assert later.calls == 0
    assert child.calls == 0


def test_or_falls_through_to_children():
    node = CompiledFilterNode(Operator.OR, (CountingPredicate(False),), (CountingPredicate(False), CountingPredicate(True)))
    assert node.matches(JOHN) is True


def test_dn_is_literal_not_regex():
    entry = LdapEntry.build("cn=ab,dc=x")
    assert matches(FilterNode(Operator.AND, [FilterExpression("dn", "cn=a.*")]), entry) is False
    assert matches(FilterNode(Operator.AND, [FilterExpression("dn", "cn=ab,dc=x")]), entry) is True


def test_dn_pseudo_attribute_is_case_insensitive():
    node = FilterNode(Operator.AND, [FilterExpression("DN", JOHN.dn)])
    compiled = compile_filter(node)
    assert isinstance(compiled.expressions[0], DnExpression)
    assert compiled.matches(JOHN)


def test_attribute_uses_search_semantics():
    assert matches(FilterNode(Operator.AND, [FilterExpression("cn", "Dev")]), DEVS)
    assert matches(FilterNode(Operator.AND, [FilterExpression("cn", "^Dev$")]), DEVS) is False


def test_attribute_any_value():
    node = FilterNode(Operator.AND, [FilterExpression("objectClass", "^inetOrgPerson$")])
    assert matches(node, JOHN)
    assert matches(node, DEVS) is False


def test_attribute_names_are_case_sensitive():
    assert matches(FilterNode(Operator.AND, [FilterExpression("CN", "Dev")]), DEVS) is False


def test_missing_attribute_does_not_match():
    assert matches(FilterNode(Operator.OR, [FilterExpression("member", ".*")]), JOHN) is False


def test_invalid_regex_never_matches():
    node = FilterNode(Operator.AND, [FilterExpression("cn", "([")])
    compiled = compile_filter(node)
    assert isinstance(compiled.expressions[0], RegexExpression)
    assert compiled.expressions[0].regex is None
    assert compiled.matches(DEVS) is False
    assert compiled.matches(JOHN) is False


def test_invalid_regex_does_not_abort_tree():
    node = FilterNode(
        Operator.OR,
        [FilterExpression("cn", "*Developers*"), FilterExpression("cn", "Developers")],
    )
    assert matches(node, DEVS)


def test_nested_groups():
    # (&(objectClass=person)(|(uid=nobody)(mail=@example.org)))
    node = FilterNode(
        Operator.AND,
        [FilterExpression("objectClass", "^person$")],
        [FilterNode(Operator.OR, [FilterExpression("uid", "^nobody$"), FilterExpression("mail", "@example\\.org$")])],
    )
    assert matches(node, JOHN)
    assert matches(node, DEVS) is False


def test_compile_is_a_snapshot_of_the_raw_tree():
    node = FilterNode(Operator.AND, [FilterExpression("uid", "johnd")])
    compiled = compile_filter(node)
    node.expressions.append(FilterExpression("uid", "^nobody$"))
    assert compiled.matches(JOHN)
    assert compile_filter(compiled) is compiled


@pytest.mark.parametrize(
    "raw,expected",
    [("and", Operator.AND), ("OR", Operator.OR), ("&", Operator.AND), ("|", Operator.OR), (0, Operator.AND), (1, Operator.OR)],
)
def test_operator_parse(raw, expected):
    assert Operator.parse(raw) is expected


@pytest.mark.parametrize("raw", ["xor", 2, True, None])
def test_operator_parse_rejects_unknown(raw):
    with pytest.raises(ValueError):
        Operator.parse(raw)
