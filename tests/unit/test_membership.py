import pytest

from ldap_membership_sync.filters import Operator
from ldap_membership_sync.membership import CompiledMembershipNode, Constraint, MembershipNode, compile_membership, is_member
from ldap_membership_sync.models import LdapEntry


GROUP_DN = "cn=devs,ou=groups,dc=example,dc=org"
USER_DN = "uid=u1,ou=users,dc=example,dc=org"

USER = LdapEntry.build(USER_DN, {"uid": ["u1"], "memberOf": [GROUP_DN]})
GROUP = LdapEntry.build(GROUP_DN, {"cn": ["devs"], "member": [USER_DN], "memberUid": ["u1", "u2"]})
OUTSIDER = LdapEntry.build("uid=u3,ou=users,dc=example,dc=org", {"uid": ["u3"]})


def test_dn_dn():
    c = Constraint("dn", "dn")
    assert c.is_member(USER, USER)
    assert c.is_member(USER, GROUP) is False


def test_dn_attribute():
    c = Constraint("dn", "member")
    assert c.is_member(USER, GROUP)
    assert c.is_member(OUTSIDER, GROUP) is False


def test_attribute_dn():
    c = Constraint("memberOf", "DN")
    assert c.is_member(USER, GROUP)
    assert c.is_member(OUTSIDER, GROUP) is False


def test_attribute_attribute():
    c = Constraint("uid", "memberUid")
    assert c.is_member(USER, GROUP)
    assert c.is_member(OUTSIDER, GROUP) is False


@pytest.mark.parametrize("constraint", [Constraint("mail", "memberUid"), Constraint("uid", "uniqueMember")])
def test_missing_attribute_is_not_member(constraint):
    assert constraint.is_member(USER, GROUP) is False


@pytest.mark.parametrize("operator,expected", [(Operator.AND, True), (Operator.OR, False)])
def test_empty_node(operator, expected):
    assert is_member(MembershipNode(operator), OUTSIDER, GROUP) is expected


def test_and_requires_every_constraint():
    node = MembershipNode(Operator.AND, [Constraint("uid", "memberUid"), Constraint("dn", "member")])
    assert is_member(node, USER, GROUP)
    other = LdapEntry.build("uid=u2,ou=users,dc=example,dc=org", {"uid": ["u2"]})
    assert is_member(node, other, GROUP) is False


def test_or_with_additional_rules():
    node = MembershipNode(
        Operator.OR,
        [Constraint("dn", "member")],
        [MembershipNode(Operator.AND, [Constraint("uid", "memberUid")])],
    )
    u2 = LdapEntry.build("uid=u2,ou=users,dc=example,dc=org", {"uid": ["u2"]})
    assert is_member(node, USER, GROUP)
    assert is_member(node, u2, GROUP)
    assert is_member(node, OUTSIDER, GROUP) is False


def test_and_child_failure_short_circuits():
    calls = []

    class Spy(MembershipNode):
        def is_member(self, user, group):
            calls.append(1)
            return True

    node = MembershipNode(Operator.AND, [Constraint("mail", "mail")], [Spy()])
    assert is_member(node, USER, GROUP) is False
    assert calls == []


def test_compile_copies_the_tree():
    node = MembershipNode(
        Operator.OR,
        [Constraint("dn", "member")],
        [MembershipNode(Operator.AND, [Constraint("uid", "memberUid")])],
    )
    compiled = compile_membership(node)
    assert isinstance(compiled, CompiledMembershipNode)
    assert isinstance(compiled.children[0], CompiledMembershipNode)
    assert compile_membership(compiled) is compiled

    node.operator = Operator.AND
    node.children[0].constraints.clear()
    node.constraints.append(Constraint("mail", "mail"))

    assert compiled.operator is Operator.OR
    assert compiled.children[0].constraints == (Constraint("uid", "memberUid"),)
    assert is_member(compiled, USER, GROUP)
    assert is_member(node, USER, GROUP) is False
