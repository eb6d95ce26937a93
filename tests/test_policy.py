"""Tests for role resolution and the permission table"""
import pytest

from cmsportal.schemas.identity import Identity, Role
from cmsportal.services.policy import PERMISSIONS, RolePolicy, required_role_for, role_satisfies


@pytest.fixture
def policy() -> RolePolicy:
    return RolePolicy.build(
        admin_emails=["Chief@Example.com"],
        admin_domains=["admins.example.com"],
        staff_emails=["helper@elsewhere.org"],
        staff_domains=["example.com"],
        customer_emails=["buyer@client.org"],
        customer_domains=["client.net"],
    )


def _identity(email=None, **kwargs) -> Identity:
    return Identity(subject=kwargs.pop("subject", "sub-1"), email=email, **kwargs)


def test_admin_domain_without_role_claim(policy):
    """An email domain in the admin-domain list yields admin"""
    assert policy.resolve_role(_identity("anyone@admins.example.com")) == Role.ADMIN


def test_admin_email_is_case_insensitive(policy):
    assert policy.resolve_role(_identity("chief@EXAMPLE.com")) == Role.ADMIN


def test_admin_group(policy):
    assert policy.resolve_role(_identity("x@nowhere.io", groups=["Admin"])) == Role.ADMIN


def test_staff_rules(policy):
    assert policy.resolve_role(_identity("worker@example.com")) == Role.STAFF
    assert policy.resolve_role(_identity("helper@elsewhere.org")) == Role.STAFF
    assert policy.resolve_role(_identity("x@nowhere.io", groups=["staff"])) == Role.STAFF


def test_customer_rules(policy):
    assert policy.resolve_role(_identity("buyer@client.org")) == Role.CUSTOMER
    assert policy.resolve_role(_identity("someone@client.net")) == Role.CUSTOMER
    assert policy.resolve_role(_identity("x@nowhere.io", groups=["customer"])) == Role.CUSTOMER
    assert policy.resolve_role(_identity("x@nowhere.io", customer_id="customer-1")) == Role.CUSTOMER


def test_no_match_is_none(policy):
    """No allow-list, group or claim match yields none"""
    assert policy.resolve_role(_identity("stranger@nowhere.io")) == Role.NONE
    assert policy.resolve_role(_identity(None)) == Role.NONE
    assert policy.resolve_role(None) == Role.NONE


def test_explicit_role_claim_wins(policy):
    """A role claim takes precedence over allow-lists"""
    identity = _identity("anyone@admins.example.com", custom={"role": "customer"})
    assert policy.resolve_role(identity) == Role.CUSTOMER

    identity = _identity("stranger@nowhere.io", custom={"role": "STAFF"})
    assert policy.resolve_role(identity) == Role.STAFF


def test_unknown_role_claim_is_ignored(policy):
    identity = _identity("worker@example.com", custom={"role": "superuser"})
    assert policy.resolve_role(identity) == Role.STAFF

    identity = _identity("worker@example.com", custom={"role": "none"})
    assert policy.resolve_role(identity) == Role.STAFF


def test_empty_policy_grants_nothing():
    assert RolePolicy().resolve_role(_identity("chief@example.com")) == Role.NONE


def test_role_hierarchy():
    assert role_satisfies(Role.ADMIN, Role.STAFF)
    assert role_satisfies(Role.ADMIN, Role.CUSTOMER)
    assert role_satisfies(Role.STAFF, Role.CUSTOMER)
    assert role_satisfies(Role.STAFF, Role.STAFF)
    assert not role_satisfies(Role.STAFF, Role.ADMIN)
    assert not role_satisfies(Role.CUSTOMER, Role.STAFF)
    assert not role_satisfies(Role.NONE, Role.NONE)
    assert not role_satisfies(Role.NONE, Role.CUSTOMER)


def test_permission_table():
    assert required_role_for("posts:write") == Role.STAFF
    assert required_role_for("posts:delete") == Role.ADMIN
    assert required_role_for("documents:read") == Role.CUSTOMER
    assert required_role_for("documents:delete_version") == Role.ADMIN
    assert required_role_for("accounts:manage") == Role.ADMIN
    assert all(role != Role.NONE for role in PERMISSIONS.values())


def test_unknown_operation_rejected():
    with pytest.raises(ValueError):
        required_role_for("posts:launch")
