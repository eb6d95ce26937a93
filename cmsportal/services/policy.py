"""Role policy. Maps a resolved identity to a role, and roles to operations.

Evaluation order for :meth:`RolePolicy.resolve_role`:

1. an explicit ``role`` claim on the identity (admin / staff / customer)
2. admin rule: email in the admin list, email domain in the admin domains,
   or membership of the ``admin`` group
3. staff rule: the same shape with the staff lists or the ``staff`` group
4. customer rule: customer lists, the ``customer`` group, or an association
   with a customer record
5. otherwise ``none``

The allow-lists are operator configuration, not user data.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

from cmsportal.schemas.identity import Identity, Role

ROLE_HIERARCHY: Dict[Role, int] = {
    Role.ADMIN: 3,
    Role.STAFF: 2,
    Role.CUSTOMER: 1,
    Role.NONE: 0,
}

# Minimum role per operation
PERMISSIONS: Dict[str, Role] = {
    "posts:read_all": Role.STAFF,
    "posts:write": Role.STAFF,
    "posts:delete": Role.ADMIN,
    "authors:write": Role.STAFF,
    "authors:delete": Role.ADMIN,
    "customers:read": Role.STAFF,
    "customers:write": Role.STAFF,
    "customers:delete": Role.ADMIN,
    "documents:read": Role.CUSTOMER,
    "documents:upload": Role.CUSTOMER,
    "documents:manage": Role.STAFF,
    "documents:delete_version": Role.ADMIN,
    "accounts:manage": Role.ADMIN,
}


def role_satisfies(role: Role, required: Role) -> bool:
    """True if ``role`` is ``required`` or a role that subsumes it"""
    return ROLE_HIERARCHY.get(role, 0) >= ROLE_HIERARCHY.get(required, 0) and role != Role.NONE


def required_role_for(operation: str) -> Role:
    try:
        return PERMISSIONS[operation]
    except KeyError:
        raise ValueError(f"Unknown operation '{operation}'")


def _normalize(values: Iterable[str]) -> FrozenSet[str]:
    return frozenset(v.strip().lower() for v in values if v and v.strip())


@dataclass(frozen=True)
class RolePolicy:
    admin_emails: FrozenSet[str] = field(default_factory=frozenset)
    admin_domains: FrozenSet[str] = field(default_factory=frozenset)
    staff_emails: FrozenSet[str] = field(default_factory=frozenset)
    staff_domains: FrozenSet[str] = field(default_factory=frozenset)
    customer_emails: FrozenSet[str] = field(default_factory=frozenset)
    customer_domains: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, **lists: Iterable[str]) -> "RolePolicy":
        return cls(**{name: _normalize(values) for name, values in lists.items()})

    @classmethod
    def from_settings(cls, settings) -> "RolePolicy":
        return cls.build(
            admin_emails=settings.admin_emails_list,
            admin_domains=settings.admin_domains_list,
            staff_emails=settings.staff_emails_list,
            staff_domains=settings.staff_domains_list,
            customer_emails=settings.customer_emails_list,
            customer_domains=settings.customer_domains_list,
        )

    def resolve_role(self, identity: Optional[Identity]) -> Role:
        if identity is None:
            return Role.NONE

        claimed = _role_claim(identity)
        if claimed is not None:
            return claimed

        email = (identity.email or "").lower()
        domain = identity.email_domain
        groups = _normalize(identity.groups)

        if self._matches(email, domain, groups, self.admin_emails, self.admin_domains, "admin"):
            return Role.ADMIN
        if self._matches(email, domain, groups, self.staff_emails, self.staff_domains, "staff"):
            return Role.STAFF
        if identity.customer_id or self._matches(
            email, domain, groups, self.customer_emails, self.customer_domains, "customer"
        ):
            return Role.CUSTOMER
        return Role.NONE

    @staticmethod
    def _matches(email, domain, groups, emails, domains, group) -> bool:
        if email and email in emails:
            return True
        if domain and domain in domains:
            return True
        return group in groups


def _role_claim(identity: Identity) -> Optional[Role]:
    value = identity.custom.get("role")
    if not isinstance(value, str):
        return None
    try:
        role = Role(value.strip().lower())
    except ValueError:
        return None
    return None if role == Role.NONE else role
