"""Identity and role schemas"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Authorization level computed for a resolved identity"""

    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"
    NONE = "none"


class Identity(BaseModel):
    """Who is making a request. Derived per request, never stored."""

    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    groups: List[str] = Field(default_factory=list)
    custom: Dict[str, Any] = Field(default_factory=dict)
    customer_id: Optional[str] = None
    is_demo: bool = False

    @property
    def email_domain(self) -> Optional[str]:
        if not self.email or "@" not in self.email:
            return None
        return self.email.rsplit("@", 1)[1].lower()


class IdentityResponse(BaseModel):
    subject: str
    email: Optional[str]
    name: Optional[str]
    groups: List[str]
    customer_id: Optional[str]
    is_demo: bool
    role: Role
    auth_mode: str
