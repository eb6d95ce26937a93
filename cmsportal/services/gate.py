"""Session gate: decides whether a protected operation may proceed.

States::

    loading ──► unauthenticated          (no valid identity)
           └──► authenticated:<role>     (identity resolved)

From ``unauthenticated`` every protected operation is redirected to the login
entry point. From ``authenticated`` an operation requiring role R is allowed
iff the role is R or subsumes it (admin > staff > customer).
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cmsportal.schemas.identity import Identity, Role
from cmsportal.services.policy import role_satisfies


class GateState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class GateOutcome(str, Enum):
    PENDING = "pending"
    REDIRECT = "redirect"
    DENY = "deny"
    ALLOW = "allow"


@dataclass(frozen=True)
class GateDecision:
    state: GateState
    outcome: GateOutcome
    role: Role = Role.NONE
    redirect_to: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GateOutcome.ALLOW


class SessionGate:
    def __init__(self, login_url: str):
        self.login_url = login_url

    @staticmethod
    def state_for(is_loading: bool, identity: Optional[Identity]) -> GateState:
        if is_loading:
            return GateState.LOADING
        if identity is None:
            return GateState.UNAUTHENTICATED
        return GateState.AUTHENTICATED

    def evaluate(
        self,
        *,
        is_loading: bool,
        identity: Optional[Identity],
        role: Role,
        required_role: Role,
    ) -> GateDecision:
        state = self.state_for(is_loading, identity)

        if state == GateState.LOADING:
            return GateDecision(state=state, outcome=GateOutcome.PENDING)

        if state == GateState.UNAUTHENTICATED:
            return GateDecision(state=state, outcome=GateOutcome.REDIRECT, redirect_to=self.login_url)

        if role_satisfies(role, required_role):
            return GateDecision(state=state, outcome=GateOutcome.ALLOW, role=role)
        return GateDecision(state=state, outcome=GateOutcome.DENY, role=role)
