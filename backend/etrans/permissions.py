# Overview: Role presets and the service-side role check.

"""
Role-Based Access

Roles are a closed hierarchy: DIRECTOR > ACCOUNTANT > AGENT > CLIENT.
Routes check presets through @require_role; services call ensure_role()
again so the rule holds for CLI and test callers that bypass HTTP.
"""

from __future__ import annotations

from .errors import ForbiddenError
from .models.enums import Role

DIRECTOR_ONLY = frozenset({Role.DIRECTOR})
ACCOUNTANT_ROLES = frozenset({Role.DIRECTOR, Role.ACCOUNTANT})
AGENT_ROLES = frozenset({Role.DIRECTOR, Role.ACCOUNTANT, Role.AGENT})
ALL_ROLES = frozenset(Role)


def has_role(identity, roles) -> bool:
    return Role(identity.role) in roles


def ensure_role(identity, roles) -> None:
    """Raise ForbiddenError unless the identity's role is in the preset."""
    if not has_role(identity, roles):
        raise ForbiddenError("You do not have permission to perform this action")
