"""Acting-user identity and role checks."""

from production_integrity.auth.context import (
    SYSTEM_ACTOR,
    Actor,
    actor_scope,
    get_actor_context,
    get_actor_context_optional,
    reset_actor_context,
    resolve_actor,
    set_actor_context,
)
from production_integrity.auth.rbac import enforce_role_level, has_role_level
from production_integrity.auth.roles import MANAGER_LEVEL, UserRole

__all__ = [
    "Actor",
    "MANAGER_LEVEL",
    "SYSTEM_ACTOR",
    "UserRole",
    "actor_scope",
    "enforce_role_level",
    "get_actor_context",
    "get_actor_context_optional",
    "has_role_level",
    "reset_actor_context",
    "resolve_actor",
    "set_actor_context",
]
