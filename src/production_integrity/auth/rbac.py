"""Role-level checks used by callers before privileged operations."""

from __future__ import annotations

import logging

from production_integrity.auth.context import Actor
from production_integrity.errors import PermissionDeniedError

logger = logging.getLogger(__name__)


def has_role_level(actor: Actor | None, level: int) -> bool:
    if actor is None:
        return False
    return actor.level >= level


def enforce_role_level(actor: Actor, level: int) -> None:
    if not has_role_level(actor, level):
        logger.warning(
            "Permission denied: user=%s role=%s required_level=%d",
            actor.user_id,
            actor.role.value,
            level,
        )
        raise PermissionDeniedError(actor.user_id, level, actor.level)
