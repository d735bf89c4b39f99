"""Request-scoped acting user.

The actor travels in a ``ContextVar`` so that a request handler or a
background job can set it once and every ledger write inside that scope
picks it up. Explicitly passed actors always win; writers running with no
actor at all fall back to :data:`SYSTEM_ACTOR`.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass

from production_integrity.auth.roles import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    user_name: str
    role: UserRole
    device_info: str | None = None
    ip_address: str | None = None

    @property
    def level(self) -> int:
        return self.role.level


SYSTEM_ACTOR = Actor(user_id="system", user_name="System", role=UserRole.lowest())


_actor_context: ContextVar[Actor | None] = ContextVar("actor_context", default=None)


def set_actor_context(actor: Actor) -> Token[Actor | None]:
    """Set the current actor and return the reset token."""
    return _actor_context.set(actor)


def reset_actor_context(token: Token[Actor | None]) -> None:
    _actor_context.reset(token)


def get_actor_context() -> Actor:
    """Get the current actor or raise RuntimeError."""
    actor = _actor_context.get()
    if actor is None:
        raise RuntimeError("No actor context set")
    return actor


def get_actor_context_optional() -> Actor | None:
    return _actor_context.get()


@contextmanager
def actor_scope(actor: Actor) -> Iterator[Actor]:
    token = set_actor_context(actor)
    try:
        yield actor
    finally:
        reset_actor_context(token)


def resolve_actor(explicit: Actor | None = None) -> Actor:
    if explicit is not None:
        return explicit
    return _actor_context.get() or SYSTEM_ACTOR
