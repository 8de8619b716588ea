from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from couch_session.domain.model import ConnectionDescriptor, SessionRecord

Authenticate = Callable[[ConnectionDescriptor], Awaitable[SessionRecord | None]]


class SessionStorePort(Protocol):
    """Per-process cache of session cookies, keyed by (user, server, explicit session)."""

    async def get_valid_session(
        self, descriptor: ConnectionDescriptor, *, authenticate: Authenticate | None = None
    ) -> SessionRecord | None:
        """
        Returns:
            the cached record when still valid, otherwise the result of a
            single shared authentication attempt (None when no session
            could be obtained). Raises whatever that attempt raised.

        ``authenticate`` replaces the store's default authenticator when this
        call is the one that has to start the attempt.
        """
        ...

    def set_session(self, descriptor: ConnectionDescriptor, record: SessionRecord) -> None:
        """Install an already resolved record (explicit session or rotated cookie)."""
        ...

    def invalidate(
        self, descriptor: ConnectionDescriptor, *, stale: SessionRecord | None = None
    ) -> None:
        """Drop the entry. With ``stale``, only when the entry still resolves to it."""
        ...

    def discard_failed(self, descriptor: ConnectionDescriptor) -> None:
        """Drop the entry only if it holds a failed authentication attempt."""
        ...
