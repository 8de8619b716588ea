from __future__ import annotations

import asyncio
import logging
import threading

from couch_session.application.ports.clock_port import Clock, SystemClock
from couch_session.application.ports.session_store_port import Authenticate, SessionStorePort
from couch_session.domain.model import ConnectionDescriptor, SessionKey, SessionRecord
from couch_session.infrastructure.metrics import SessionMetrics

logger = logging.getLogger(__name__)

# A resolved record, or the (possibly still pending) authentication attempt.
_Entry = SessionRecord | asyncio.Future[SessionRecord | None]


class InMemorySessionStore(SessionStorePort):
    """Single-flight session cache. Not persistent.

    The pending authentication task is stored under its key before anyone
    awaits it, so callers arriving while it is in flight share its outcome
    (record, None, or exception) instead of authenticating again.
    """

    def __init__(
        self,
        authenticate: Authenticate,
        *,
        clock: Clock | None = None,
        metrics: SessionMetrics | None = None,
    ) -> None:
        self._authenticate = authenticate
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._sessions: dict[SessionKey, _Entry] = {}
        # Guards check-and-insert only, never the awaited I/O.
        self._lock = threading.Lock()

    async def get_valid_session(
        self, descriptor: ConnectionDescriptor, *, authenticate: Authenticate | None = None
    ) -> SessionRecord | None:
        key = descriptor.session_key
        seen = self._sessions.get(key)
        if seen is not None:
            in_flight = isinstance(seen, asyncio.Future) and not seen.done()
            record = await self._resolve(seen)
            # An attempt we joined while pending is this call's outcome, session or not.
            if in_flight or (record is not None and record.is_valid(self._clock.now())):
                return record

        with self._lock:
            current = self._sessions.get(key)
            if current is None or current is seen:
                current = self._start(descriptor, key, authenticate or self._authenticate)
        # Either our fresh attempt or one another caller installed meanwhile.
        return await self._resolve(current)

    def set_session(self, descriptor: ConnectionDescriptor, record: SessionRecord) -> None:
        with self._lock:
            self._sessions[descriptor.session_key] = record

    def invalidate(
        self, descriptor: ConnectionDescriptor, *, stale: SessionRecord | None = None
    ) -> None:
        key = descriptor.session_key
        with self._lock:
            entry = self._sessions.get(key)
            if entry is None:
                return
            if stale is not None and self._resolved_now(entry) != stale:
                logger.debug("Session for %s already replaced, keeping it", descriptor.session_url)
                return
            del self._sessions[key]
        logger.debug("Session for %s invalidated", descriptor.session_url)

    def discard_failed(self, descriptor: ConnectionDescriptor) -> None:
        key = descriptor.session_key
        with self._lock:
            entry = self._sessions.get(key)
            if isinstance(entry, asyncio.Future) and entry.done():
                if entry.cancelled() or entry.exception() is not None:
                    del self._sessions[key]

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, descriptor: object) -> bool:
        return isinstance(descriptor, ConnectionDescriptor) and descriptor.session_key in self._sessions

    # ---------- Helpers ----------
    def _start(
        self, descriptor: ConnectionDescriptor, key: SessionKey, authenticate: Authenticate
    ) -> asyncio.Future[SessionRecord | None]:
        logger.debug("Starting authentication against %s", descriptor.session_url)
        task = asyncio.ensure_future(authenticate(descriptor))
        if self._metrics is not None:
            self._metrics.auth_requests.inc()
            task.add_done_callback(self._count_failure)
        self._sessions[key] = task
        return task

    def _count_failure(self, task: asyncio.Future[SessionRecord | None]) -> None:
        if self._metrics is None:
            return
        if task.cancelled() or task.exception() is not None or task.result() is None:
            self._metrics.auth_failures.inc()

    @staticmethod
    async def _resolve(entry: _Entry) -> SessionRecord | None:
        if isinstance(entry, SessionRecord):
            return entry
        # Shielded: a cancelled waiter must not cancel the shared attempt.
        return await asyncio.shield(entry)

    @staticmethod
    def _resolved_now(entry: _Entry) -> SessionRecord | None:
        if isinstance(entry, SessionRecord):
            return entry
        if entry.done() and not entry.cancelled() and entry.exception() is None:
            return entry.result()
        return None
