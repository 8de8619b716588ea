from __future__ import annotations

import logging
from typing import Mapping

from couch_session.application.ports.http_client_port import HttpClientPort, HttpResponse
from couch_session.application.ports.session_store_port import SessionStorePort
from couch_session.application.use_cases.authenticate_session import SessionAuthenticator
from couch_session.domain.cookie import session_cookie_from
from couch_session.domain.model import SESSION_COOKIE_NAME, ConnectionDescriptor, SessionRecord
from couch_session.infrastructure.metrics import SessionMetrics

logger = logging.getLogger(__name__)


class AuthenticatingTransport(HttpClientPort):
    """Wraps a transport with cookie session authentication for one connection.

    Per request:
      1) take a valid session from the store (may authenticate)
      2) send it as ``Cookie: AuthSession=<token>``
      3) on 401 with a session attached, drop it and retry with a fresh one,
         at most ``max_auth_retries`` times
      4) keep any rotated session cookie found on the final response
    """

    def __init__(
        self,
        inner: HttpClientPort,
        descriptor: ConnectionDescriptor,
        sessions: SessionStorePort,
        *,
        max_auth_retries: int = 1,
        cookie_name: str = SESSION_COOKIE_NAME,
        metrics: SessionMetrics | None = None,
    ) -> None:
        if max_auth_retries < 0:
            raise ValueError("max_auth_retries must be >= 0")
        self.inner = inner
        self.descriptor = descriptor
        self.sessions = sessions
        self.max_auth_retries = max_auth_retries
        self.cookie_name = cookie_name
        self._metrics = metrics
        # Authentication goes through this connection's own undecorated transport.
        self._authenticator = SessionAuthenticator(inner, cookie_name=cookie_name)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
    ) -> HttpResponse:
        retries = 0
        while True:
            session = await self._session()
            response = await self.inner.request(
                method, url, headers=self._with_cookie(headers, session), content=content
            )
            if response.status_code != 401 or session is None:
                break
            if retries >= self.max_auth_retries:
                logger.info("%s %s still 401 after %d session retries", method, url, retries)
                break
            logger.info("%s %s -> 401, renewing session for %s", method, url, self.descriptor.session_url)
            self.sessions.invalidate(self.descriptor, stale=session)
            if self._metrics is not None:
                self._metrics.invalidations.inc()
            retries += 1

        self._keep_rotated_cookie(response, session)
        return response

    async def aclose(self) -> None:
        aclose = getattr(self.inner, "aclose", None)
        if aclose is not None:
            await aclose()

    # ---------- Helpers ----------
    async def _session(self) -> SessionRecord | None:
        try:
            return await self.sessions.get_valid_session(
                self.descriptor, authenticate=self._authenticator.authenticate
            )
        except Exception:
            # Every waiter already saw this failure; the next call starts over.
            self.sessions.discard_failed(self.descriptor)
            raise

    def _with_cookie(
        self, headers: Mapping[str, str] | None, session: SessionRecord | None
    ) -> dict[str, str] | None:
        if session is None:
            return dict(headers) if headers is not None else None
        merged = {k: v for k, v in (headers or {}).items() if k.lower() != "cookie"}
        merged["Cookie"] = f"{self.cookie_name}={session.token}"
        return merged

    def _keep_rotated_cookie(self, response: HttpResponse, used: SessionRecord | None) -> None:
        rotated = session_cookie_from(response, cookie_name=self.cookie_name)
        if rotated is None:
            return
        self.sessions.set_session(self.descriptor, rotated)
        if rotated != used:
            logger.debug("Picked up rotated session cookie from %s", response.url)
            if self._metrics is not None:
                self._metrics.rotations.inc()
