from __future__ import annotations

import logging

from couch_session.application.credentials import CredentialsLike, extract_connection
from couch_session.application.ports.clock_port import Clock, SystemClock
from couch_session.application.ports.http_client_port import HttpClientPort
from couch_session.application.use_cases.authenticate_session import SessionAuthenticator
from couch_session.config import Settings, settings as default_settings
from couch_session.domain.model import ConnectionDescriptor, SessionRecord
from couch_session.infrastructure.adapters.http.httpx_client import HttpxClient
from couch_session.infrastructure.adapters.http.session_transport import AuthenticatingTransport
from couch_session.infrastructure.adapters.session.memory_store import InMemorySessionStore
from couch_session.infrastructure.metrics import SessionMetrics

logger = logging.getLogger(__name__)


class CouchSessionPool:
    """Owns one session cache and hands out transports that share it.

    Connections with the same credentials against the same server share a
    session; a fresh pool starts with an empty cache.
    """

    def __init__(
        self,
        http: HttpClientPort | None = None,
        *,
        clock: Clock | None = None,
        settings: Settings | None = None,
        metrics: SessionMetrics | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self._owns_http = http is None
        self.http: HttpClientPort = http or HttpxClient(timeout=self.settings.http_timeout)
        self.metrics = metrics or SessionMetrics()
        self.clock = clock or SystemClock()
        self.sessions = InMemorySessionStore(self._authenticate, clock=self.clock, metrics=self.metrics)

    def connect(
        self,
        name: str,
        *,
        credentials: CredentialsLike | None = None,
        auth: CredentialsLike | None = None,
        session: str | None = None,
        http: HttpClientPort | None = None,
    ) -> HttpClientPort:
        """Returns the transport to use for the database at ``name``.

        Raises:
            InvalidConnectionUrl: ``name`` cannot be parsed.
        """
        descriptor = extract_connection(name, credentials=credentials, auth=auth, session=session)
        return self.connect_descriptor(descriptor, http=http)

    def connect_descriptor(
        self, descriptor: ConnectionDescriptor, *, http: HttpClientPort | None = None
    ) -> HttpClientPort:
        inner = http or self.http
        if not descriptor.has_session_auth:
            logger.debug("No credentials for %s, using plain transport", descriptor.url)
            return inner

        if descriptor.session:
            self.sessions.set_session(descriptor, SessionRecord.explicit(descriptor.session))
        return AuthenticatingTransport(
            inner,
            descriptor,
            self.sessions,
            max_auth_retries=self.settings.auth_retries,
            metrics=self.metrics,
        )

    async def _authenticate(self, descriptor: ConnectionDescriptor) -> SessionRecord | None:
        return await SessionAuthenticator(self.http).authenticate(descriptor)

    async def aclose(self) -> None:
        self.sessions.clear()
        if self._owns_http and isinstance(self.http, HttpxClient):
            await self.http.aclose()

    async def __aenter__(self) -> CouchSessionPool:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
