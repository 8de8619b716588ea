from __future__ import annotations

import json
import logging

from couch_session.application.ports.http_client_port import HttpClientPort
from couch_session.domain.cookie import session_cookie_from
from couch_session.domain.model import SESSION_COOKIE_NAME, ConnectionDescriptor, SessionRecord

logger = logging.getLogger(__name__)

SESSION_REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class SessionAuthenticator:
    """Exchanges name/password for a session cookie at the server's ``/_session``.

    ``http`` must be the undecorated transport: the authentication request
    never goes through the session layer itself.
    """

    def __init__(self, http: HttpClientPort, *, cookie_name: str = SESSION_COOKIE_NAME) -> None:
        self.http = http
        self.cookie_name = cookie_name

    async def authenticate(self, descriptor: ConnectionDescriptor) -> SessionRecord | None:
        creds = descriptor.credentials
        if creds is None or not creds.username:
            return None

        url = descriptor.session_url
        body = json.dumps({"name": creds.username, "password": creds.password})
        logger.debug("POST %s for user %s", url, creds.username)
        response = await self.http.request(
            "POST", url, headers=dict(SESSION_REQUEST_HEADERS), content=body
        )

        if not response.ok:
            # Not fatal: the data request goes out bare and the server's own
            # error reaches the caller.
            logger.warning("Session request for %s at %s -> %s", creds.username, url, response.status_code)
            return None

        record = session_cookie_from(response, cookie_name=self.cookie_name)
        if record is None:
            logger.warning("Session response from %s carried no %s cookie", url, self.cookie_name)
            return None
        logger.info("Session established for %s at %s (expires %s)", creds.username, url, record.expires_at.isoformat())
        return record
