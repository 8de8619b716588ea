from __future__ import annotations

import re
from datetime import UTC
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

from couch_session.domain.model import MIN_TIMESTAMP, SESSION_COOKIE_NAME, SessionRecord

if TYPE_CHECKING:
    from datetime import datetime

    from couch_session.application.ports.http_client_port import HttpResponse


def _cookie_regex(cookie_name: str) -> re.Pattern[str]:
    return re.compile(rf"(?:^|[;,]\s*){re.escape(cookie_name)}=(.*)")


_DEFAULT_REGEX = _cookie_regex(SESSION_COOKIE_NAME)
_DASHED_DATE = re.compile(r"(\d{1,2})-([A-Za-z]{3})-(\d{2,4})")


def parse_expires(value: str) -> datetime | None:
    """Parses an RFC 1123 cookie date.

    CouchDB writes ``Wed, 08-Jan-2025 13:46:26 GMT``, so the dashes of the
    day-month-year part are folded into spaces before parsing.
    """
    try:
        parsed = parsedate_to_datetime(_DASHED_DATE.sub(r"\1 \2 \3", value))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def parse_session_cookie(
    set_cookie: str | None, *, cookie_name: str = SESSION_COOKIE_NAME
) -> SessionRecord | None:
    """Extracts the session token and its expiry from a Set-Cookie value.

    Only the value handed in is inspected and the first matching cookie
    wins. Returns None when the header is missing, names another cookie or
    carries an empty token. A cookie without a parseable ``Expires`` is
    returned as already expired.

    Example header::

        AuthSession=YWRtaW46NjU5RDRF...; Version=1; Expires=Wed,
        08-Jan-2025 13:46:26 GMT; Max-Age=31536000; Path=/; HttpOnly
    """
    if not set_cookie:
        return None

    regex = _DEFAULT_REGEX if cookie_name == SESSION_COOKIE_NAME else _cookie_regex(cookie_name)
    match = regex.search(set_cookie)
    if not match:
        return None

    token, _, attributes = match.group(1).partition(";")
    token = token.strip()
    if not token:
        return None

    expires_at = MIN_TIMESTAMP
    for attribute in attributes.split(";"):
        name, _, value = attribute.strip().partition("=")
        if name.lower() == "expires":
            expires_at = parse_expires(value.strip()) or MIN_TIMESTAMP
            break

    return SessionRecord(token=token, expires_at=expires_at)


def session_cookie_from(
    response: HttpResponse, *, cookie_name: str = SESSION_COOKIE_NAME
) -> SessionRecord | None:
    return parse_session_cookie(response.header("set-cookie"), cookie_name=cookie_name)
