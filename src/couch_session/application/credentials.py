from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import unquote, urlsplit, urlunsplit

from couch_session.domain.model import ConnectionDescriptor, Credentials

CredentialsLike = Credentials | Mapping[str, str]


class InvalidConnectionUrl(ValueError):
    pass


def _coerce_credentials(value: CredentialsLike | None) -> Credentials | None:
    if value is None or isinstance(value, Credentials):
        return value
    return Credentials(username=value.get("username", ""), password=value.get("password", ""))


def extract_connection(
    name: str,
    *,
    credentials: CredentialsLike | None = None,
    auth: CredentialsLike | None = None,
    session: str | None = None,
) -> ConnectionDescriptor:
    """Normalizes the three credential sources of a connection into one descriptor.

    - userinfo in ``name`` wins and is stripped from the returned url
    - ``auth`` is an alias of ``credentials``
    - ``session`` is a pre-obtained token; it never triggers authentication

    Raises:
        InvalidConnectionUrl: ``name`` is not an absolute http(s) url.
    """
    try:
        parts = urlsplit(name)
        parts.port  # raises on a malformed port
    except (TypeError, ValueError) as e:
        raise InvalidConnectionUrl(f"Invalid connection url: {e}") from e
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise InvalidConnectionUrl(f"Invalid connection url: {name!r}")

    creds = _coerce_credentials(auth if auth is not None else credentials)

    url = name
    userinfo, sep, host = parts.netloc.rpartition("@")
    if sep:
        username, _, password = userinfo.partition(":")
        if username:
            creds = Credentials(username=unquote(username), password=unquote(password))
        url = urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))

    return ConnectionDescriptor(url=url, credentials=creds, session=session or None)
