from __future__ import annotations
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urlsplit, urlunsplit

SESSION_COOKIE_NAME = "AuthSession"
SESSION_PATH = "/_session"
_DEFAULT_PORTS = {"http": 80, "https": 443}

# Caller-supplied sessions never expire through the cache.
MAX_TIMESTAMP = datetime.max.replace(tzinfo=UTC)
# Cookies without a usable Expires attribute are treated as already expired.
MIN_TIMESTAMP = datetime.min.replace(tzinfo=UTC)

# (username, password, explicit session or "", session endpoint url)
SessionKey = tuple[str, str, str, str]

# =========================
# Value Objects
# =========================
@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class SessionRecord:
    """Session token issued by the server (or supplied by the caller)."""

    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at

    @classmethod
    def explicit(cls, token: str) -> "SessionRecord":
        return cls(token=token, expires_at=MAX_TIMESTAMP)

    def __repr__(self) -> str:
        return f"SessionRecord(token='***', expires_at={self.expires_at.isoformat()})"

# =========================
# Entities
# =========================
@dataclass(frozen=True)
class ConnectionDescriptor:
    """Normalized connection: userinfo already stripped from ``url``."""

    url: str
    credentials: Credentials | None = None
    session: str | None = None

    @property
    def has_session_auth(self) -> bool:
        return self.credentials is not None or bool(self.session)

    @property
    def session_url(self) -> str:
        parts = urlsplit(self.url)
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        if parts.port is not None and parts.port != _DEFAULT_PORTS.get(parts.scheme):
            host = f"{host}:{parts.port}"
        return urlunsplit((parts.scheme, host, SESSION_PATH, "", ""))

    @property
    def session_key(self) -> SessionKey:
        return derive_session_key(self)


def derive_session_key(descriptor: ConnectionDescriptor) -> SessionKey:
    creds = descriptor.credentials
    return (
        creds.username if creds else "",
        creds.password if creds else "",
        descriptor.session or "",
        descriptor.session_url,
    )
