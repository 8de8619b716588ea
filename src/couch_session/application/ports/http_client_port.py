from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol
import json


class HttpResponse:
    def __init__(
        self,
        status_code: int,
        text: str,
        url: str,
        headers: Mapping[str, str],
        *,
        raw: Any | None = None,
    ) -> None:
        self.status_code = status_code
        self.text = text
        self.url = url
        # Lower-cased keys, one value per header (the first one received).
        self.headers = {k.lower(): v for k, v in headers.items()}
        self._raw = raw

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def request(self) -> Any:
        if self._raw is None or not hasattr(self._raw, "request"):
            raise AttributeError("request not available")
        return self._raw.request

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def json(self) -> Any:
        if self._raw is not None and hasattr(self._raw, "json"):
            return self._raw.json()
        return json.loads(self.text)

    def __repr__(self) -> str:
        return f"HttpResponse(status_code={self.status_code}, url={self.url!r})"


class HttpClientPort(Protocol):
    """Minimal async HTTP transport: the one capability the session layer wraps."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
    ) -> HttpResponse: ...
