from __future__ import annotations
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Mapping
import logging
import httpx
from tenacity import retry, stop_after_attempt, wait_exponential_jitter, retry_if_exception_type
from couch_session.application.ports.http_client_port import HttpClientPort, HttpResponse

logger = logging.getLogger(__name__)


class HttpTemporaryError(Exception):
    pass


class HttpxClient(HttpClientPort):
    def __init__(
        self,
        timeout: float = 45.0,
        *,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """HTTP client adapter backed by a persistent httpx.AsyncClient.

        - Never stores response cookies: session cookies are attached by the
          session layer, per request
        - Collapses repeated response headers to their first value
        - Retries network failures, never HTTP statuses

        Args:
            timeout (float, optional): Timeout for requests. Defaults to 45.0.
            default_headers (Mapping[str, str] | None, optional): Headers sent with every request.
            transport (httpx.AsyncBaseTransport | None, optional): Custom transport (tests, proxies).
        """
        headers = {"User-Agent": "couch-session-auth/0.1 httpx"}
        headers.update(default_headers or {})
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            transport=transport,
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
        )

    @retry(reraise=True, stop=stop_after_attempt(3), wait=wait_exponential_jitter(initial=1, max=8), retry=retry_if_exception_type(HttpTemporaryError))
    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
    ) -> HttpResponse:
        """Sends a request.

        Args:
            method (str): HTTP method.
            url (str): Absolute URL.
            headers (Mapping[str, str] | None, optional): Headers to include. Defaults to None.
            content (str | bytes | None, optional): Raw request body. Defaults to None.

        Returns:
            HttpResponse: Response from the server, whatever its status.

        Raises:
            HttpTemporaryError: the request could not be completed after retries.
        """
        try:
            resp = await self._client.request(method, url, headers=headers, content=content)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise HttpTemporaryError(f"{method} {url}: {e}") from e
        logger.debug("%s %s -> %s", method, url, resp.status_code)
        return HttpResponse(resp.status_code, resp.text, str(resp.url), _first_values(resp.headers), raw=resp)

    async def aclose(self) -> None:
        await self._client.aclose()


def _first_values(headers: httpx.Headers) -> dict[str, str]:
    return {key: headers.get_list(key)[0] for key in headers.keys()}
