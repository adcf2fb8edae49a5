"""HTTP client for the upstream provider."""

import logging
from typing import AsyncIterator, Iterable, Optional
from urllib.parse import urlparse

import httpx

from chatbridge.config import Settings
from chatbridge.core.errors import UpstreamError

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "proxy-connection",
}


def filter_headers(headers: Iterable[tuple[str, str]], drop: Iterable[str] = ()) -> list[tuple[str, str]]:
    """Remove hop-by-hop headers plus any extra names in ``drop``."""
    excluded = HOP_BY_HOP_HEADERS | {name.lower() for name in drop}
    return [(key, value) for key, value in headers if key.lower() not in excluded]


class UpstreamClient:
    """Shared httpx client for one provider, created once per application."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the upstream client.

        Args:
            settings: Application settings (provider, base URLs, keys, timeout)
            transport: Optional httpx transport, used by tests to fake the upstream
        """
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout),
            transport=transport,
            follow_redirects=False,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.settings.groq_base_url.rstrip('/')}/chat/completions"

    def _completion_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.groq_api_key}",
        }

    async def create_completion(self, payload: dict) -> httpx.Response:
        """
        Send a buffered chat completion request.

        Raises:
            UpstreamError: If the request cannot be sent or read
        """
        logger.debug(f"Forwarding to: {self.completions_url}")
        try:
            return await self._client.post(
                self.completions_url,
                json=payload,
                headers=self._completion_headers(),
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream request failed: {e}") from e

    async def open_completion_stream(self, payload: dict) -> httpx.Response:
        """
        Send a streaming chat completion request.

        The returned response has not been read; the caller must close it,
        typically through ``iter_lines``.

        Raises:
            UpstreamError: If the request cannot be sent
        """
        logger.debug(f"Forwarding to: {self.completions_url}")
        request = self._client.build_request(
            "POST",
            self.completions_url,
            json=payload,
            headers=self._completion_headers(),
        )
        try:
            return await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream request failed: {e}") from e

    async def forward(
        self,
        method: str,
        path: str,
        query: str,
        headers: list[tuple[str, str]],
        body: bytes,
    ) -> httpx.Response:
        """
        Forward a request verbatim to the Anthropic-compatible provider.

        Only the Host and (when configured) Authorization headers are
        rewritten. The response is returned unread.

        Raises:
            UpstreamError: If the request cannot be sent
        """
        base_url = self.settings.moonshot_base_url.rstrip("/")
        target_url = f"{base_url}/{path.lstrip('/')}"
        if query:
            target_url = f"{target_url}?{query}"

        drop = {"host", "content-length"}
        if self.settings.moonshot_api_key:
            drop.add("authorization")
        outgoing = filter_headers(headers, drop=drop)
        outgoing.append(("Host", urlparse(base_url).netloc))
        if self.settings.moonshot_api_key:
            outgoing.append(("Authorization", f"Bearer {self.settings.moonshot_api_key}"))

        logger.debug(f"Forwarding to: {target_url}")
        request = self._client.build_request(method, target_url, headers=outgoing, content=body)
        try:
            return await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Upstream request failed: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()


async def iter_lines(response: httpx.Response) -> AsyncIterator[str]:
    """Yield decoded lines from a streaming response, closing it afterwards."""
    try:
        async for line in response.aiter_lines():
            yield line
    finally:
        await response.aclose()


async def iter_raw(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield raw body chunks from a streaming response, closing it afterwards."""
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()
