"""Async HTTP client shared by the harvest, resolve and download stages."""

from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter
from typing import Any, Mapping, Optional

import aiofiles
import aiofiles.os
import httpx
import orjson

from avatar_etl.errors import DownloadError, FetchError
from avatar_etl.models import DownloadResult

logger = logging.getLogger(__name__)


class HarvestAsyncClient:
    """Minimal async wrapper around :class:`httpx.AsyncClient`.

    Every JSON GET goes through :meth:`get_json`, which turns transport
    failures, HTTP error statuses and undecodable bodies into
    :class:`~avatar_etl.errors.FetchError`. Image downloads go through
    :meth:`download`, which never follows redirects.
    """

    def __init__(
        self,
        request_timeout: float = 30.0,
        max_connections: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Create a new client.

        Parameters
        ----------
        request_timeout:
            Timeout applied to JSON requests.
        max_connections:
            Maximum number of concurrent HTTP connections.
        transport:
            Optional transport handed to httpx (tests pass a
            :class:`httpx.MockTransport`).
        """
        self._timeout = httpx.Timeout(request_timeout)
        self._limits = httpx.Limits(
            max_connections=max_connections, max_keepalive_connections=max_connections
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HarvestAsyncClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close the HTTP client when leaving the context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=self._limits,
                transport=self._transport,
                follow_redirects=False,
            )

    def _require_client(self) -> httpx.AsyncClient:
        """Return the initialized HTTP client or raise ``RuntimeError``."""
        if self._client is None:
            raise RuntimeError(
                "Client not initialized; use 'async with HarvestAsyncClient()'")
        return self._client

    async def get_json(
        self, url: str, params: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """GET ``url`` and return the decoded JSON body.

        Raises
        ------
        FetchError
            On network failure, a non-2xx status or a body that is not JSON.
        """
        client = self._require_client()
        try:
            resp = await client.get(
                url, params=params, headers={"Accept": "application/json"}
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc
        try:
            return orjson.loads(resp.content)
        except orjson.JSONDecodeError as exc:
            raise FetchError(url, "response is not JSON") from exc

    async def download(
        self,
        url: str,
        dest: Path,
        timeout: float = 60.0,
        chunk_size: int = 8192,
    ) -> DownloadResult:
        """Stream ``url`` into ``dest``.

        The body is written to ``<dest>.part`` and moved over ``dest`` once the
        file is flushed and closed, so ``dest`` only ever holds a complete
        image. Redirects are not followed and count as failures.

        Parameters
        ----------
        url:
            Image URL.
        dest:
            Destination file path.
        timeout:
            Maximum seconds to wait for the download.
        chunk_size:
            Size of chunks read from the network.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")
        client = self._require_client()
        start = perf_counter()
        n_bytes = 0

        try:
            async with client.stream(
                "GET", url, timeout=timeout, follow_redirects=False
            ) as resp:
                if resp.is_redirect:
                    raise DownloadError(
                        f"{url}: redirect {resp.status_code} to "
                        f"{resp.headers.get('location', '?')} not followed"
                    )
                if not resp.is_success:
                    raise DownloadError(f"{url}: HTTP {resp.status_code}")
                async with aiofiles.open(part, "wb") as fd:
                    async for chunk in resp.aiter_bytes(chunk_size):
                        n_bytes += len(chunk)
                        await fd.write(chunk)
                    await fd.flush()
        except httpx.HTTPError as exc:
            await _discard(part)
            raise DownloadError(f"{url}: {type(exc).__name__}: {exc}") from exc
        except BaseException:
            await _discard(part)
            raise

        await aiofiles.os.replace(part, dest)

        duration = perf_counter() - start
        logger.debug(
            "Downloaded %s to %s: %d bytes in %.3fs", url, dest, n_bytes, duration
        )
        return DownloadResult(path=dest, bytes=n_bytes, duration=duration)


async def _discard(path: Path) -> None:
    if await aiofiles.os.path.exists(path):
        await aiofiles.os.remove(path)
