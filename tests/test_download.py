"""Tests for image streaming and the resolve-then-download task."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.clients.keybase import KeybaseResolver
from avatar_etl.errors import DownloadError
from avatar_etl.models import OutcomeStatus
from avatar_etl.telemetry.metrics import Metrics
from avatar_etl.workers.download import resolve_and_download

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 5000


def _image_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/ok.png":
        return httpx.Response(200, content=PNG)
    if request.url.path == "/moved.png":
        return httpx.Response(302, headers={"location": "https://img.test/ok.png"})
    return httpx.Response(404)


async def _download(url: str, dest: Path, chunk_size: int = 1024):
    async with HarvestAsyncClient(transport=httpx.MockTransport(_image_handler)) as client:
        return await client.download(url, dest, chunk_size=chunk_size)


@pytest.mark.asyncio
async def test_streams_body_to_destination(tmp_path: Path) -> None:
    dest = tmp_path / "images" / "ABC.png"
    res = await _download("https://img.test/ok.png", dest)

    assert res.path == dest
    assert res.bytes == len(PNG)
    assert dest.read_bytes() == PNG
    assert not (tmp_path / "images" / "ABC.png.part").exists()


@pytest.mark.asyncio
async def test_overwrites_previous_download(tmp_path: Path) -> None:
    dest = tmp_path / "ABC.png"
    dest.write_bytes(b"old")
    await _download("https://img.test/ok.png", dest)
    assert dest.read_bytes() == PNG


@pytest.mark.asyncio
async def test_redirect_is_a_failure(tmp_path: Path) -> None:
    dest = tmp_path / "ABC.png"
    with pytest.raises(DownloadError, match="redirect 302"):
        await _download("https://img.test/moved.png", dest)
    assert not dest.exists()
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_error_status_is_a_failure(tmp_path: Path) -> None:
    dest = tmp_path / "ABC.png"
    with pytest.raises(DownloadError, match="HTTP 404"):
        await _download("https://img.test/gone.png", dest)
    assert not dest.exists()


@pytest.mark.asyncio
async def test_connection_error_is_a_download_error(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with HarvestAsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(DownloadError):
            await client.download("https://img.test/ok.png", tmp_path / "x.png")


@pytest.mark.asyncio
async def test_json_accept_header_is_not_sent_for_images(tmp_path: Path) -> None:
    accepts: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        accepts[request.url.path] = request.headers.get("accept", "")
        if request.url.path == "/data.json":
            return httpx.Response(200, json={"ok": True})
        return _image_handler(request)

    async with HarvestAsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await client.get_json("https://api.test/data.json") == {"ok": True}
        await client.download("https://img.test/ok.png", tmp_path / "ABC.png")

    assert accepts["/data.json"] == "application/json"
    assert "application/json" not in accepts["/ok.png"]


def _keybase_and_images(request: httpx.Request) -> httpx.Response:
    if request.url.host == "keybase.test":
        if request.url.path.endswith("/key/fetch.json"):
            if request.url.params["pgp_key_ids"] == "GOOD":
                return httpx.Response(200, json={"keys": [{"fingerprint": "FP"}]})
            return httpx.Response(200, json={"status": {"code": 0}, "keys": []})
        return httpx.Response(
            200, json={"them": [{"pictures": {"primary": {"url": "https://img.test/ok.png"}}}]}
        )
    return _image_handler(request)


@pytest.mark.asyncio
async def test_task_downloads_resolved_identity(tmp_path: Path) -> None:
    metrics = Metrics()
    async with HarvestAsyncClient(
        transport=httpx.MockTransport(_keybase_and_images)
    ) as client:
        resolver = KeybaseResolver(client, tmp_path, "https://keybase.test/_/api/1.0")
        outcome = await resolve_and_download("GOOD", resolver, client, metrics)

    assert outcome.status is OutcomeStatus.DOWNLOADED
    assert outcome.path == tmp_path / "GOOD.png"
    assert outcome.path.read_bytes() == PNG
    assert metrics.resolved == 1
    assert metrics.downloads_ok == 1
    assert metrics.bytes_downloaded == len(PNG)


@pytest.mark.asyncio
async def test_task_skips_download_for_unresolved(tmp_path: Path) -> None:
    metrics = Metrics()
    async with HarvestAsyncClient(
        transport=httpx.MockTransport(_keybase_and_images)
    ) as client:
        resolver = KeybaseResolver(client, tmp_path, "https://keybase.test/_/api/1.0")
        outcome = await resolve_and_download("BAD", resolver, client, metrics)

    assert outcome.status is OutcomeStatus.UNRESOLVED
    assert outcome.path is None
    assert metrics.unresolved == 1
    assert list(tmp_path.iterdir()) == []
