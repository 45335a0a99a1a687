"""Two-hop Keybase lookup: identity -> PGP fingerprint -> primary picture URL."""

from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter
from typing import Any, Optional

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.constants import KEYBASE_API_URL, UNRESOLVED
from avatar_etl.errors import FetchError
from avatar_etl.models import Resolution
from avatar_etl.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


def extract_fingerprint(data: Any) -> Optional[str]:
    """Return ``keys[0].fingerprint`` or ``None``."""
    try:
        fingerprint = data["keys"][0]["fingerprint"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(fingerprint, str) and fingerprint:
        return fingerprint
    return None


def extract_picture_url(data: Any) -> Optional[str]:
    """Return the primary picture URL from a ``user/lookup`` response.

    ``them`` is usually a list of matches; some responses carry the single
    match object directly. Both shapes are tried, list first.
    """
    them = data.get("them") if isinstance(data, dict) else None
    first = them[0] if isinstance(them, list) and them else None
    for match in (first, them):
        try:
            url = match["pictures"]["primary"]["url"]
        except (KeyError, IndexError, TypeError):
            continue
        if isinstance(url, str) and url:
            return url
    return None


def image_extension(url: str) -> Optional[str]:
    """Substring after the last ``.`` of the URL's final path segment."""
    tail = url.rsplit("/", 1)[-1]
    if "." not in tail:
        return None
    ext = tail.rsplit(".", 1)[1]
    return ext or None


def image_path(images_dir: Path, identity: str, image_url: str) -> Optional[Path]:
    ext = image_extension(image_url)
    if ext is None:
        return None
    return images_dir / f"{identity}.{ext}"


def _is_safe_filename(identity: str) -> bool:
    return not ("/" in identity or "\\" in identity or identity.startswith("."))


class KeybaseResolver:
    """Resolves validator identities to avatar URLs and file paths.

    Holds no per-identity state, so :meth:`resolve` may run concurrently for
    distinct identities.
    """

    def __init__(
        self,
        client: HarvestAsyncClient,
        images_dir: Path,
        api_url: str = KEYBASE_API_URL,
        metrics: Metrics | None = None,
    ) -> None:
        self.client = client
        self.images_dir = images_dir
        self.api_url = api_url.rstrip("/")
        self.metrics = metrics

    async def fetch_fingerprint(self, identity: str) -> Optional[str]:
        data = await self.client.get_json(
            f"{self.api_url}/key/fetch.json", params={"pgp_key_ids": identity}
        )
        return extract_fingerprint(data)

    async def fetch_picture_url(self, fingerprint: str) -> Optional[str]:
        data = await self.client.get_json(
            f"{self.api_url}/user/lookup.json", params={"key_fingerprint": fingerprint}
        )
        return extract_picture_url(data)

    async def resolve(self, identity: str) -> Resolution | object:
        """Return a :class:`Resolution` or :data:`UNRESOLVED`.

        Never raises for lookup failures; each one is logged with the
        offending identity.
        """
        if not _is_safe_filename(identity):
            logger.warning("Identity %r is not usable as a file name", identity)
            return UNRESOLVED

        start = perf_counter()
        try:
            fingerprint = await self.fetch_fingerprint(identity)
            if fingerprint is None:
                logger.info("Identity %s: no PGP key on Keybase", identity)
                return UNRESOLVED

            image_url = await self.fetch_picture_url(fingerprint)
            if image_url is None:
                logger.info(
                    "Identity %s: fingerprint %s has no primary picture",
                    identity, fingerprint,
                )
                return UNRESOLVED
        except FetchError as exc:
            if self.metrics is not None:
                self.metrics.record_error(exc)
            logger.warning("Identity %s: lookup failed: %s", identity, exc)
            return UNRESOLVED
        finally:
            if self.metrics is not None:
                self.metrics.observe_stage("resolve", perf_counter() - start)

        filepath = image_path(self.images_dir, identity, image_url)
        if filepath is None:
            logger.info("Identity %s: picture URL %s has no extension", identity, image_url)
            return UNRESOLVED

        return Resolution(
            identity=identity,
            fingerprint=fingerprint,
            image_url=image_url,
            filepath=filepath,
        )
