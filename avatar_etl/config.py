"""Environment-based configuration loading for the harvester."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from avatar_etl.constants import (
    DEFAULT_CHAINS_URL,
    DEFAULT_CONCURRENCY,
    DEFAULT_NETWORK,
    DEFAULT_OFFSET_LCDS,
    DEFAULT_PAGE_SIZE,
    KEYBASE_API_URL,
)


@dataclass
class Config:
    """Configuration values derived from environment variables."""
    # Chain directory
    chains_url: str
    network: str
    skip_chains: frozenset[str]
    offset_chains: frozenset[str]
    offset_lcds: frozenset[str]

    # Harvest stage
    page_size: int
    max_pages: int

    # Resolve / download stage
    concurrency: int
    images_dir: Path
    keybase_url: str
    task_timeout: float | None
    submit_interval: float

    # HTTP
    http_max: int
    req_timeout: float
    dl_timeout: float
    chunk_size: int


def _csv(name: str, default: str = "") -> frozenset[str]:
    """Split a comma separated env var into a set of stripped, non-empty items."""
    raw = os.getenv(name, default)
    return frozenset(part.strip().rstrip("/") for part in raw.split(",") if part.strip())


async def initialize_environment(
    *,
    concurrency: int | None = None,
    page_size: int | None = None,
) -> Config:
    """Load environment variables and build a :class:`Config` instance.

    ``concurrency`` and ``page_size`` take precedence over the environment
    when given (they come from the command line).
    """
    load_dotenv()

    if concurrency is None:
        concurrency = int(os.getenv("AV_CONCURRENCY", str(DEFAULT_CONCURRENCY)))
    if page_size is None:
        page_size = int(os.getenv("AV_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    if page_size < 1:
        raise ValueError(f"page size must be >= 1, got {page_size}")
    max_pages = int(os.getenv("AV_MAX_PAGES", "1000"))
    if max_pages < 1:
        raise ValueError(f"max pages must be >= 1, got {max_pages}")
    # seconds between scheduler submissions; keeps Keybase under its rate limit
    submit_interval = float(os.getenv("AV_SUBMIT_INTERVAL", "1.0"))
    if submit_interval < 0:
        raise ValueError(f"submit interval must be >= 0, got {submit_interval}")

    # 0 (the default) disables the per-task timeout
    task_timeout = float(os.getenv("AV_TASK_TIMEOUT", "0"))

    return Config(
        chains_url=os.getenv("AV_CHAINS_URL", DEFAULT_CHAINS_URL),
        network=os.getenv("AV_NETWORK", DEFAULT_NETWORK),
        skip_chains=_csv("AV_SKIP_CHAINS"),
        offset_chains=_csv("AV_OFFSET_CHAINS"),
        offset_lcds=_csv("AV_OFFSET_LCDS", ",".join(DEFAULT_OFFSET_LCDS)),

        page_size=page_size,
        max_pages=max_pages,

        concurrency=concurrency,
        images_dir=Path(os.getenv("AV_IMAGES_DIR", "images")),
        keybase_url=os.getenv("AV_KEYBASE_URL", KEYBASE_API_URL),
        task_timeout=task_timeout if task_timeout > 0 else None,
        submit_interval=submit_interval,

        http_max=int(os.getenv("AV_HTTP_MAX", str(concurrency * 2))),
        req_timeout=float(os.getenv("AV_REQ_TIMEOUT", "30")),
        dl_timeout=float(os.getenv("AV_DL_TIMEOUT", "60")),
        chunk_size=int(os.getenv("AV_CHUNK_SIZE", "8192")),
    )
