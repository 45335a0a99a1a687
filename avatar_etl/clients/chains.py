"""Chain directory: the list of LCD endpoints to harvest validators from."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.config import Config
from avatar_etl.errors import DirectoryError, FetchError
from avatar_etl.models import Endpoint, PaginationDialect

logger = logging.getLogger(__name__)


def build_endpoints(
    directory: Any,
    *,
    network: str,
    skip_chains: Iterable[str] = (),
    offset_chains: Iterable[str] = (),
    offset_lcds: Iterable[str] = (),
) -> List[Endpoint]:
    """Turn a decoded chain directory into :class:`Endpoint` records.

    ``directory`` maps network names to ``{chain name: metadata}`` where the
    metadata carries at least ``lcd`` and ``chainID``. Chains whose id is in
    ``skip_chains`` are dropped. The pagination dialect is decided here, once:
    an endpoint uses offsets when its chain id is in ``offset_chains`` or its
    base URL is in ``offset_lcds``.
    """
    if not isinstance(directory, dict):
        raise DirectoryError("chain directory is not a JSON object")
    chains = directory.get(network)
    if not isinstance(chains, dict):
        raise DirectoryError(f"chain directory has no {network!r} section")

    skip = set(skip_chains)
    by_chain = set(offset_chains)
    by_lcd = {u.rstrip("/") for u in offset_lcds}

    endpoints: List[Endpoint] = []
    for name, meta in chains.items():
        if not isinstance(meta, dict):
            logger.warning("Chain %s: metadata is not an object, skipping", name)
            continue
        lcd = meta.get("lcd")
        chain_id = str(meta.get("chainID") or name)
        if chain_id in skip:
            logger.info("Chain %s (%s) is in the skip list", name, chain_id)
            continue
        if not isinstance(lcd, str) or not lcd.strip():
            logger.warning("Chain %s (%s) has no LCD, skipping", name, chain_id)
            continue
        lcd = lcd.strip().rstrip("/")
        dialect = (
            PaginationDialect.OFFSET
            if chain_id in by_chain or lcd in by_lcd
            else PaginationDialect.CURSOR
        )
        endpoints.append(
            Endpoint(lcd=lcd, chain_id=chain_id, network=network, dialect=dialect)
        )
    return endpoints


async def fetch_endpoints(client: HarvestAsyncClient, config: Config) -> List[Endpoint]:
    """Download the chain directory and build the endpoint list.

    Raises
    ------
    DirectoryError
        If the directory cannot be fetched or has an unexpected shape.
    """
    try:
        directory = await client.get_json(config.chains_url)
    except FetchError as exc:
        raise DirectoryError(f"cannot fetch chain directory: {exc}") from exc

    endpoints = build_endpoints(
        directory,
        network=config.network,
        skip_chains=config.skip_chains,
        offset_chains=config.offset_chains,
        offset_lcds=config.offset_lcds,
    )
    logger.info(
        "Fetched %d %s endpoints (%d using offset pagination)",
        len(endpoints),
        config.network,
        sum(1 for e in endpoints if e.dialect is PaginationDialect.OFFSET),
    )
    return endpoints
