"""
Walks one LCD's ``/cosmos/staking/v1beta1/validators`` listing page by page
and collects the ``description.identity`` of every validator it sees.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, List, Optional
from urllib.parse import quote

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.constants import DEFAULT_PAGE_SIZE, VALIDATORS_PATH
from avatar_etl.errors import FetchError
from avatar_etl.models import Endpoint, EndpointHarvest, PaginationDialect
from avatar_etl.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


def page_url(
    endpoint: Endpoint,
    page: int,
    page_size: int,
    cursor: Optional[str] = None,
) -> str:
    """Build the listing URL for ``page`` (1-based).

    Offset endpoints always carry ``pagination.offset=(page-1)*page_size``.
    Cursor endpoints carry the percent-encoded ``cursor`` when there is one.
    """
    url = f"{endpoint.lcd}{VALIDATORS_PATH}?pagination.limit={page_size}"
    if endpoint.dialect is PaginationDialect.OFFSET:
        url += f"&pagination.offset={(page - 1) * page_size}"
    elif cursor:
        url += f"&pagination.key={quote(cursor, safe='')}"
    return url


def extract_identities(data: Any) -> Optional[List[str]]:
    """Return the raw identity strings on a page, or ``None`` if the page has
    no usable ``validators`` list. Blank identities are kept; the
    deduplicator drops them.
    """
    validators = data.get("validators") if isinstance(data, dict) else None
    if not isinstance(validators, list):
        return None
    identities: List[str] = []
    for item in validators:
        description = item.get("description") if isinstance(item, dict) else None
        identity = description.get("identity") if isinstance(description, dict) else None
        if isinstance(identity, str):
            identities.append(identity)
    return identities


def next_key(data: Any) -> Optional[str]:
    """Return ``pagination.next_key`` when it is a non-empty string."""
    pagination = data.get("pagination") if isinstance(data, dict) else None
    key = pagination.get("next_key") if isinstance(pagination, dict) else None
    if isinstance(key, str) and key:
        return key
    return None


async def walk_endpoint(
    client: HarvestAsyncClient,
    endpoint: Endpoint,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: int = 1000,
    metrics: Metrics | None = None,
) -> EndpointHarvest:
    """Collect identities from every page of ``endpoint``.

    The walk stops when a page has no ``pagination.next_key``. A page whose
    validator list is missing or malformed contributes nothing but does not
    stop the walk. A failed request (network, HTTP status, non-JSON) ends the
    walk; identities gathered so far are kept and the error is recorded on
    the returned :class:`EndpointHarvest`. Never raises :class:`FetchError`.
    """
    harvest = EndpointHarvest(endpoint=endpoint)
    cursor: Optional[str] = None
    seen_keys: set[str] = set()
    page = 1

    logger.info("Processing validator identities from LCD: %s", endpoint.lcd)

    while True:
        if page > max_pages:
            logger.warning(
                "%s: stopping after %d pages (page ceiling)", endpoint.lcd, max_pages
            )
            break

        url = page_url(endpoint, page, page_size, cursor)
        start = perf_counter()
        try:
            data = await client.get_json(url)
        except FetchError as exc:
            harvest.error = str(exc)
            if metrics is not None:
                metrics.record_error(exc)
            logger.warning(
                "%s: page %d failed, abandoning endpoint: %s",
                endpoint.lcd, page, exc.reason,
            )
            break
        finally:
            if metrics is not None:
                metrics.observe_stage("page", perf_counter() - start)

        harvest.pages += 1
        if metrics is not None:
            metrics.inc("pages_fetched")

        identities = extract_identities(data)
        if identities is None:
            harvest.malformed_pages += 1
            if metrics is not None:
                metrics.inc("pages_malformed")
            logger.warning("%s: page %d has no validator list", endpoint.lcd, page)
        else:
            harvest.identities.update(identities)
            if metrics is not None:
                metrics.inc("identities_harvested", len(identities))
            logger.info(
                "\tPage %d processed (%d validators)", page, len(identities)
            )

        key = next_key(data)
        if key is None:
            break
        # offset requests never echo the key back, so only cursors can loop
        if endpoint.dialect is PaginationDialect.CURSOR and key in seen_keys:
            logger.warning(
                "%s: next_key repeated on page %d, stopping", endpoint.lcd, page
            )
            break
        seen_keys.add(key)
        cursor = key
        page += 1

    return harvest
