"""Top level orchestration: harvest identities, then resolve and download."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

import httpx

from avatar_etl.clients.chains import fetch_endpoints
from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.clients.keybase import KeybaseResolver
from avatar_etl.config import Config, initialize_environment
from avatar_etl.core.dedup import fold_identities, sorted_identities
from avatar_etl.core.pagination import walk_endpoint
from avatar_etl.errors import DownloadError
from avatar_etl.models import Endpoint, EndpointHarvest, IdentityOutcome, OutcomeStatus
from avatar_etl.scheduler import BoundedScheduler
from avatar_etl.telemetry.metrics import Metrics
from avatar_etl.workers.download import resolve_and_download

logger = logging.getLogger(__name__)


async def harvest_identities(
    client: HarvestAsyncClient,
    endpoints: Iterable[Endpoint],
    config: Config,
    metrics: Metrics,
) -> Tuple[frozenset[str], List[EndpointHarvest]]:
    """Walk every endpoint, one after the other, and fold their identities.

    Endpoint N+1 is not started before endpoint N's walk is exhausted.
    """
    harvests: List[EndpointHarvest] = []
    for endpoint in endpoints:
        harvest = await walk_endpoint(
            client, endpoint, config.page_size, config.max_pages, metrics
        )
        metrics.inc("endpoints_total")
        if harvest.error is not None:
            metrics.inc("endpoints_failed")
        logger.info(
            "%s (%s): %d identities over %d pages%s",
            endpoint.lcd,
            endpoint.chain_id,
            len(harvest.identities),
            harvest.pages,
            " [aborted]" if harvest.error else "",
        )
        harvests.append(harvest)

    identities = fold_identities(*(h.identities for h in harvests))
    metrics.inc("identities_unique", len(identities))
    return identities, harvests


async def _identity_task(
    identity: str,
    resolver: KeybaseResolver,
    client: HarvestAsyncClient,
    metrics: Metrics,
    config: Config,
) -> IdentityOutcome:
    job = resolve_and_download(
        identity, resolver, client, metrics, config.dl_timeout, config.chunk_size
    )
    if config.task_timeout is None:
        return await job
    return await asyncio.wait_for(job, timeout=config.task_timeout)


async def resolve_all(
    identities: Iterable[str],
    client: HarvestAsyncClient,
    config: Config,
    metrics: Metrics,
) -> List[IdentityOutcome]:
    """Resolve and download every identity through a :class:`BoundedScheduler`.

    Returns one outcome per identity, in sorted identity order.
    """
    resolver = KeybaseResolver(client, config.images_dir, config.keybase_url, metrics)
    scheduler = BoundedScheduler(config.concurrency)

    ordered = sorted_identities(identities)
    logger.info(
        "Resolving %d identities, %d at a time, one every %.2fs",
        len(ordered), scheduler.limit, config.submit_interval,
    )
    futures = []
    for n, identity in enumerate(ordered):
        if n and config.submit_interval > 0:
            await asyncio.sleep(config.submit_interval)
        futures.append(
            scheduler.submit(_identity_task, identity, resolver, client, metrics, config)
        )
    settled = await asyncio.gather(*futures, return_exceptions=True)

    outcomes: List[IdentityOutcome] = []
    for identity, res in zip(ordered, settled):
        if isinstance(res, BaseException):
            metrics.inc("tasks_failed")
            if isinstance(res, DownloadError):
                metrics.inc("downloads_failed")
            metrics.record_error(res)
            outcome = IdentityOutcome(
                identity=identity,
                status=OutcomeStatus.FAILED,
                error=f"{type(res).__name__}: {res}",
            )
            logger.error("Identity %s: task failed: %s", identity, outcome.error)
            outcomes.append(outcome)
        else:
            outcomes.append(res)
    return outcomes


async def run_pipeline(
    config: Config | None = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[List[IdentityOutcome], Metrics]:
    """Execute the full harvest and return per-identity outcomes and metrics.

    Parameters
    ----------
    config:
        Optional :class:`Config` instance. If ``None``, environment variables
        are loaded via :func:`initialize_environment`.
    transport:
        Optional httpx transport, used by tests to stub every remote service.

    Raises
    ------
    DirectoryError
        If the chain directory cannot be fetched; nothing else is fatal.
    """
    if config is None:
        config = await initialize_environment()

    metrics = Metrics()

    async with HarvestAsyncClient(
        request_timeout=config.req_timeout,
        max_connections=config.http_max,
        transport=transport,
    ) as client:
        endpoints = await fetch_endpoints(client, config)
        identities, _ = await harvest_identities(client, endpoints, config, metrics)
        logger.info("Harvested %d unique identities", len(identities))

        outcomes = await resolve_all(identities, client, config, metrics)

    unresolved = [o.identity for o in outcomes if o.status is OutcomeStatus.UNRESOLVED]
    if unresolved:
        logger.info(
            "Invalid identities (%d):\n%s",
            len(unresolved),
            "\n".join(f"\t{i}" for i in unresolved),
        )

    txt, _ = metrics.summary()
    logger.info("\n%s", txt)
    return outcomes, metrics
