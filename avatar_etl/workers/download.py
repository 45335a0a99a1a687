"""Task that resolves one identity and downloads its avatar."""

from __future__ import annotations

import logging

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.clients.keybase import KeybaseResolver
from avatar_etl.constants import UNRESOLVED
from avatar_etl.models import IdentityOutcome, OutcomeStatus, Resolution
from avatar_etl.telemetry.metrics import Metrics

logger = logging.getLogger(__name__)


async def resolve_and_download(
    identity: str,
    resolver: KeybaseResolver,
    client: HarvestAsyncClient,
    metrics: Metrics,
    dl_timeout: float = 60.0,
    chunk_size: int = 8192,
) -> IdentityOutcome:
    """
    Resolve ``identity`` through Keybase and, when that succeeds, stream the
    picture to its file path. An unresolvable identity yields an
    ``unresolved`` outcome. Download failures are raised so the scheduler
    settles this task's future as failed.
    """
    resolution = await resolver.resolve(identity)
    if resolution is UNRESOLVED:
        metrics.inc("unresolved")
        return IdentityOutcome(identity=identity, status=OutcomeStatus.UNRESOLVED)

    assert isinstance(resolution, Resolution)
    metrics.inc("resolved")

    dl_res = await client.download(
        resolution.image_url,
        resolution.filepath,
        timeout=dl_timeout,
        chunk_size=chunk_size,
    )
    metrics.inc("downloads_ok")
    metrics.add_bytes(dl_res.bytes)
    metrics.observe_stage("download", dl_res.duration)
    logger.debug("Identity %s saved to %s", identity, dl_res.path)
    return IdentityOutcome(
        identity=identity, status=OutcomeStatus.DOWNLOADED, path=dl_res.path
    )
