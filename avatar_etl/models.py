from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class PaginationDialect(enum.Enum):
    """How an LCD expects the continuation of a validator listing."""

    CURSOR = "cursor"
    OFFSET = "offset"


@dataclass(frozen=True, slots=True)
class Endpoint:
    """One LCD base URL together with its pagination dialect."""

    lcd: str
    chain_id: str
    network: str = ""
    dialect: PaginationDialect = PaginationDialect.CURSOR


@dataclass(slots=True)
class EndpointHarvest:
    """What a single pagination walk produced."""

    endpoint: Endpoint
    identities: set[str] = field(default_factory=set)
    pages: int = 0
    malformed_pages: int = 0
    error: str | None = None


@dataclass(frozen=True, slots=True)
class Resolution:
    """A successfully resolved identity and where its image should be saved."""

    identity: str
    fingerprint: str
    image_url: str
    filepath: Path


@dataclass(slots=True)
class DownloadResult:
    """Outcome of a successful image download."""

    path: Path
    bytes: int
    duration: float


class OutcomeStatus(str, enum.Enum):
    DOWNLOADED = "downloaded"
    UNRESOLVED = "unresolved"
    FAILED = "failed"


@dataclass
class IdentityOutcome:
    identity: str
    status: OutcomeStatus
    path: Path | None = None
    error: str | None = None
