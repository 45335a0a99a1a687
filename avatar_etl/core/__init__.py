from __future__ import annotations

from .dedup import fold_identities, sorted_identities
from .pagination import (
    extract_identities,
    next_key,
    page_url,
    walk_endpoint,
)

__all__ = [
    "fold_identities",
    "sorted_identities",
    "extract_identities",
    "next_key",
    "page_url",
    "walk_endpoint",
]
