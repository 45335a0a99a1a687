from __future__ import annotations

from typing import Iterable, List


def fold_identities(*batches: Iterable[str]) -> frozenset[str]:
    """Merge identity batches into one set without blank entries.

    Identities are compared verbatim; only empty and whitespace-only strings
    are discarded.
    """
    identities: set[str] = set()
    for batch in batches:
        identities.update(i for i in batch if i.strip())
    return frozenset(identities)


def sorted_identities(identities: Iterable[str]) -> List[str]:
    return sorted(identities)
