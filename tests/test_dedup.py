"""Tests for identity folding across endpoints."""

from __future__ import annotations

import httpx
import pytest

from avatar_etl.clients.http import HarvestAsyncClient
from avatar_etl.core.dedup import fold_identities, sorted_identities
from avatar_etl.models import Endpoint
from avatar_etl.pipeline import harvest_identities
from avatar_etl.telemetry.metrics import Metrics


class TestFoldIdentities:
    def test_blank_entries_are_dropped(self) -> None:
        assert fold_identities(["", "  ", "ABC123"]) == frozenset({"ABC123"})

    def test_tabs_and_newlines_are_blank(self) -> None:
        assert fold_identities(["\t", "\n ", "X"]) == frozenset({"X"})

    def test_duplicates_across_batches(self) -> None:
        assert fold_identities(["A", "B"], ["B", "C"], ["A"]) == frozenset({"A", "B", "C"})

    def test_compared_verbatim(self) -> None:
        assert fold_identities(["abc", "ABC"]) == frozenset({"abc", "ABC"})

    def test_no_batches(self) -> None:
        assert fold_identities() == frozenset()

    def test_sorted_enumeration(self) -> None:
        assert sorted_identities(fold_identities(["C", "A"], ["B"])) == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_same_identity_from_two_endpoints_is_kept_once(make_config) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "validators": [
                    {"description": {"identity": "SHARED"}},
                    {"description": {"identity": request.url.host.upper()}},
                    {"description": {"identity": ""}},
                ],
                "pagination": {"next_key": None},
            },
        )

    endpoints = [
        Endpoint(lcd="https://one.test", chain_id="one-1"),
        Endpoint(lcd="https://two.test", chain_id="two-1"),
    ]
    metrics = Metrics()
    async with HarvestAsyncClient(transport=httpx.MockTransport(handler)) as client:
        identities, harvests = await harvest_identities(
            client, endpoints, make_config(), metrics
        )

    assert identities == frozenset({"SHARED", "ONE.TEST", "TWO.TEST"})
    assert [h.endpoint.chain_id for h in harvests] == ["one-1", "two-1"]
    assert metrics.identities_unique == 3
    assert metrics.endpoints_total == 2
