"""Tests for status-partitioned conversation search."""
from datetime import datetime, timezone

import httpx
import pytest

from conftest import RecordingTransport, conversations_page
from helpscout_mcp.search import (
    ZERO_RESULT_TIPS,
    MultiStatusSearchOrchestrator,
    SearchPartition,
    SearchPartitionExecutor,
    conversation_search_params,
    filter_created_before,
    format_timestamp,
    parse_timestamp,
)

FIXED_NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


def orchestrator_for(transport: RecordingTransport) -> MultiStatusSearchOrchestrator:
    return MultiStatusSearchOrchestrator(SearchPartitionExecutor(transport.client()), now=lambda: FIXED_NOW)


def by_status(responses):
    """Build a transport handler that answers per `status` query parameter."""

    def handler(request: httpx.Request) -> httpx.Response:
        response = responses[request.url.params.get("status")]
        if isinstance(response, Exception):
            raise response
        return response

    return handler


class TestTimestamps:
    def test_format_is_utc_with_z_suffix(self):
        assert format_timestamp(FIXED_NOW) == "2026-10-17T12:00:00Z"

    def test_naive_datetimes_are_treated_as_utc(self):
        assert format_timestamp(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05Z"

    def test_parse_accepts_z_suffix(self):
        assert parse_timestamp("2026-10-17T12:00:00Z") == FIXED_NOW

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
    def test_parse_rejects_garbage(self, value):
        assert parse_timestamp(value) is None


class TestCreatedBeforeFilter:
    def test_keeps_strictly_earlier_conversations(self):
        conversations = [
            {"id": 1, "createdAt": "2026-10-01T00:00:00Z"},
            {"id": 2, "createdAt": "2026-10-10T00:00:00Z"},
            {"id": 3, "createdAt": "2026-10-05T00:00:00Z"},
        ]
        kept = filter_created_before(conversations, "2026-10-10T00:00:00Z")
        assert [c["id"] for c in kept] == [1, 3]

    def test_drops_conversations_without_created_at(self):
        kept = filter_created_before([{"id": 1}, {"id": 2, "createdAt": "bad"}], "2026-10-10T00:00:00Z")
        assert kept == []

    def test_no_bound_keeps_everything(self):
        conversations = [{"id": 1}]
        assert filter_created_before(conversations, None) is conversations


class TestSearchParams:
    def test_all_parameters(self):
        params = conversation_search_params(
            limit=10,
            status="closed",
            query='(body:"x")',
            inbox_id="55",
            modified_since="2026-08-18T12:00:00Z",
        )
        assert params == {
            "page": 1,
            "size": 10,
            "sortField": "createdAt",
            "sortOrder": "desc",
            "query": '(body:"x")',
            "status": "closed",
            "mailbox": "55",
            "modifiedSince": "2026-08-18T12:00:00Z",
        }

    def test_optional_parameters_are_omitted(self):
        assert conversation_search_params(limit=5) == {
            "page": 1,
            "size": 5,
            "sortField": "createdAt",
            "sortOrder": "desc",
        }


class TestPartitionExecutor:
    """Test single-status execution and failure reporting."""

    @pytest.mark.asyncio
    async def test_sends_one_bounded_request(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=conversations_page([{"id": 1}])))
        executor = SearchPartitionExecutor(transport.client())
        partition = SearchPartition(
            status="pending", query='(body:"x")', created_after="2026-08-18T12:00:00Z", limit=25, inbox_id="9"
        )

        result = await executor.execute(partition)

        assert not result.failed
        assert result.items == [{"id": 1}]
        params = transport.requests[0].url.params
        assert transport.requests[0].url.path == "/v2/conversations"
        assert params["status"] == "pending"
        assert params["mailbox"] == "9"
        assert params["modifiedSince"] == "2026-08-18T12:00:00Z"
        assert params["size"] == "25"

    @pytest.mark.asyncio
    async def test_total_count_falls_back_to_item_count(self):
        payload = {"_embedded": {"conversations": [{"id": 1}, {"id": 2}]}}
        transport = RecordingTransport(lambda request: httpx.Response(200, json=payload))
        executor = SearchPartitionExecutor(transport.client())

        result = await executor.execute(SearchPartition("active", None, "2026-08-18T12:00:00Z", 25))

        assert result.total_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure",
        [
            httpx.ConnectError("connection refused"),
            httpx.Response(500, json={"message": "boom"}),
            httpx.Response(200, json={"_embedded": {"conversations": "not-a-list"}}),
            httpx.Response(200, content=b"<html>"),
        ],
    )
    async def test_failed_partition_does_not_affect_siblings(self, failure):
        transport = RecordingTransport(by_status({
            "active": httpx.Response(200, json=conversations_page([{"id": 1}], total=4)),
            "pending": failure,
        }))

        aggregated = await orchestrator_for(transport).run(statuses=["active", "pending"], query='(body:"x")')

        assert [r.status for r in aggregated.per_partition] == ["active", "pending"]
        active, pending = aggregated.per_partition
        assert not active.failed
        assert active.items == [{"id": 1}]
        assert pending.failed
        assert pending.items == []
        assert pending.total_count == 0
        assert aggregated.failed_statuses == ["pending"]
        assert aggregated.total_found == 1
        assert aggregated.total_available == 4


class TestOrchestrator:
    """Test fan-out planning and aggregation."""

    @pytest.mark.asyncio
    async def test_default_lower_bound_comes_from_timeframe(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=conversations_page([])))

        aggregated = await orchestrator_for(transport).run(statuses=["active"], query=None, timeframe_days=60)

        assert aggregated.created_after == "2026-08-18T12:00:00Z"
        assert transport.requests[0].url.params["modifiedSince"] == "2026-08-18T12:00:00Z"

    @pytest.mark.asyncio
    async def test_explicit_lower_bound_wins(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=conversations_page([])))

        aggregated = await orchestrator_for(transport).run(
            statuses=["active"], query=None, created_after="2025-01-01T00:00:00Z"
        )

        assert aggregated.created_after == "2025-01-01T00:00:00Z"

    def test_plan_keeps_order_and_duplicates(self):
        orchestrator = MultiStatusSearchOrchestrator(executor=None, now=lambda: FIXED_NOW)
        partitions = orchestrator.plan(statuses=["closed", "active", "closed"], query="q", limit_per_status=5)

        assert [p.status for p in partitions] == ["closed", "active", "closed"]
        assert {p.created_after for p in partitions} == {"2026-08-18T12:00:00Z"}
        assert all(p.limit == 5 for p in partitions)

    @pytest.mark.asyncio
    async def test_totals_and_created_before(self):
        transport = RecordingTransport(by_status({
            "active": httpx.Response(200, json=conversations_page([
                {"id": 1, "createdAt": "2026-10-01T00:00:00Z"},
                {"id": 2, "createdAt": "2026-10-16T00:00:00Z"},
            ], total=10)),
            "closed": httpx.Response(200, json=conversations_page([
                {"id": 3, "createdAt": "2026-09-01T00:00:00Z"},
            ], total=3)),
        }))

        aggregated = await orchestrator_for(transport).run(
            statuses=["active", "closed"], query=None, created_before="2026-10-15T00:00:00Z"
        )

        assert [c["id"] for c in aggregated.per_partition[0].items] == [1]
        assert aggregated.total_found == 2
        assert aggregated.total_available == 13
        assert aggregated.search_tips == []

    @pytest.mark.asyncio
    async def test_zero_results_add_search_tips(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=conversations_page([])))

        aggregated = await orchestrator_for(transport).run(statuses=["active", "closed"], query="q")

        assert aggregated.total_found == 0
        assert aggregated.search_tips == ZERO_RESULT_TIPS

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "statuses",
        [["active", "pending", "closed"], ["closed", "pending", "active"]],
    )
    async def test_totals_do_not_depend_on_status_order(self, statuses):
        transport = RecordingTransport(by_status({
            "active": httpx.Response(200, json=conversations_page([{"id": 1}, {"id": 2}], total=7)),
            "pending": httpx.ConnectError("boom"),
            "closed": httpx.Response(200, json=conversations_page([{"id": 3}], total=4)),
        }))

        aggregated = await orchestrator_for(transport).run(statuses=statuses, query="q")

        assert [r.status for r in aggregated.per_partition] == statuses
        assert aggregated.total_found == 3
        assert aggregated.total_available == 11
        assert aggregated.failed_statuses == ["pending"]
