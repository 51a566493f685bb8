"""Status-partitioned conversation search.

Help Scout's conversation search takes exactly one status per request and
tends to return nothing without one, so a search "everywhere" is a fan-out:
one partition per status, each executed and failing on its own, then
aggregated in the order the statuses were requested.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

from .client import HelpScoutClient

logger = logging.getLogger("helpscout-mcp.search")

DEFAULT_SORT_FIELD = "createdAt"
DEFAULT_SORT_ORDER = "desc"
DEFAULT_STATUSES = ("active", "pending", "closed")
DEFAULT_TIMEFRAME_DAYS = 60
DEFAULT_LIMIT_PER_STATUS = 25

ZERO_RESULT_TIPS = [
    "Try broader search terms or increase the timeframe",
    "Check if the inbox ID is correct",
    "Consider searching without status restrictions first",
    "Verify that conversations exist for the specified criteria",
]


def format_timestamp(moment: datetime) -> str:
    """Render a moment as Help Scout's canonical UTC timestamp."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_created_before(
    conversations: list[dict[str, Any]], created_before: Optional[str]
) -> list[dict[str, Any]]:
    """Keep conversations created strictly before the bound.

    Help Scout only filters on a lower bound, so the upper bound is applied
    here. Conversations without a parseable createdAt are dropped.
    """
    if not created_before:
        return conversations
    bound = parse_timestamp(created_before)
    if bound is None:
        return conversations
    kept = []
    for conversation in conversations:
        created = parse_timestamp(conversation.get("createdAt"))
        if created is not None and created < bound:
            kept.append(conversation)
    return kept


def conversation_search_params(
    *,
    limit: int,
    page: int = 1,
    status: Optional[str] = None,
    query: Optional[str] = None,
    inbox_id: Optional[str] = None,
    modified_since: Optional[str] = None,
    sort_field: str = DEFAULT_SORT_FIELD,
    sort_order: str = DEFAULT_SORT_ORDER,
    tag: Optional[str] = None,
) -> dict[str, Any]:
    """Query parameters for `GET /conversations`."""
    params: dict[str, Any] = {
        "page": page,
        "size": limit,
        "sortField": sort_field,
        "sortOrder": sort_order,
    }
    if query:
        params["query"] = query
    if status:
        params["status"] = status
    if inbox_id:
        params["mailbox"] = inbox_id
    if tag:
        params["tag"] = tag
    if modified_since:
        params["modifiedSince"] = modified_since
    return params


@dataclass(frozen=True)
class SearchPartition:
    """Resolved parameters for one status-scoped search."""

    status: str
    query: Optional[str]
    created_after: str
    limit: int
    created_before: Optional[str] = None
    inbox_id: Optional[str] = None


@dataclass
class PartitionResult:
    status: str
    total_count: int
    items: list[dict[str, Any]]
    query: Optional[str]
    failed: bool = False

    @classmethod
    def failure(cls, partition: SearchPartition) -> "PartitionResult":
        return cls(
            status=partition.status,
            total_count=0,
            items=[],
            query=partition.query,
            failed=True,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "totalCount": self.total_count,
            "conversations": self.items,
            "searchQuery": self.query,
            "failed": self.failed,
        }


@dataclass
class AggregatedSearchResult:
    per_partition: list[PartitionResult]
    created_after: str
    created_before: Optional[str] = None
    search_tips: list[str] = field(default_factory=list)

    @property
    def total_found(self) -> int:
        return sum(len(result.items) for result in self.per_partition)

    @property
    def total_available(self) -> int:
        return sum(result.total_count for result in self.per_partition)

    @property
    def failed_statuses(self) -> list[str]:
        return [result.status for result in self.per_partition if result.failed]


class SearchPartitionExecutor:
    """Runs one bounded search for a single status."""

    def __init__(self, client: HelpScoutClient):
        self.client = client

    async def execute(self, partition: SearchPartition) -> PartitionResult:
        """Search one status, never raising.

        Any failure, from a dropped connection to a malformed envelope, is
        logged and reported as an empty result with failed=True so the other
        partitions of the same search still count.
        """
        params = conversation_search_params(
            limit=partition.limit,
            status=partition.status,
            query=partition.query,
            inbox_id=partition.inbox_id,
            modified_since=partition.created_after,
        )
        try:
            page = await self.client.get_page("/conversations", "conversations", params)
            conversations = filter_created_before(page.items, partition.created_before)
            total = page.total_elements
        except Exception as e:
            logger.warning(
                f"Failed to search conversations for status {partition.status}: "
                f"{type(e).__name__}: {e}"
            )
            return PartitionResult.failure(partition)

        logger.info(
            f"Status {partition.status}: {len(conversations)} conversations "
            f"({total if total is not None else 'unknown'} available)"
        )
        return PartitionResult(
            status=partition.status,
            total_count=total if total else len(conversations),
            items=conversations,
            query=partition.query,
        )


class MultiStatusSearchOrchestrator:
    """Fans a search out over statuses and aggregates the partitions."""

    def __init__(
        self,
        executor: SearchPartitionExecutor,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.executor = executor
        self._now = now

    def resolve_created_after(self, created_after: Optional[str], timeframe_days: int) -> str:
        if created_after:
            return created_after
        return format_timestamp(self._now() - timedelta(days=timeframe_days))

    def plan(
        self,
        *,
        statuses: Sequence[str],
        query: Optional[str],
        limit_per_status: int = DEFAULT_LIMIT_PER_STATUS,
        timeframe_days: int = DEFAULT_TIMEFRAME_DAYS,
        created_after: Optional[str] = None,
        created_before: Optional[str] = None,
        inbox_id: Optional[str] = None,
    ) -> list[SearchPartition]:
        """One partition per status, in the given order, duplicates kept."""
        lower_bound = self.resolve_created_after(created_after, timeframe_days)
        return [
            SearchPartition(
                status=status,
                query=query,
                created_after=lower_bound,
                limit=limit_per_status,
                created_before=created_before,
                inbox_id=inbox_id,
            )
            for status in statuses
        ]

    async def run(
        self,
        *,
        statuses: Sequence[str],
        query: Optional[str],
        limit_per_status: int = DEFAULT_LIMIT_PER_STATUS,
        timeframe_days: int = DEFAULT_TIMEFRAME_DAYS,
        created_after: Optional[str] = None,
        created_before: Optional[str] = None,
        inbox_id: Optional[str] = None,
    ) -> AggregatedSearchResult:
        lower_bound = self.resolve_created_after(created_after, timeframe_days)
        partitions = self.plan(
            statuses=statuses,
            query=query,
            limit_per_status=limit_per_status,
            timeframe_days=timeframe_days,
            created_after=lower_bound,
            created_before=created_before,
            inbox_id=inbox_id,
        )

        results = []
        for partition in partitions:
            results.append(await self.executor.execute(partition))

        aggregated = AggregatedSearchResult(
            per_partition=results,
            created_after=lower_bound,
            created_before=created_before,
        )
        if aggregated.total_found == 0:
            aggregated.search_tips = list(ZERO_RESULT_TIPS)

        failed = aggregated.failed_statuses
        if failed:
            logger.warning(f"Multi-status search degraded, failed statuses: {', '.join(failed)}")
        logger.info(
            f"Multi-status search found {aggregated.total_found} conversations "
            f"({aggregated.total_available} available) across {len(results)} statuses"
        )
        return aggregated
