"""Help Scout MCP tool handlers.

All handlers follow a consistent pattern:
- Accept: arguments dict, HelpScoutClient, and Settings
- Validate arguments with the tool's input schema before any upstream call
- Return: a ToolResult model; the dispatcher renders it and attaches guidance
- Raise errors from errors.py; transport failures arrive already translated
- Log all operations for debugging

Call history and prerequisite checks are handled by the dispatcher.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from . import formatters
from .client import HelpScoutClient
from .config import Settings
from .errors import (
    HelpScoutToolError,
    InvalidInputError,
    NotFoundError,
    PartialFailureError,
    UpstreamError,
)
from .query_builder import QueryFilter, build_query, build_search_query
from .schemas import (
    AdvancedConversationSearchInput,
    AdvancedConversationSearchResult,
    ComprehensiveConversationSearchInput,
    ComprehensiveSearchResult,
    ConversationSummaryResult,
    CreateConversationInput,
    CreateConversationResult,
    CurrentUserResult,
    DeleteConversationInput,
    DeleteConversationResult,
    GetConversationSummaryInput,
    GetThreadsInput,
    InboxSummary,
    ListAllInboxesInput,
    ListAllInboxesResult,
    MessageSummary,
    ReplyResult,
    ReplyToConversationInput,
    SearchConversationsInput,
    SearchConversationsResult,
    SearchCriteria,
    SearchInboxesInput,
    SearchInboxesResult,
    SearchInfo,
    ServerTimeResult,
    StatusResult,
    ThreadsResult,
    Timeframe,
)
from .search import (
    MultiStatusSearchOrchestrator,
    SearchPartitionExecutor,
    conversation_search_params,
    filter_created_before,
    parse_timestamp,
)

logger = logging.getLogger("helpscout-mcp.handlers")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

EMPTY_SEARCH_GUIDANCE = [
    "If no results found, try:",
    "1. Use comprehensiveConversationSearch for multi-status search",
    "2. Try different status values: active, pending, closed, spam",
    "3. Broaden search terms or extend time range",
    "4. Check if inbox ID is correct",
]


def _page_number(cursor: Optional[str]) -> int:
    return int(cursor) if cursor else 1


# ============================================================================
# Inbox Handlers
# ============================================================================

async def handle_search_inboxes(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> SearchInboxesResult:
    """Find inboxes whose name contains the query (case-insensitive).

    COMMON PATTERNS:
    • Name → ID → search: searchInboxes("support") → comprehensiveConversationSearch(inboxId=...)
    • List everything: searchInboxes("")
    """
    data = SearchInboxesInput.parse(arguments)
    page_number = _page_number(data.cursor)
    page = await client.get_page("/mailboxes", "mailboxes", {"page": page_number, "size": data.limit})

    needle = data.query.lower()
    matches = [inbox for inbox in page.items if needle in str(inbox.get("name", "")).lower()]
    logger.info(f"Inbox search '{data.query}' matched {len(matches)} of {len(page.items)} inboxes")

    results = [InboxSummary(**formatters.format_inbox(inbox)) for inbox in matches]
    if results:
        usage = (
            'NEXT STEP: Use the "id" field from these results in your conversation search tools '
            "(comprehensiveConversationSearch or searchConversations)"
        )
        example = (
            f'comprehensiveConversationSearch({{ searchTerms: ["your search"], '
            f'inboxId: "{results[0].id}" }})'
        )
    else:
        usage = 'No inboxes matched your query. Try a different search term or use empty string "" to list all inboxes.'
        example = None

    return SearchInboxesResult(
        results=results,
        query=data.query,
        total_found=len(results),
        total_available=len(page.items),
        usage=usage,
        example=example,
        next_cursor=page.next_cursor(page_number),
    )


async def handle_list_all_inboxes(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ListAllInboxesResult:
    """List every inbox with its ID."""
    data = ListAllInboxesInput.parse(arguments)
    page = await client.get_page("/mailboxes", "mailboxes", {"page": 1, "size": data.limit})
    logger.info(f"Listed {len(page.items)} inboxes")

    return ListAllInboxesResult(
        inboxes=[InboxSummary(**formatters.format_inbox(inbox)) for inbox in page.items],
        total_inboxes=len(page.items),
        usage='Use the "id" field from these results in your conversation searches',
        next_steps=[
            "To search in a specific inbox, use the inbox ID with comprehensiveConversationSearch or searchConversations",
            "To search across all inboxes, omit the inboxId parameter",
        ],
    )


# ============================================================================
# Conversation Search Handlers
# ============================================================================

async def handle_search_conversations(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> SearchConversationsResult:
    """Single-status conversation search with raw Help Scout query syntax.

    When content criteria are given without a status the search defaults to
    'active' (Help Scout tends to return nothing without a status) and the
    default is reported in searchInfo.appliedDefaults.
    """
    data = SearchConversationsInput.parse(arguments)

    status = data.status
    applied_defaults = None
    if status is None and (data.query or data.tag):
        status = "active"
        applied_defaults = ["status: active"]
        logger.warning(
            'No status specified for conversation search, defaulting to "active". '
            "For results across all statuses, use comprehensiveConversationSearch."
        )

    page_number = _page_number(data.cursor)
    params = conversation_search_params(
        limit=data.limit,
        page=page_number,
        status=status,
        query=data.query,
        inbox_id=data.inbox_id,
        tag=data.tag,
        modified_since=data.created_after,
        sort_field=data.sort,
        sort_order=data.order,
    )
    page = await client.get_page("/conversations", "conversations", params)

    conversations = filter_created_before(page.items, data.created_before)
    if data.fields:
        conversations = [formatters.project_fields(conv, data.fields) for conv in conversations]
    logger.info(f"Conversation search returned {len(conversations)} conversations (status={status or 'all'})")

    return SearchConversationsResult(
        results=conversations,
        pagination=page.page,
        next_cursor=page.next_cursor(page_number),
        search_info=SearchInfo(
            query=data.query,
            status=status or "all",
            applied_defaults=applied_defaults,
            search_guidance=EMPTY_SEARCH_GUIDANCE if not conversations else None,
        ),
    )


async def handle_advanced_conversation_search(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> AdvancedConversationSearchResult:
    """Search with structured boolean criteria (content, subject, email, domain, tags)."""
    data = AdvancedConversationSearchInput.parse(arguments)
    criteria = QueryFilter(
        content_terms=tuple(data.content_terms or ()),
        subject_terms=tuple(data.subject_terms or ()),
        tags=tuple(data.tags or ()),
        customer_email=data.customer_email,
        email_domain=data.email_domain,
    )
    query = build_query(criteria)

    page_number = _page_number(data.cursor)
    params = conversation_search_params(
        limit=data.limit,
        page=page_number,
        status=data.status,
        query=query,
        inbox_id=data.inbox_id,
        modified_since=data.created_after,
    )
    page = await client.get_page("/conversations", "conversations", params)
    conversations = filter_created_before(page.items, data.created_before)
    logger.info(f"Advanced search '{query}' returned {len(conversations)} conversations")

    return AdvancedConversationSearchResult(
        results=conversations,
        search_query=query,
        search_criteria=SearchCriteria(
            content_terms=data.content_terms,
            subject_terms=data.subject_terms,
            customer_email=data.customer_email,
            email_domain=data.email_domain,
            tags=data.tags,
        ),
        pagination=page.page,
        next_cursor=page.next_cursor(page_number),
    )


async def handle_comprehensive_conversation_search(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ComprehensiveSearchResult:
    """Search several statuses at once and aggregate the results.

    A status whose search fails is reported with failed=true and no
    conversations; the other statuses are returned normally.
    """
    data = ComprehensiveConversationSearchInput.parse(arguments)
    query = build_search_query(data.search_terms, data.search_in, data.include_variations)
    if query is None:
        raise InvalidInputError("searchTerms must contain at least one non-blank term")

    orchestrator = MultiStatusSearchOrchestrator(SearchPartitionExecutor(client))
    aggregated = await orchestrator.run(
        statuses=data.statuses,
        query=query,
        limit_per_status=data.limit_per_status,
        timeframe_days=data.timeframe_days,
        created_after=data.created_after,
        created_before=data.created_before,
        inbox_id=data.inbox_id,
    )

    return ComprehensiveSearchResult(
        search_terms=data.search_terms,
        search_query=query,
        search_in=list(data.search_in),
        timeframe=Timeframe(
            created_after=aggregated.created_after,
            created_before=aggregated.created_before,
            days=data.timeframe_days,
        ),
        total_conversations_found=aggregated.total_found,
        total_available_across_statuses=aggregated.total_available,
        results_by_status=[StatusResult(**result.to_payload()) for result in aggregated.per_partition],
        search_tips=aggregated.search_tips or None,
    )


# ============================================================================
# Conversation Detail Handlers
# ============================================================================

def _created(thread: dict[str, Any]) -> datetime:
    return parse_timestamp(thread.get("createdAt")) or _EPOCH


async def handle_get_conversation_summary(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ConversationSummaryResult:
    """Conversation header, first customer message and latest staff reply.

    The customer id returned here is the customerId replyToConversation needs.
    """
    data = GetConversationSummaryInput.parse(arguments)
    conversation = await client.get(f"/conversations/{data.conversation_id}")
    if not isinstance(conversation, dict):
        raise UpstreamError(f"Malformed conversation {data.conversation_id}")
    page = await client.get_page(
        f"/conversations/{data.conversation_id}/threads", "threads", {"page": 1, "size": 50}
    )

    customer_threads = sorted((t for t in page.items if t.get("type") == "customer"), key=_created)
    staff_threads = sorted(
        (t for t in page.items if t.get("type") == "message" and t.get("createdBy")),
        key=_created,
        reverse=True,
    )
    first_customer = customer_threads[0] if customer_threads else None
    latest_staff = staff_threads[0] if staff_threads else None
    logger.info(
        f"Summarized conversation {data.conversation_id}: "
        f"{len(customer_threads)} customer threads, {len(staff_threads)} staff replies"
    )

    return ConversationSummaryResult(
        conversation={
            "id": conversation.get("id"),
            "subject": conversation.get("subject"),
            "status": conversation.get("status"),
            "createdAt": conversation.get("createdAt"),
            "updatedAt": conversation.get("updatedAt"),
            "customer": conversation.get("customer") or conversation.get("primaryCustomer"),
            "assignee": conversation.get("assignee"),
            "tags": conversation.get("tags"),
        },
        first_customer_message=MessageSummary(
            id=first_customer.get("id"),
            body=formatters.redact_body(first_customer.get("body"), settings.allow_pii),
            created_at=first_customer.get("createdAt"),
            customer=first_customer.get("customer"),
        ) if first_customer else None,
        latest_staff_reply=MessageSummary(
            id=latest_staff.get("id"),
            body=formatters.redact_body(latest_staff.get("body"), settings.allow_pii),
            created_at=latest_staff.get("createdAt"),
            created_by=latest_staff.get("createdBy"),
        ) if latest_staff else None,
    )


async def handle_get_threads(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ThreadsResult:
    """All thread messages of a conversation, bodies redacted unless PII is allowed."""
    data = GetThreadsInput.parse(arguments)
    page_number = _page_number(data.cursor)
    page = await client.get_page(
        f"/conversations/{data.conversation_id}/threads", "threads", {"page": page_number, "size": data.limit}
    )
    logger.info(f"Retrieved {len(page.items)} threads for conversation {data.conversation_id}")

    return ThreadsResult(
        conversation_id=data.conversation_id,
        threads=[formatters.redact_thread(thread, settings.allow_pii) for thread in page.items],
        pagination=page.page,
        next_cursor=page.next_cursor(page_number),
    )


async def handle_get_server_time(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ServerTimeResult:
    """Current server time for building relative date filters."""
    now = datetime.now(timezone.utc)
    return ServerTimeResult(
        iso_time=now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        unix_time=int(now.timestamp()),
    )


# ============================================================================
# User Handlers
# ============================================================================

async def handle_get_current_user(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> CurrentUserResult:
    """Profile of the authenticated agent; its id is the userId for replies."""
    user = await client.get("/users/me")
    if not isinstance(user, dict) or user.get("id") is None:
        raise UpstreamError("Help Scout returned no user id for /users/me")
    logger.info(f"Current user is {user['id']}")

    return CurrentUserResult(
        id=user["id"],
        first_name=user.get("firstName"),
        last_name=user.get("lastName"),
        email=user.get("email"),
        role=user.get("role"),
        usage="SUCCESS: You now have the user ID. Use this 'id' in the 'userId' field when calling replyToConversation.",
    )


async def get_customer_id_by_email(client: HelpScoutClient, email: str) -> int:
    """Look up a customer id by email address.

    Raises NotFoundError when no customer has that address.
    """
    logger.info(f"Searching for customer ID by email: {email}")
    page = await client.get_page("/customers", "customers", {"email": email})
    customer_id = page.items[0].get("id") if page.items else None
    if customer_id is None:
        raise NotFoundError(f"Could not find a customer with the email: {email}", details={"email": email})
    logger.info(f"Found customer ID: {customer_id}")
    return customer_id


# ============================================================================
# Conversation Write Handlers
# ============================================================================

def _replace(path: str, value: Any) -> dict[str, Any]:
    return {"op": "replace", "path": path, "value": value}


async def handle_reply_to_conversation(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> ReplyResult:
    """Reply to a conversation, then set its status and assign it to the replier.

    WORKFLOW: getCurrentUser() → getConversationSummary() → replyToConversation()

    The reply, status update and assignment are separate requests. If the
    reply fails nothing changed. If either update fails after the reply was
    posted, the other update is still attempted and a PARTIAL_FAILURE is
    reported; the reply stays sent.
    """
    data = ReplyToConversationInput.parse(arguments)
    path = f"/conversations/{data.conversation_id}"

    await client.post(
        f"{path}/reply",
        {"text": data.text, "user": data.user_id, "customer": {"id": data.customer_id}},
    )
    logger.info(f"Reply sent to conversation {data.conversation_id}")

    completed = ["postReply"]
    failed: list[str] = []
    first_error: Optional[HelpScoutToolError] = None
    for step, patch in (
        ("updateStatus", _replace("/status", data.status)),
        ("assign", _replace("/assignTo", data.user_id)),
    ):
        try:
            await client.patch(path, patch)
        except HelpScoutToolError as e:
            logger.error(f"Step {step} failed for conversation {data.conversation_id}: {e.message}")
            failed.append(step)
            first_error = first_error or e
            continue
        logger.info(f"Step {step} applied to conversation {data.conversation_id}")
        completed.append(step)

    if failed:
        raise PartialFailureError(
            f"Reply was posted to conversation {data.conversation_id}, "
            f"but {', '.join(failed)} failed",
            conversation_id=data.conversation_id,
            completed_steps=completed,
            failed_steps=failed,
            cause=first_error,
        )

    return ReplyResult(
        message=f"Successfully sent reply and updated conversation {data.conversation_id}.",
        final_status=data.status,
        assigned_to=data.user_id,
    )


def _new_conversation_id(response) -> Optional[str]:
    resource_id = response.headers.get("Resource-ID")
    if resource_id:
        return resource_id
    location = response.headers.get("Location")
    if location:
        return location.rstrip("/").rsplit("/", 1)[-1] or None
    return None


async def handle_create_conversation(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> CreateConversationResult:
    """Create an outbound conversation to a customer.

    WORKFLOW: getCurrentUser() → createConversation(threads=[{type: reply, user: <id>}])

    Help Scout needs the conversation to exist before an agent reply can be
    posted, so this runs four requests: create the container, resolve the
    customer id, post the agent's reply, set the final status. Nothing is
    rolled back: once the container exists, any later failure is reported as
    PARTIAL_FAILURE with the new conversation id.
    """
    data = CreateConversationInput.parse(arguments)

    reply_thread = data.threads[0]
    if reply_thread.type != "reply" or reply_thread.user is None:
        raise InvalidInputError(
            "createConversation requires a single thread of type 'reply' with a user ID."
        )
    if data.customer.id is None and not data.customer.email:
        raise InvalidInputError("Customer email is required to find the customer ID for the reply.")

    creation_payload: dict[str, Any] = {
        "mailboxId": data.mailbox_id,
        "subject": data.subject,
        "customer": data.customer.model_dump(by_alias=True, exclude_none=True),
        "type": data.type,
        "status": "pending",
        "threads": [{
            "type": "customer",
            "text": "Conversation initiated by agent.",
            "customer": {"email": data.customer.email} if data.customer.email else {"id": data.customer.id},
        }],
    }
    if data.tags:
        creation_payload["tags"] = data.tags
    if data.assign_to is not None:
        creation_payload["assignTo"] = data.assign_to
    if data.imported is not None:
        creation_payload["imported"] = data.imported

    response = await client.post("/conversations", creation_payload)
    conversation_id = _new_conversation_id(response)
    if not conversation_id:
        raise UpstreamError("Failed to create conversation: no Resource-ID or Location header in response.")
    logger.info(f"Step 1 complete. Created conversation container: {conversation_id}")

    completed = ["createContainer"]
    step = "lookupCustomer"
    try:
        if data.customer.id is not None:
            customer_id = data.customer.id
        else:
            customer_id = await get_customer_id_by_email(client, data.customer.email)
        completed.append(step)
        logger.info(f"Step 2 complete. Customer ID: {customer_id}")

        step = "postReply"
        await client.post(
            f"/conversations/{conversation_id}/reply",
            {"text": reply_thread.text, "user": reply_thread.user, "customer": {"id": customer_id}},
        )
        completed.append(step)
        logger.info(f"Step 3 complete. Posted agent reply to conversation {conversation_id}")

        step = "updateStatus"
        await client.patch(f"/conversations/{conversation_id}", _replace("/status", data.status))
        completed.append(step)
        logger.info(f"Step 4 complete. Conversation {conversation_id} set to {data.status}")
    except HelpScoutToolError as e:
        logger.error(
            f"createConversation stopped at {step} after creating conversation "
            f"{conversation_id}: {e.message}"
        )
        raise PartialFailureError(
            f"Conversation {conversation_id} was created but {step} failed; "
            f"it needs to be completed or deleted manually",
            conversation_id=conversation_id,
            completed_steps=completed,
            failed_steps=[step],
            cause=e,
        ) from e

    return CreateConversationResult(
        message=f"Successfully created and sent outbound conversation {conversation_id}.",
        new_conversation_id=conversation_id,
    )


async def handle_delete_conversation(
    arguments: dict,
    client: HelpScoutClient,
    settings: Settings,
) -> DeleteConversationResult:
    """Permanently delete a conversation. Cannot be undone."""
    data = DeleteConversationInput.parse(arguments)
    await client.delete(f"/conversations/{data.conversation_id}")
    logger.info(f"Deleted conversation {data.conversation_id}")

    return DeleteConversationResult(
        message=f"Conversation {data.conversation_id} has been permanently deleted.",
    )
