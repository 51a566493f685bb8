"""Pydantic schemas for tool input validation and tool results.

Tool arguments arrive in camelCase; fields are declared in snake_case and
aliased. Result models dump back to camelCase JSON with None fields omitted.
"""
from typing import Any, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidInputError, validation_issues
from .search import format_timestamp, parse_timestamp

ConversationStatus = Literal["active", "pending", "closed", "spam"]
WritableStatus = Literal["active", "pending", "closed"]
SearchLocation = Literal["body", "subject", "both"]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Cursors are the page numbers handed out as nextCursor
CURSOR_PATTERN = r"^[1-9][0-9]*$"

InputT = TypeVar("InputT", bound="ToolInput")


class ToolInput(BaseModel):
    """Base for tool arguments."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @classmethod
    def parse(cls: type[InputT], arguments: Any) -> InputT:
        """Validate raw tool arguments, reporting problems as INVALID_INPUT."""
        try:
            return cls.model_validate(arguments)
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid arguments: {e.error_count()} issue(s)",
                details={"issues": validation_issues(e)},
            ) from e


class TimeWindowInput(ToolInput):
    """Arguments bounding a search by creation time.

    Both bounds must be ISO 8601 timestamps and are normalized to UTC
    `YYYY-MM-DDTHH:MM:SSZ`; naive values are taken as UTC.
    """

    created_after: Optional[str] = None
    created_before: Optional[str] = None

    @field_validator("created_after", "created_before")
    @classmethod
    def check_timestamp(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError("must be an ISO 8601 timestamp such as 2026-01-31T00:00:00Z")
        return format_timestamp(parsed)


class ToolResult(BaseModel):
    """Base for tool results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Input Schemas

class SearchInboxesInput(ToolInput):
    query: str
    limit: int = Field(50, ge=1, le=100)
    cursor: Optional[str] = Field(None, pattern=CURSOR_PATTERN)


class ListAllInboxesInput(ToolInput):
    limit: int = Field(100, ge=1, le=100)


class SearchConversationsInput(TimeWindowInput):
    query: Optional[str] = None
    inbox_id: Optional[str] = None
    tag: Optional[str] = None
    status: Optional[ConversationStatus] = None
    limit: int = Field(50, ge=1, le=100)
    cursor: Optional[str] = Field(None, pattern=CURSOR_PATTERN)
    sort: Literal["createdAt", "updatedAt", "number"] = "createdAt"
    order: Literal["asc", "desc"] = "desc"
    fields: Optional[list[str]] = None


class GetThreadsInput(ToolInput):
    conversation_id: str = Field(..., min_length=1)
    limit: int = Field(200, ge=1, le=200)
    cursor: Optional[str] = Field(None, pattern=CURSOR_PATTERN)


class GetConversationSummaryInput(ToolInput):
    conversation_id: str = Field(..., min_length=1)


class AdvancedConversationSearchInput(TimeWindowInput):
    content_terms: Optional[list[str]] = None
    subject_terms: Optional[list[str]] = None
    customer_email: Optional[str] = None
    email_domain: Optional[str] = None
    tags: Optional[list[str]] = None
    inbox_id: Optional[str] = None
    status: Optional[ConversationStatus] = None
    limit: int = Field(50, ge=1, le=100)
    cursor: Optional[str] = Field(None, pattern=CURSOR_PATTERN)


class ComprehensiveConversationSearchInput(TimeWindowInput):
    search_terms: list[str] = Field(..., min_length=1, max_length=10)
    inbox_id: Optional[str] = None
    statuses: list[ConversationStatus] = Field(default_factory=lambda: ["active", "pending", "closed"])
    search_in: list[SearchLocation] = Field(default_factory=lambda: ["both"])
    timeframe_days: int = Field(60, ge=1, le=365)
    limit_per_status: int = Field(25, ge=1, le=100)
    include_variations: bool = True


class CustomerInput(ToolInput):
    id: Optional[int] = None
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    first_name: Optional[str] = Field(None, max_length=40)
    last_name: Optional[str] = Field(None, max_length=40)

    @model_validator(mode="after")
    def require_id_or_email(self):
        if self.id is None and not self.email:
            raise ValueError("Customer must have either an 'id' or an 'email'")
        return self


class ThreadInput(ToolInput):
    type: Literal["customer", "note", "reply"]
    text: str
    customer: Optional[dict[str, Any]] = None
    user: Optional[int] = None


class CreateConversationInput(ToolInput):
    subject: str = Field(..., min_length=1)
    mailbox_id: int
    customer: CustomerInput
    status: WritableStatus
    type: Literal["email", "chat", "phone"] = "email"
    threads: list[ThreadInput] = Field(..., min_length=1)
    tags: Optional[list[str]] = None
    assign_to: Optional[int] = None
    imported: Optional[bool] = None


class ReplyToConversationInput(ToolInput):
    conversation_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    user_id: int
    customer_id: int
    status: WritableStatus = "pending"


class DeleteConversationInput(ToolInput):
    conversation_id: str = Field(..., min_length=1)


# Result Schemas

class InboxSummary(ToolResult):
    id: int
    name: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class SearchInboxesResult(ToolResult):
    results: list[InboxSummary]
    query: str
    total_found: int
    total_available: int
    usage: str
    example: Optional[str] = None
    next_cursor: Optional[str] = None


class ListAllInboxesResult(ToolResult):
    inboxes: list[InboxSummary]
    total_inboxes: int
    usage: str
    next_steps: list[str]


class SearchInfo(ToolResult):
    query: Optional[str] = None
    status: str
    applied_defaults: Optional[list[str]] = None
    search_guidance: Optional[list[str]] = None


class SearchConversationsResult(ToolResult):
    results: list[dict[str, Any]]
    pagination: Optional[dict[str, Any]] = None
    next_cursor: Optional[str] = None
    search_info: SearchInfo


class SearchCriteria(ToolResult):
    content_terms: Optional[list[str]] = None
    subject_terms: Optional[list[str]] = None
    customer_email: Optional[str] = None
    email_domain: Optional[str] = None
    tags: Optional[list[str]] = None


class AdvancedConversationSearchResult(ToolResult):
    results: list[dict[str, Any]]
    search_query: Optional[str] = None
    search_criteria: SearchCriteria
    pagination: Optional[dict[str, Any]] = None
    next_cursor: Optional[str] = None


class Timeframe(ToolResult):
    created_after: str
    created_before: Optional[str] = None
    days: int


class StatusResult(ToolResult):
    status: str
    total_count: int
    conversations: list[dict[str, Any]]
    search_query: Optional[str] = None
    failed: bool = False


class ComprehensiveSearchResult(ToolResult):
    search_terms: list[str]
    search_query: Optional[str] = None
    search_in: list[str]
    timeframe: Timeframe
    total_conversations_found: int
    total_available_across_statuses: int
    results_by_status: list[StatusResult]
    search_tips: Optional[list[str]] = None


class MessageSummary(ToolResult):
    id: Any
    body: str
    created_at: Optional[str] = None
    customer: Optional[dict[str, Any]] = None
    created_by: Optional[dict[str, Any]] = None


class ConversationSummaryResult(ToolResult):
    conversation: dict[str, Any]
    first_customer_message: Optional[MessageSummary] = None
    latest_staff_reply: Optional[MessageSummary] = None


class ThreadsResult(ToolResult):
    conversation_id: str
    threads: list[dict[str, Any]]
    pagination: Optional[dict[str, Any]] = None
    next_cursor: Optional[str] = None


class ServerTimeResult(ToolResult):
    iso_time: str
    unix_time: int


class CurrentUserResult(ToolResult):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    usage: str


class ReplyResult(ToolResult):
    success: bool = True
    message: str
    final_status: str
    assigned_to: int


class CreateConversationResult(ToolResult):
    success: bool = True
    message: str
    new_conversation_id: str


class DeleteConversationResult(ToolResult):
    success: bool = True
    message: str
