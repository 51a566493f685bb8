"""Tool call dispatch: validation, execution, call history and guidance.

Per call:
1. Build a ValidationContext from the request and the session history
2. Run the ConstraintValidator; a rejection returns at once, with no upstream
   call and no history entry
3. Run the tool's handler
4. On success, record the call in the session, then attach guidance
5. On failure, return a structured error; history is untouched

Only successful calls enter the history, since only they can satisfy a later
prerequisite.
"""
import logging
import time
import traceback
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from pydantic import ValidationError

from . import handlers
from .client import HelpScoutClient
from .config import Settings
from .constraints import CallRecord, ConstraintValidator, ValidationContext, ValidationVerdict
from .errors import ErrorCode, HelpScoutToolError, InvalidInputError, UpstreamError, error_payload, validation_issues
from .formatters import attach_guidance
from .schemas import ToolResult

logger = logging.getLogger("helpscout-mcp.dispatcher")

Handler = Callable[[dict, HelpScoutClient, Settings], Awaitable[ToolResult]]

REJECTION_ERROR = "API Constraint Validation Failed"

HANDLER_MAP: dict[str, Handler] = {
    # Inbox handlers
    "searchInboxes": handlers.handle_search_inboxes,
    "listAllInboxes": handlers.handle_list_all_inboxes,
    # Search handlers
    "searchConversations": handlers.handle_search_conversations,
    "advancedConversationSearch": handlers.handle_advanced_conversation_search,
    "comprehensiveConversationSearch": handlers.handle_comprehensive_conversation_search,
    # Conversation detail handlers
    "getConversationSummary": handlers.handle_get_conversation_summary,
    "getThreads": handlers.handle_get_threads,
    "getServerTime": handlers.handle_get_server_time,
    # User handlers
    "getCurrentUser": handlers.handle_get_current_user,
    # Write handlers
    "replyToConversation": handlers.handle_reply_to_conversation,
    "createConversation": handlers.handle_create_conversation,
    "deleteConversation": handlers.handle_delete_conversation,
}


@dataclass(frozen=True)
class ToolCallRequest:
    tool_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    user_query: Optional[str] = None


class Session:
    """Call history of one connected agent.

    The history is append-only and only the dispatcher writes to it, once per
    successful call.
    """

    def __init__(self, user_query: Optional[str] = None):
        self._history: list[CallRecord] = []
        self.user_query = user_query

    @property
    def history(self) -> tuple[CallRecord, ...]:
        return tuple(self._history)

    def set_user_context(self, user_query: Optional[str]) -> None:
        """Remember the agent's natural-language request for inbox hints.

        Anything but non-blank text clears it.
        """
        self.user_query = user_query if isinstance(user_query, str) and user_query.strip() else None

    def record(self, tool_name: str) -> None:
        self._history.append(CallRecord(tool_name=tool_name))

    def __len__(self) -> int:
        return len(self._history)


def rejection_payload(verdict: ValidationVerdict) -> dict[str, Any]:
    return {
        "error": REJECTION_ERROR,
        "code": ErrorCode.CONSTRAINT_VIOLATION.value,
        "details": {
            "errors": list(verdict.errors),
            "suggestions": list(verdict.suggestions),
            "requiredPrerequisites": list(verdict.required_prerequisites),
        },
        "helpScoutAPIRequirements": {
            "message": "This call violates Help Scout API constraints",
            "requiredActions": list(verdict.required_prerequisites),
            "suggestions": list(verdict.suggestions),
        },
    }


class ToolDispatcher:
    """Composition root for tool calls."""

    def __init__(
        self,
        settings: Settings,
        validator: Optional[ConstraintValidator] = None,
        handler_map: Optional[Mapping[str, Handler]] = None,
    ):
        self.settings = settings
        self.validator = validator or ConstraintValidator()
        self.handler_map = dict(handler_map) if handler_map is not None else dict(HANDLER_MAP)

    @property
    def tool_names(self) -> list[str]:
        return list(self.handler_map)

    async def handle(
        self,
        request: ToolCallRequest,
        session: Session,
        client: HelpScoutClient,
    ) -> dict[str, Any]:
        request_id = uuid.uuid4().hex[:8]
        name = request.tool_name
        start = time.perf_counter()
        logger.info(f"[{request_id}] Tool call started: {name} with arguments: {dict(request.arguments)}")

        context = ValidationContext.build(
            tool_name=name,
            arguments=request.arguments,
            prior_calls=session.history,
            user_query=request.user_query or session.user_query,
        )
        verdict = self.validator.validate(context)
        if not verdict.is_valid:
            logger.warning(f"[{request_id}] Tool call validation failed for {name}: {list(verdict.errors)}")
            return rejection_payload(verdict)

        handler = self.handler_map.get(name)
        if handler is None:
            logger.warning(f"[{request_id}] Unknown tool requested: {name}")
            return error_payload(InvalidInputError(f"Unknown tool: {name}", details={"toolName": name}))

        try:
            result = await handler(dict(request.arguments), client, self.settings)
        except ValidationError as e:
            # Arguments are checked inside the handler and arrive as InvalidInputError;
            # a ValidationError here means Help Scout data did not fit a result model
            logger.error(f"[{request_id}] Unexpected Help Scout data for {name}: {e.error_count()} issue(s)")
            return error_payload(UpstreamError(
                f"Help Scout returned data in an unexpected shape for {name}",
                details={"issues": validation_issues(e)},
            ))
        except HelpScoutToolError as e:
            logger.error(f"[{request_id}] {name} failed with {e.code.value}: {e.message}")
            return error_payload(e)
        except Exception as e:
            logger.error(f"[{request_id}] Unexpected error during {name} call:")
            logger.error(f"  Error type: {type(e).__name__}")
            logger.error(f"  Error message: {str(e)}")
            logger.error(f"  Traceback:\n{traceback.format_exc()}")
            return error_payload(e)

        session.record(name)

        payload = result.to_payload()
        # Soft suggestions from a passing verdict travel with the result
        guidance = list(verdict.suggestions) + self.validator.generate_guidance(name, payload, context)
        attach_guidance(payload, guidance)

        duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            f"[{request_id}] Tool call completed: {name} in {duration_ms:.0f}ms "
            f"(guidance provided: {bool(guidance)})"
        )
        return payload
