"""Workflow prerequisite validation for Help Scout tool calls.

Several Help Scout operations need identifiers that only another call can
supply: a reply needs the agent's userId (getCurrentUser) and the customer's
id (getConversationSummary). The API offers no way to defer or omit them, so
an agent that skips a step gets an opaque upstream failure. The validator
checks each proposed call against the session's call history before anything
is sent upstream:
- Hard prerequisites reject the call until a prerequisite tool has succeeded
- Argument source rules reject a missing argument, and otherwise only remind
  the agent where the value should come from
- Inbox intent checks suggest searchInboxes when the request names an inbox
  but no inboxId is passed; they never reject

Rules live in the tables below and are read by one generic routine. After a
successful call, generate_guidance() turns the result into next-step hints.
"""
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

logger = logging.getLogger("helpscout-mcp.constraints")


@dataclass(frozen=True)
class CallRecord:
    """One successfully completed tool call."""

    tool_name: str


@dataclass(frozen=True)
class ValidationContext:
    tool_name: str
    arguments: Mapping[str, Any]
    prior_calls: tuple[CallRecord, ...] = ()
    user_query: Optional[str] = None

    @classmethod
    def build(
        cls,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]],
        prior_calls: Iterable[CallRecord] = (),
        user_query: Optional[str] = None,
    ) -> "ValidationContext":
        return cls(
            tool_name=tool_name,
            arguments=MappingProxyType(dict(arguments or {})),
            prior_calls=tuple(prior_calls),
            user_query=user_query,
        )

    def has_called(self, *tool_names: str) -> bool:
        return any(record.tool_name in tool_names for record in self.prior_calls)

    def has_argument(self, name: str) -> bool:
        value = self.arguments.get(name)
        return value is not None and value != ""


@dataclass(frozen=True)
class ValidationVerdict:
    is_valid: bool
    errors: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    required_prerequisites: tuple[str, ...] = ()


@dataclass(frozen=True)
class PrerequisiteRule:
    """The tool is only valid after one of `any_of` has succeeded."""

    any_of: tuple[str, ...]
    provides: str


@dataclass(frozen=True)
class ArgumentSourceRule:
    """`argument` should carry a value read from one of `sources`' output."""

    argument: str
    sources: tuple[str, ...]


SEARCH_TOOLS = (
    "searchConversations",
    "comprehensiveConversationSearch",
    "advancedConversationSearch",
)

INBOX_LOOKUP_TOOLS = ("searchInboxes", "listAllInboxes")

# Tool -> prerequisites that must all be satisfied, in the order the agent
# should satisfy them
PREREQUISITE_RULES: dict[str, tuple[PrerequisiteRule, ...]] = {
    "replyToConversation": (
        PrerequisiteRule(any_of=("getCurrentUser",), provides="userId"),
        PrerequisiteRule(any_of=("getConversationSummary",), provides="customerId"),
    ),
    "createConversation": (
        PrerequisiteRule(any_of=("getCurrentUser",), provides="the reply thread's user id"),
    ),
}

ARGUMENT_SOURCE_RULES: dict[str, tuple[ArgumentSourceRule, ...]] = {
    "replyToConversation": (
        ArgumentSourceRule(argument="userId", sources=("getCurrentUser",)),
        ArgumentSourceRule(argument="customerId", sources=("getConversationSummary",)),
    ),
    "getConversationSummary": (
        ArgumentSourceRule(argument="conversationId", sources=SEARCH_TOOLS),
    ),
    "getThreads": (
        ArgumentSourceRule(argument="conversationId", sources=SEARCH_TOOLS),
    ),
}

# Tools whose results narrow by inbox when given an inboxId
INBOX_FILTER_TOOLS = frozenset({"searchConversations", "comprehensiveConversationSearch"})

_INBOX_MENTION = re.compile(r"\b(inbox(es)?|mailbox(es)?)\b", re.IGNORECASE)


def mentions_inbox(user_query: Any) -> bool:
    if not isinstance(user_query, str) or not user_query:
        return False
    return _INBOX_MENTION.search(user_query) is not None


GuidanceRule = Callable[[Mapping[str, Any], ValidationContext], list[str]]


def _search_inboxes_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    inboxes = result.get("results") or []
    if not inboxes:
        return [
            "No inbox matched this query. Call listAllInboxes to see every inbox and its id, "
            "or call searchInboxes with query \"\" to list them all.",
        ]
    first = inboxes[0]
    return [
        f"Use inbox id {first.get('id')} ({first.get('name')}) as inboxId in "
        f"comprehensiveConversationSearch or searchConversations.",
    ]


def _list_all_inboxes_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    if mentions_inbox(context.user_query) and result.get("inboxes"):
        return ["Match the inbox named in the request against these results and pass its id as inboxId."]
    return []


def _search_conversations_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    if result.get("results"):
        return []
    inbox_id = context.arguments.get("inboxId")
    if inbox_id:
        return [
            f"No conversations found. Call comprehensiveConversationSearch with inboxId "
            f"\"{inbox_id}\" to search active, pending and closed conversations of this inbox together.",
        ]
    guidance = [
        "No conversations found. Call comprehensiveConversationSearch to search active, "
        "pending and closed conversations together.",
    ]
    if mentions_inbox(context.user_query) and not context.has_called(*INBOX_LOOKUP_TOOLS):
        guidance.append("The request names an inbox: call searchInboxes to get its id, then filter by inboxId.")
    return guidance


def _advanced_search_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    if result.get("results") or context.arguments.get("status"):
        return []
    return [
        "No conversations found without a status filter. Add a status, or call "
        "comprehensiveConversationSearch to cover several statuses at once.",
    ]


def _comprehensive_search_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    guidance = []
    failed = [
        partition.get("status")
        for partition in result.get("resultsByStatus") or []
        if partition.get("failed")
    ]
    if failed:
        guidance.append(
            f"Searching statuses {', '.join(str(s) for s in failed)} failed; their results are "
            f"missing. Retry comprehensiveConversationSearch with statuses {failed}."
        )
    inbox_id = context.arguments.get("inboxId")
    if (
        not result.get("totalConversationsFound")
        and inbox_id
        and not context.has_called(*INBOX_LOOKUP_TOOLS)
    ):
        guidance.append(f"Nothing found in inbox {inbox_id}. Call searchInboxes to confirm the inbox id.")
    return guidance


def _current_user_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    user_id = result.get("id")
    if user_id is None:
        return []
    guidance = [
        f"Use {user_id} as userId in replyToConversation, or as the reply thread's user "
        f"in createConversation.",
    ]
    if not context.has_called("getConversationSummary"):
        guidance.append("To reply, also call getConversationSummary to obtain the customerId.")
    return guidance


def _conversation_summary_guidance(result: Mapping[str, Any], context: ValidationContext) -> list[str]:
    conversation = result.get("conversation") or {}
    customer = conversation.get("customer") or {}
    customer_id = customer.get("id")
    if customer_id is None:
        return []
    guidance = [
        f"Use {customer_id} as customerId when calling replyToConversation for "
        f"conversation {conversation.get('id')}.",
    ]
    if not context.has_called("getCurrentUser"):
        guidance.append("To reply, also call getCurrentUser to obtain the userId.")
    return guidance


GUIDANCE_RULES: dict[str, GuidanceRule] = {
    "searchInboxes": _search_inboxes_guidance,
    "listAllInboxes": _list_all_inboxes_guidance,
    "searchConversations": _search_conversations_guidance,
    "advancedConversationSearch": _advanced_search_guidance,
    "comprehensiveConversationSearch": _comprehensive_search_guidance,
    "getCurrentUser": _current_user_guidance,
    "getConversationSummary": _conversation_summary_guidance,
}


class ConstraintValidator:
    """Checks proposed tool calls against prerequisite rules and call history.

    Stateless: all history comes in through the ValidationContext, so the
    same context always yields the same verdict.
    """

    def __init__(
        self,
        prerequisite_rules: Mapping[str, tuple[PrerequisiteRule, ...]] = PREREQUISITE_RULES,
        argument_rules: Mapping[str, tuple[ArgumentSourceRule, ...]] = ARGUMENT_SOURCE_RULES,
        inbox_filter_tools: frozenset[str] = INBOX_FILTER_TOOLS,
        guidance_rules: Mapping[str, GuidanceRule] = GUIDANCE_RULES,
    ):
        self.prerequisite_rules = prerequisite_rules
        self.argument_rules = argument_rules
        self.inbox_filter_tools = inbox_filter_tools
        self.guidance_rules = guidance_rules

    def declared_prerequisites(self, tool_name: str) -> list[str]:
        """All tools named by the tool's hard prerequisite rules."""
        names: list[str] = []
        for rule in self.prerequisite_rules.get(tool_name, ()):
            for name in rule.any_of:
                if name not in names:
                    names.append(name)
        return names

    def validate(self, context: ValidationContext) -> ValidationVerdict:
        errors: list[str] = []
        suggestions: list[str] = []
        required: list[str] = []
        tool = context.tool_name

        missing = [
            rule
            for rule in self.prerequisite_rules.get(tool, ())
            if not context.has_called(*rule.any_of)
        ]
        for rule in missing:
            options = " or ".join(rule.any_of)
            errors.append(f"{tool} requires {options} to be called first to obtain {rule.provides}.")
            for name in rule.any_of:
                if name not in required:
                    required.append(name)
        if missing:
            for step, rule in enumerate(missing, start=1):
                suggestions.append(f"Step {step}: call {rule.any_of[0]}() to obtain {rule.provides}.")
            suggestions.append(f"Step {len(missing) + 1}: retry {tool} with the obtained values.")

        for rule in self.argument_rules.get(tool, ()):
            sources = " or ".join(rule.sources)
            if not context.has_argument(rule.argument):
                errors.append(f"{tool} is missing required argument '{rule.argument}'.")
                suggestions.append(f"Obtain '{rule.argument}' from the output of {sources}.")
            elif not context.has_called(*rule.sources):
                suggestions.append(
                    f"Make sure '{rule.argument}' was taken from the output of {sources}; "
                    f"no such call was made in this session."
                )

        if (
            tool in self.inbox_filter_tools
            and not context.has_argument("inboxId")
            and mentions_inbox(context.user_query)
        ):
            if context.has_called(*INBOX_LOOKUP_TOOLS):
                suggestions.append("The request names an inbox: pass the inbox id found earlier as inboxId.")
            else:
                suggestions.append(
                    "The request names an inbox: call searchInboxes first and pass the inbox id as inboxId."
                )

        verdict = ValidationVerdict(
            is_valid=not errors,
            errors=tuple(errors),
            suggestions=tuple(suggestions),
            required_prerequisites=tuple(required),
        )
        if not verdict.is_valid:
            logger.debug(f"Blocked {tool}: {'; '.join(verdict.errors)}")
        return verdict

    def generate_guidance(
        self,
        tool_name: str,
        result_payload: Mapping[str, Any],
        context: ValidationContext,
    ) -> list[str]:
        """Next-step hints for a successful result. Never affects validity."""
        rule = self.guidance_rules.get(tool_name)
        if rule is None or not isinstance(result_payload, Mapping):
            return []
        return rule(result_payload, context)
