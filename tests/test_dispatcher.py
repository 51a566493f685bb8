"""Tests for tool call dispatch, call history and guidance attachment."""
import httpx
import pytest

from conftest import RecordingTransport, conversations_page
from helpscout_mcp.dispatcher import HANDLER_MAP, Session, ToolCallRequest, ToolDispatcher
from helpscout_mcp.tools import get_tools

REPLY_ARGS = {"conversationId": "42", "text": "Thanks!", "userId": 7, "customerId": 9}


def helpscout_api(patch_status: int = 204):
    """A small fake of the endpoints the reply workflow touches."""

    def handler(request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        if key == ("GET", "/v2/users/me"):
            return httpx.Response(200, json={"id": 7, "firstName": "Ana"})
        if key == ("GET", "/v2/conversations/42"):
            return httpx.Response(200, json={"id": 42, "subject": "Help", "customer": {"id": 9}})
        if key == ("GET", "/v2/conversations/42/threads"):
            return httpx.Response(200, json={"_embedded": {"threads": []}})
        if key == ("GET", "/v2/conversations"):
            return httpx.Response(200, json=conversations_page([]))
        if key == ("POST", "/v2/conversations/42/reply"):
            return httpx.Response(201)
        if key == ("PATCH", "/v2/conversations/42"):
            return httpx.Response(patch_status)
        return httpx.Response(404)

    return RecordingTransport(handler)


@pytest.fixture
def dispatcher(settings):
    return ToolDispatcher(settings)


class TestReplyWorkflow:
    """Test the getCurrentUser → getConversationSummary → reply sequence."""

    @pytest.mark.asyncio
    async def test_reply_rejected_then_accepted(self, dispatcher):
        transport = helpscout_api()
        client = transport.client()
        session = Session()

        rejected = await dispatcher.handle(ToolCallRequest("replyToConversation", REPLY_ARGS), session, client)

        assert rejected["error"] == "API Constraint Validation Failed"
        assert rejected["code"] == "CONSTRAINT_VIOLATION"
        assert rejected["details"]["requiredPrerequisites"] == ["getCurrentUser", "getConversationSummary"]
        assert rejected["helpScoutAPIRequirements"]["requiredActions"] == [
            "getCurrentUser",
            "getConversationSummary",
        ]
        assert transport.requests == []
        assert len(session) == 0

        user = await dispatcher.handle(ToolCallRequest("getCurrentUser", {}), session, client)
        assert user["id"] == 7
        assert len(session) == 1

        summary = await dispatcher.handle(
            ToolCallRequest("getConversationSummary", {"conversationId": "42"}), session, client
        )
        assert summary["conversation"]["customer"] == {"id": 9}
        assert len(session) == 2

        reply = await dispatcher.handle(ToolCallRequest("replyToConversation", REPLY_ARGS), session, client)

        assert reply["success"] is True
        assert reply["finalStatus"] == "pending"
        assert [record.tool_name for record in session.history] == [
            "getCurrentUser",
            "getConversationSummary",
            "replyToConversation",
        ]

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_recorded(self, dispatcher):
        client = helpscout_api(patch_status=500).client()
        session = Session()
        session.record("getCurrentUser")
        session.record("getConversationSummary")

        result = await dispatcher.handle(ToolCallRequest("replyToConversation", REPLY_ARGS), session, client)

        assert result["error"]["code"] == "PARTIAL_FAILURE"
        assert result["error"]["details"]["completedSteps"] == ["postReply"]
        assert result["error"]["details"]["failedSteps"] == ["updateStatus", "assign"]
        assert len(session) == 2


class TestErrorPaths:
    @pytest.mark.asyncio
    async def test_upstream_failure_leaves_history_unchanged(self, dispatcher):
        client = RecordingTransport(lambda request: httpx.Response(401, json={"message": "bad token"})).client()
        session = Session()

        result = await dispatcher.handle(ToolCallRequest("getCurrentUser", {}), session, client)

        assert result["error"]["code"] == "UNAUTHORIZED"
        assert len(session) == 0

    @pytest.mark.asyncio
    async def test_schema_violation_is_invalid_input(self, dispatcher):
        transport = helpscout_api()
        session = Session()

        result = await dispatcher.handle(
            ToolCallRequest("searchInboxes", {"query": "x", "limit": 500}), session, transport.client()
        )

        assert result["error"]["code"] == "INVALID_INPUT"
        assert result["error"]["details"]["issues"][0]["field"] == "limit"
        assert transport.requests == []
        assert len(session) == 0

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        session = Session()

        result = await dispatcher.handle(ToolCallRequest("launchRockets", {}), session, helpscout_api().client())

        assert result["error"]["code"] == "INVALID_INPUT"
        assert len(session) == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_upstream_error(self, settings):
        async def broken(arguments, client, settings):
            raise KeyError("id")

        dispatcher = ToolDispatcher(settings, handler_map={"getServerTime": broken})
        session = Session()

        result = await dispatcher.handle(ToolCallRequest("getServerTime", {}), session, helpscout_api().client())

        assert result["error"]["code"] == "UPSTREAM_ERROR"
        assert result["error"]["message"].startswith("KeyError")
        assert len(session) == 0

    @pytest.mark.asyncio
    async def test_malformed_help_scout_data_is_upstream_error(self, dispatcher):
        mailboxes = {"_embedded": {"mailboxes": [{"id": 1, "name": None}]}}
        client = RecordingTransport(lambda request: httpx.Response(200, json=mailboxes)).client()
        session = Session()

        result = await dispatcher.handle(ToolCallRequest("listAllInboxes", {}), session, client)

        assert result["error"]["code"] == "UPSTREAM_ERROR"
        assert result["error"]["details"]["issues"]
        assert len(session) == 0


class TestGuidance:
    @pytest.mark.asyncio
    async def test_successful_result_carries_guidance(self, dispatcher):
        session = Session()

        result = await dispatcher.handle(ToolCallRequest("getCurrentUser", {}), session, helpscout_api().client())

        assert any("userId" in hint for hint in result["apiGuidance"])

    @pytest.mark.asyncio
    async def test_inbox_hint_from_session_context(self, dispatcher):
        session = Session()
        session.set_user_context("any refund complaints in the Billing inbox?")

        result = await dispatcher.handle(
            ToolCallRequest("searchConversations", {"query": '(body:"refund")'}),
            session,
            helpscout_api().client(),
        )

        assert result["results"] == []
        assert any("searchInboxes" in hint for hint in result["apiGuidance"])
        assert len(session) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_query", [123, ["inbox"], {"inbox": "Billing"}, "   "])
    async def test_non_text_user_query_is_ignored(self, dispatcher, user_query):
        session = Session()
        session.set_user_context(user_query)

        result = await dispatcher.handle(
            ToolCallRequest("searchConversations", {"query": '(body:"refund")'}, user_query=user_query),
            session,
            helpscout_api().client(),
        )

        assert session.user_query is None
        assert result["results"] == []
        assert not any("searchInboxes" in hint for hint in result.get("apiGuidance", []))
        assert len(session) == 1

    @pytest.mark.asyncio
    async def test_no_guidance_key_when_nothing_to_say(self, dispatcher):
        result = await dispatcher.handle(ToolCallRequest("getServerTime", {}), Session(), helpscout_api().client())

        assert "apiGuidance" not in result


class TestToolCatalog:
    def test_every_tool_has_a_handler(self):
        assert sorted(tool.name for tool in get_tools()) == sorted(HANDLER_MAP)

    def test_dispatcher_exposes_tool_names(self, dispatcher):
        assert len(dispatcher.tool_names) == 12
