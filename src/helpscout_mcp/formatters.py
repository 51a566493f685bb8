"""Shared formatting functions for MCP responses.

Tool responses are JSON documents rendered into a single text content block.
"""
import json
from typing import Any, Optional

REDACTED = "[REDACTED]"


def format_payload(payload: dict[str, Any]) -> str:
    """Render a response payload as indented JSON text."""
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def redact_body(body: Optional[str], allow_pii: bool) -> str:
    """Return the message body, or a placeholder when PII is not allowed."""
    if allow_pii:
        return body or ""
    return REDACTED


def redact_thread(thread: dict[str, Any], allow_pii: bool) -> dict[str, Any]:
    """Copy of a thread with its body redacted unless PII is allowed."""
    return {**thread, "body": redact_body(thread.get("body"), allow_pii)}


def format_inbox(inbox: dict[str, Any]) -> dict[str, Any]:
    """Reduce a mailbox resource to the fields agents need."""
    return {
        "id": inbox["id"],
        "name": inbox.get("name", ""),
        "email": inbox.get("email"),
        "created_at": inbox.get("createdAt"),
        "updated_at": inbox.get("updatedAt"),
    }


def project_fields(conversation: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Keep only the requested top-level fields of a conversation."""
    return {name: conversation[name] for name in fields if name in conversation}


def attach_guidance(payload: dict[str, Any], guidance: list[str]) -> dict[str, Any]:
    """Attach next-step guidance to a response payload.

    Kept separate from result shaping so any operation's payload can be
    annotated the same way.
    """
    if guidance:
        payload["apiGuidance"] = list(guidance)
    return payload
