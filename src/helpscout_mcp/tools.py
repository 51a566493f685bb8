"""MCP tool definitions for Help Scout.

This module provides the definitive list of MCP tools exposed by the server.
Names must match the dispatcher's handler map.
"""

from mcp.types import Tool

STATUSES = ["active", "pending", "closed", "spam"]
MAX_PAGE_SIZE = 100
MAX_THREAD_SIZE = 200
CURSOR_DESCRIPTION = "Page to fetch: pass the nextCursor value from the previous result"


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for Help Scout."""
    return [
        # ============================================================================
        # User & Conversation Detail Tools
        # ============================================================================
        Tool(
            name="getCurrentUser",
            description="Gets the user profile of the currently authenticated user (the agent). "
                       "CRITICAL: You MUST call this tool to get the `userId` before you can reply to a conversation.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="getConversationSummary",
            description="Get conversation summary, including the primary customer's ID. "
                       "CRITICAL: You MUST call this tool to get the `customerId` before you can reply to a conversation.",
            inputSchema={
                "type": "object",
                "properties": {
                    "conversationId": {
                        "type": "string",
                        "description": "The conversation ID to get summary for"
                    }
                },
                "required": ["conversationId"]
            }
        ),
        Tool(
            name="getThreads",
            description="Get all thread messages for a conversation",
            inputSchema={
                "type": "object",
                "properties": {
                    "conversationId": {
                        "type": "string",
                        "description": "The conversation ID to get threads for"
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of threads (1-{MAX_THREAD_SIZE})",
                        "minimum": 1,
                        "maximum": MAX_THREAD_SIZE,
                        "default": MAX_THREAD_SIZE
                    },
                    "cursor": {
                        "type": "string",
                        "description": CURSOR_DESCRIPTION
                    }
                },
                "required": ["conversationId"]
            }
        ),
        Tool(
            name="getServerTime",
            description="Get current server time for time-relative searches",
            inputSchema={"type": "object", "properties": {}}
        ),
        # ============================================================================
        # Conversation Write Tools
        # ============================================================================
        Tool(
            name="replyToConversation",
            description="Adds a reply to an existing conversation, then sets its status and assigns it to you. "
                       "WORKFLOW: 1. Call `getCurrentUser()` to get the `userId`. "
                       "2. Call `getConversationSummary()` to get the `customerId`. "
                       "3. Call this tool with all required IDs.",
            inputSchema={
                "type": "object",
                "properties": {
                    "conversationId": {
                        "type": "string",
                        "description": "The ID of the conversation to reply to."
                    },
                    "text": {
                        "type": "string",
                        "description": "The content of the reply message."
                    },
                    "userId": {
                        "type": "integer",
                        "description": "The ID of the user sending the reply. Get this from `getCurrentUser()`."
                    },
                    "customerId": {
                        "type": "integer",
                        "description": "The ID of the customer being replied to. Get this from `getConversationSummary()`."
                    },
                    "status": {
                        "type": "string",
                        "enum": ["active", "pending", "closed"],
                        "description": "Status to set after replying (default: pending)"
                    }
                },
                "required": ["conversationId", "text", "userId", "customerId"]
            }
        ),
        Tool(
            name="createConversation",
            description="Creates a new outbound conversation TO a customer. "
                       "WORKFLOW: 1. Call `getCurrentUser()` to get the agent's `userId`. "
                       "2. Call this tool, placing the `userId` inside the `user` field of the initial `reply` thread.",
            inputSchema={
                "type": "object",
                "properties": {
                    "mailboxId": {"type": "integer", "description": "ID of the inbox for the conversation."},
                    "subject": {"type": "string", "description": "The subject line."},
                    "customer": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "integer", "description": "Existing customer ID."},
                            "email": {"type": "string", "description": "Customer email. A new customer will be created if not found."},
                            "firstName": {"type": "string"},
                            "lastName": {"type": "string"}
                        },
                        "description": "The customer the conversation is being sent TO."
                    },
                    "type": {
                        "type": "string",
                        "enum": ["email", "chat", "phone"],
                        "description": "The type of conversation, almost always 'email'."
                    },
                    "status": {
                        "type": "string",
                        "enum": ["active", "pending", "closed"],
                        "description": "The initial status."
                    },
                    "threads": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "type": {"enum": ["reply"], "description": "MUST be 'reply' to start an outbound conversation."},
                                "text": {"type": "string", "description": "Content of the message."},
                                "user": {"type": "integer", "description": "The agent's ID from `getCurrentUser()`. This is REQUIRED for a reply."}
                            },
                            "required": ["type", "text", "user"]
                        },
                        "description": "The initial message. Must be a single thread of type `reply` containing the agent's user ID."
                    },
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "A list of tags to add to the conversation."
                    },
                    "assignTo": {
                        "type": "integer",
                        "description": "ID of the user to assign the conversation to."
                    }
                },
                "required": ["mailboxId", "subject", "customer", "status", "threads"]
            }
        ),
        Tool(
            name="deleteConversation",
            description="Permanently deletes a conversation. This action cannot be undone. Use with extreme caution.",
            inputSchema={
                "type": "object",
                "properties": {
                    "conversationId": {
                        "type": "string",
                        "description": "The ID of the conversation to permanently delete."
                    }
                },
                "required": ["conversationId"]
            }
        ),
        # ============================================================================
        # Inbox Tools
        # ============================================================================
        Tool(
            name="searchInboxes",
            description="STEP 1: Always use this FIRST when searching conversations. Lists all available inboxes or filters by name. "
                       "CRITICAL: When a user mentions an inbox by name (e.g., \"support inbox\", \"sales mailbox\"), "
                       "you MUST call this tool first to get the inbox ID before searching conversations.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Search query to match inbox names. Use empty string \"\" to list ALL inboxes. "
                                       "This is case-insensitive substring matching."
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of results (1-{MAX_PAGE_SIZE})",
                        "minimum": 1,
                        "maximum": MAX_PAGE_SIZE,
                        "default": 50
                    },
                    "cursor": {
                        "type": "string",
                        "description": CURSOR_DESCRIPTION
                    }
                },
                "required": ["query"]
            }
        ),
        Tool(
            name="listAllInboxes",
            description="QUICK HELPER: Lists ALL available inboxes with their IDs. "
                       "Use this when you need to see all inboxes or when starting any inbox-specific search.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of results (1-{MAX_PAGE_SIZE})",
                        "minimum": 1,
                        "maximum": MAX_PAGE_SIZE,
                        "default": MAX_PAGE_SIZE
                    }
                }
            }
        ),
        # ============================================================================
        # Conversation Search Tools
        # ============================================================================
        Tool(
            name="searchConversations",
            description="STEP 2: Search conversations after obtaining inbox ID. "
                       "WARNING: Always get inboxId from searchInboxes first if user mentions an inbox name. "
                       "IMPORTANT: Specify status (active/pending/closed/spam) for better results, "
                       "or use comprehensiveConversationSearch for multi-status searching.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "HelpScout query syntax for content search. Examples: (body:\"keyword\"), "
                                       "(subject:\"text\"), (email:\"user@domain.com\"), (tag:\"tagname\"), "
                                       "complex: (body:\"urgent\" OR subject:\"support\")"
                    },
                    "inboxId": {
                        "type": "string",
                        "description": "Filter by inbox ID. REQUIRED when user mentions a specific inbox. "
                                       "Get this ID by calling searchInboxes first!"
                    },
                    "tag": {"type": "string", "description": "Filter by tag name"},
                    "status": {
                        "type": "string",
                        "enum": STATUSES,
                        "description": "Filter by conversation status. CRITICAL: HelpScout often returns no results "
                                       "without this parameter. Defaults to 'active' when query or tag is given."
                    },
                    "createdAfter": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Filter conversations created after this timestamp (ISO8601)"
                    },
                    "createdBefore": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Filter conversations created before this timestamp (ISO8601)"
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of results (1-{MAX_PAGE_SIZE})",
                        "minimum": 1,
                        "maximum": MAX_PAGE_SIZE,
                        "default": 50
                    },
                    "cursor": {"type": "string", "description": CURSOR_DESCRIPTION},
                    "sort": {
                        "type": "string",
                        "enum": ["createdAt", "updatedAt", "number"],
                        "default": "createdAt",
                        "description": "Sort field"
                    },
                    "order": {
                        "type": "string",
                        "enum": ["asc", "desc"],
                        "default": "desc",
                        "description": "Sort order"
                    },
                    "fields": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Specific fields to return (for partial responses)"
                    }
                }
            }
        ),
        Tool(
            name="advancedConversationSearch",
            description="Advanced conversation search with complex boolean queries and customer organization support",
            inputSchema={
                "type": "object",
                "properties": {
                    "contentTerms": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Search terms to find in conversation body/content (will be OR combined)"
                    },
                    "subjectTerms": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Search terms to find in conversation subject (will be OR combined)"
                    },
                    "customerEmail": {"type": "string", "description": "Exact customer email to search for"},
                    "emailDomain": {
                        "type": "string",
                        "description": "Email domain to search for (e.g., \"company.com\" to find all @company.com emails)"
                    },
                    "tags": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Tag names to search for (will be OR combined)"
                    },
                    "inboxId": {"type": "string", "description": "Filter by inbox ID"},
                    "status": {"type": "string", "enum": STATUSES, "description": "Filter by conversation status"},
                    "createdAfter": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Filter conversations created after this timestamp (ISO8601)"
                    },
                    "createdBefore": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Filter conversations created before this timestamp (ISO8601)"
                    },
                    "limit": {
                        "type": "integer",
                        "description": f"Maximum number of results (1-{MAX_PAGE_SIZE})",
                        "minimum": 1,
                        "maximum": MAX_PAGE_SIZE,
                        "default": 50
                    },
                    "cursor": {"type": "string", "description": CURSOR_DESCRIPTION}
                }
            }
        ),
        Tool(
            name="comprehensiveConversationSearch",
            description="RECOMMENDED FOR GENERAL SEARCHES: Searches across multiple statuses, solving the common issue "
                       "where searches return no results. WORKFLOW: 1) If user mentions an inbox name, call searchInboxes "
                       "FIRST to get the ID. 2) Then use this tool with the inbox ID. "
                       "This tool searches active, pending, and closed conversations by default.",
            inputSchema={
                "type": "object",
                "properties": {
                    "searchTerms": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Search terms to find in conversations (will be combined with OR logic)",
                        "minItems": 1
                    },
                    "inboxId": {
                        "type": "string",
                        "description": "Filter by specific inbox ID. IMPORTANT: If user mentions an inbox by name, "
                                       "you MUST call searchInboxes first to get this ID!"
                    },
                    "statuses": {
                        "type": "array",
                        "items": {"enum": STATUSES},
                        "description": "Conversation statuses to search (defaults to active, pending, closed)",
                        "default": ["active", "pending", "closed"]
                    },
                    "searchIn": {
                        "type": "array",
                        "items": {"enum": ["body", "subject", "both"]},
                        "description": "Where to search for terms (defaults to both body and subject)",
                        "default": ["both"]
                    },
                    "timeframeDays": {
                        "type": "integer",
                        "description": "Number of days back to search (defaults to 60)",
                        "minimum": 1,
                        "maximum": 365,
                        "default": 60
                    },
                    "createdAfter": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Override timeframeDays with specific start date (ISO8601)"
                    },
                    "createdBefore": {
                        "type": "string",
                        "format": "date-time",
                        "description": "End date for search range (ISO8601)"
                    },
                    "limitPerStatus": {
                        "type": "integer",
                        "description": "Maximum results per status (defaults to 25)",
                        "minimum": 1,
                        "maximum": MAX_PAGE_SIZE,
                        "default": 25
                    },
                    "includeVariations": {
                        "type": "boolean",
                        "description": "Include hyphen and space spelling variants of search terms",
                        "default": True
                    }
                },
                "required": ["searchTerms"]
            }
        ),
    ]
