"""Collection names, stored field names and field mappings.

Mappings use a small type vocabulary (keyword, text, date, integer) that each
document store translates into its own column types. Dates are stored as
fixed-width UTC ISO-8601 strings so that string order is time order.
"""

from datetime import datetime, timezone

# Conversation metadata collection
META_COLLECTION = ".conversational-meta"
META_CREATED_FIELD = "createTime"
META_ENDED_FIELD = "lastInteractionTime"
META_LENGTH_FIELD = "numInteractions"
META_NAME_FIELD = "name"
META_USER_FIELD = "user"

META_MAPPING: dict[str, str] = {
    META_NAME_FIELD: "keyword",
    META_CREATED_FIELD: "date",
    META_ENDED_FIELD: "date",
    META_LENGTH_FIELD: "integer",
    META_USER_FIELD: "keyword",
}

# Interactions collection
INTERACTIONS_COLLECTION = ".conversational-interactions"
INTERACTIONS_CONVO_ID_FIELD = "conversation_id"
INTERACTIONS_INPUT_FIELD = "input"
INTERACTIONS_PROMPT_FIELD = "prompt"
INTERACTIONS_RESPONSE_FIELD = "response"
INTERACTIONS_AGENT_FIELD = "agent"
INTERACTIONS_TIMESTAMP_FIELD = "timestamp"
INTERACTIONS_METADATA_FIELD = "metadata"

INTERACTIONS_MAPPING: dict[str, str] = {
    INTERACTIONS_CONVO_ID_FIELD: "keyword",
    INTERACTIONS_TIMESTAMP_FIELD: "date",
    INTERACTIONS_INPUT_FIELD: "text",
    INTERACTIONS_PROMPT_FIELD: "text",
    INTERACTIONS_RESPONSE_FIELD: "text",
    INTERACTIONS_AGENT_FIELD: "keyword",
    INTERACTIONS_METADATA_FIELD: "text",
}

FIELD_TYPES = ("keyword", "text", "date", "integer")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as a sortable UTC ISO string.

    Naive datetimes are assumed to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
