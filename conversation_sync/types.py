from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

CONVERSATION_FIELDS = (
    "id",
    "agent_id",
    "user_id",
    "name",
    "sources",
    "created_at",
    "updated_at",
    "messages",
    "conversation_agent",
)


class SyncMode:
    DAILY = "daily"
    HISTORICAL = "historical"

    ALL = (DAILY, HISTORICAL)


def validate_mode(mode: str) -> str:
    normalized = (mode or "").strip().lower()
    if normalized not in SyncMode.ALL:
        raise ValueError(
            f"Unsupported sync mode: {mode!r} (expected one of {SyncMode.ALL})"
        )
    return normalized


@dataclass(frozen=True)
class Principal:
    id: int
    email: str


@dataclass(frozen=True)
class ConversationSummary:
    id: str


@dataclass
class Conversation:
    """One conversation as stored in the warehouse table.

    ``sources``, ``messages`` and ``conversation_agent`` are opaque JSON
    trees owned by the upstream system; only ``messages`` is ever pruned.
    """

    id: str
    user_id: Any = None
    agent_id: Any = None
    name: Any = None
    sources: Any = None
    created_at: Any = None
    updated_at: Any = None
    messages: Any = None
    conversation_agent: Any = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "agent_id": self.agent_id,
            "name": self.name,
            "sources": self.sources,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "messages": self.messages,
            "conversation_agent": self.conversation_agent,
        }


@dataclass
class Batch:
    principal: Principal
    conversations: List[Conversation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.conversations)
