from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Session:
    status: str = "active"
    messages: list[dict] = field(default_factory=list)
    updated_at: int = 0

    def to_record(self) -> dict:
        return {"status": self.status, "messages": self.messages, "updatedAt": self.updated_at}

    @classmethod
    def from_record(cls, record: dict) -> Session:
        return cls(
            status=str(record.get("status", "active")),
            messages=list(record.get("messages", [])),
            updated_at=int(record.get("updatedAt", 0)),
        )


def user_message(text: str) -> dict:
    return {"role": "user", "content": text}


def assistant_message(blocks: list[dict]) -> dict:
    return {"role": "assistant", "content": list(blocks)}


def tool_result_bundle(blocks: list[dict]) -> dict:
    return {"role": "user", "content": list(blocks)}


def is_user_text(message: dict) -> bool:
    return message.get("role") == "user" and isinstance(message.get("content"), str)


def is_tool_result_bundle(message: dict) -> bool:
    content = message.get("content")
    return (
        message.get("role") == "user"
        and isinstance(content, list)
        and any(isinstance(b, dict) and b.get("type") == "tool_result" for b in content)
    )


def tool_use_ids(message: dict) -> list[str]:
    """Call-ids issued by an assistant message, in order."""
    if message.get("role") != "assistant" or not isinstance(message.get("content"), list):
        return []
    return [
        str(b.get("id"))
        for b in message["content"]
        if isinstance(b, dict) and b.get("type") == "tool_use" and b.get("id")
    ]


def tool_result_ids(message: dict) -> list[str]:
    if not isinstance(message.get("content"), list):
        return []
    return [
        str(b.get("tool_use_id"))
        for b in message["content"]
        if isinstance(b, dict) and b.get("type") == "tool_result"
    ]


def text_of(blocks: list[dict]) -> str:
    return "\n".join(
        str(b.get("text", "")) for b in blocks if isinstance(b, dict) and b.get("type") == "text"
    ).strip()
