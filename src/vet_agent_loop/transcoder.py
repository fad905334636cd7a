"""Conversion of the persisted session log into a provider request.

Providers reject a whole request over one malformed message, so anything that
would break the call is dropped here, with a warning, instead of forwarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from vet_agent_loop.errors import ProtocolInconsistencyError
from vet_agent_loop.session.models import (
    is_tool_result_bundle,
    is_user_text,
    tool_result_ids,
    tool_use_ids,
)


@dataclass
class TranscodeResult:
    messages: list[dict] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    def flag(self, issue: str) -> None:
        logger.warning(issue)
        self.issues.append(issue)


def transcode(messages: list[dict]) -> TranscodeResult:
    result = TranscodeResult()
    out = result.messages

    for index, message in enumerate(messages):
        role = message.get("role")

        if is_tool_result_bundle(message):
            if not _bundle_matches_previous(out, message):
                result.flag(
                    f"Protocol inconsistency: tool results at index {index} "
                    f"({', '.join(tool_result_ids(message))}) do not answer the preceding assistant message; dropped"
                )
                continue
            out.append({"role": "user", "content": list(message["content"])})
            continue

        if is_user_text(message):
            text = message["content"]
            if not text.strip():
                result.flag(f"Skipping empty user message at index {index}")
                continue
            wire = {"role": "user", "content": [{"type": "text", "text": text}]}
        elif role == "assistant":
            blocks = _non_empty_blocks(message.get("content"))
            if not blocks:
                result.flag(f"Skipping empty assistant message at index {index}")
                continue
            wire = {"role": "assistant", "content": blocks}
        else:
            result.flag(f"Skipping message with unknown shape at index {index} (role={role!r})")
            continue

        if out and out[-1]["role"] == wire["role"]:
            if _carries_tool_results(out[-1]):
                result.flag(f"Consecutive {wire['role']} messages at index {index} kept distinct (tool results)")
            else:
                out[-1] = {"role": wire["role"], "content": out[-1]["content"] + wire["content"]}
                continue
        out.append(wire)

    _drop_leading_non_user(result)
    _strip_unanswered_tool_uses(result)
    return result


def validate_wire_messages(messages: list[dict]) -> None:
    """Raise ProtocolInconsistencyError if the request would be rejected."""
    if not messages:
        raise ProtocolInconsistencyError("Request has no messages")
    if messages[0]["role"] != "user":
        raise ProtocolInconsistencyError("Request must start with a user message")

    for i, message in enumerate(messages):
        issued = tool_use_ids(message)
        if issued:
            following = messages[i + 1] if i + 1 < len(messages) else None
            answered = set(tool_result_ids(following)) if following else set()
            missing = [tid for tid in issued if tid not in answered]
            if missing:
                raise ProtocolInconsistencyError(f"Tool calls without results: {', '.join(missing)}")
        if _carries_tool_results(message):
            previous = messages[i - 1] if i > 0 else None
            issued_before = set(tool_use_ids(previous)) if previous else set()
            extra = [tid for tid in tool_result_ids(message) if tid not in issued_before]
            if extra:
                raise ProtocolInconsistencyError(f"Tool results without calls: {', '.join(extra)}")


def _non_empty_blocks(content: object) -> list[dict]:
    if isinstance(content, str):
        return [{"type": "text", "text": content}] if content.strip() else []
    if not isinstance(content, list):
        return []
    blocks: list[dict] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text":
            if str(block.get("text", "")).strip():
                blocks.append({"type": "text", "text": block["text"]})
        elif block.get("type") == "tool_use" and block.get("id") and block.get("name"):
            blocks.append(
                {
                    "type": "tool_use",
                    "id": block.get("id"),
                    "name": block.get("name"),
                    "input": block.get("input") or {},
                }
            )
    return blocks


def _carries_tool_results(message: dict) -> bool:
    content = message.get("content")
    return isinstance(content, list) and any(
        isinstance(b, dict) and b.get("type") == "tool_result" for b in content
    )


def _bundle_matches_previous(out: list[dict], bundle: dict) -> bool:
    if not out or out[-1]["role"] != "assistant":
        return False
    issued = set(tool_use_ids(out[-1]))
    answered = tool_result_ids(bundle)
    return bool(issued) and bool(answered) and set(answered) <= issued


def _drop_leading_non_user(result: TranscodeResult) -> None:
    out = result.messages
    while out and out[0]["role"] != "user":
        result.flag("Dropping leading assistant message with no originating user message")
        out.pop(0)
    while out and _carries_tool_results(out[0]):
        result.flag("Dropping leading tool results with no originating tool call")
        out.pop(0)
        while out and out[0]["role"] != "user":
            out.pop(0)


def _strip_unanswered_tool_uses(result: TranscodeResult) -> None:
    out = result.messages
    i = 0
    while i < len(out):
        message = out[i]
        issued = tool_use_ids(message)
        if not issued:
            i += 1
            continue
        following = out[i + 1] if i + 1 < len(out) else None
        answered = set(tool_result_ids(following)) if following is not None else set()
        unanswered = [tid for tid in issued if tid not in answered]
        if not unanswered:
            i += 1
            continue
        result.flag(f"Protocol inconsistency: stripping unanswered tool calls {', '.join(unanswered)}")
        kept = [
            b for b in message["content"]
            if not (b.get("type") == "tool_use" and b.get("id") in unanswered)
        ]
        if kept:
            out[i] = {"role": "assistant", "content": kept}
            i += 1
        else:
            out.pop(i)
            _merge_around(out, i)


def _merge_around(out: list[dict], i: int) -> None:
    # Removing a message can leave two same-role neighbours behind.
    if 0 < i < len(out) and out[i - 1]["role"] == out[i]["role"]:
        if not _carries_tool_results(out[i - 1]) and not _carries_tool_results(out[i]):
            out[i - 1] = {"role": out[i]["role"], "content": out[i - 1]["content"] + out[i]["content"]}
            out.pop(i)
