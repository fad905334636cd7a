from __future__ import annotations

import asyncio
import contextlib
import json
import time
import unicodedata
import weakref
from uuid import uuid4

from loguru import logger

from vet_agent_loop.agent_config import AgentConfig
from vet_agent_loop.identity import normalize_identity
from vet_agent_loop.provider import LLMProvider, ModelResponse
from vet_agent_loop.reply_cleaner import clean_reply
from vet_agent_loop.session.models import assistant_message, tool_result_bundle, user_message
from vet_agent_loop.session.store import SessionStore
from vet_agent_loop.tool import ToolContext, ToolResult
from vet_agent_loop.tool_registry import ToolRegistry
from vet_agent_loop.tool_runner import ToolRunner
from vet_agent_loop.transcoder import transcode, validate_wire_messages

_UNSERIALIZABLE_RESULT = {"ok": False, "data": None, "error": "Tool result could not be serialized"}


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


class AgentLoop:
    """Runs one inbound message through the model/tool cycle and returns the reply text.

    Collaborators are injected so one store, registry, runner and provider can
    be shared by every concurrent invocation.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        registry: ToolRegistry,
        runner: ToolRunner,
        provider: LLMProvider,
        config: AgentConfig,
    ):
        self._store = store
        self._registry = registry
        self._runner = runner
        self._provider = provider
        self._config = config
        self._termination_keywords = tuple(_fold(k) for k in config.termination_keywords)
        self._identity_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def is_termination(self, text: str) -> bool:
        folded = _fold(text)
        return any(keyword in folded for keyword in self._termination_keywords)

    async def execute(self, identity: str, text: str, inbound_message_id: str | None = None) -> str:
        request_id = uuid4().hex[:12]
        log = logger.bind(request_id=request_id)
        replies = self._config.replies
        started = time.monotonic()
        preview = text[:100] + ("..." if len(text) > 100 else "")
        log.info(f"Starting agent loop for {identity}: {preview!r} (message_id={inbound_message_id})")

        try:
            identity = normalize_identity(identity)

            if inbound_message_id:
                if await self._store.is_seen(inbound_message_id):
                    log.info(f"Message already seen: {inbound_message_id}")
                    return replies.already_processed
                if not await self._store.mark_seen(inbound_message_id):
                    log.info(f"Message claimed by a concurrent delivery: {inbound_message_id}")
                    return replies.already_processed

            if self.is_termination(text):
                await self._store.end(identity)
                log.info(f"Session terminated by user keyword for {identity}")
                return replies.farewell

            async with self._lock_for(identity):
                reply = await self._run_rounds(identity, text, inbound_message_id, request_id, log)

            log.info(f"Completed in {(time.monotonic() - started) * 1000:.0f}ms")
            return clean_reply(reply)
        except Exception:
            log.exception("Agent loop failed")
            return replies.technical_error

    async def _run_rounds(
        self,
        identity: str,
        text: str,
        inbound_message_id: str | None,
        request_id: str,
        log,
    ) -> str:
        config = self._config
        session = await self._store.append(identity, user_message(text))
        log.info(f"Session loaded with {len(session.messages)} messages")

        context = ToolContext(request_id=request_id, identity=identity, inbound_message_id=inbound_message_id)
        declarations = self._registry.declarations()

        for round_number in range(1, config.max_rounds + 1):
            log.info(f"Starting round {round_number}/{config.max_rounds}")

            transcoded = transcode(session.messages)
            if transcoded.issues:
                log.warning(f"History repaired before model call ({len(transcoded.issues)} issue(s))")
            validate_wire_messages(transcoded.messages)

            response = await self._provider.create_message(
                config.model,
                config.max_tokens,
                config.temperature,
                config.system_prompt,
                transcoded.messages,
                declarations,
            )
            log.info(f"Model response: {response.input_tokens} input, {response.output_tokens} output tokens")

            content, tool_calls = self._accept_content(response, log)
            if content:
                # Stored before any tool runs. A turn with no content is never stored
                # since the transcoder would drop it.
                session = await self._store.append(identity, assistant_message(content))

            if not tool_calls:
                return response.text or config.replies.empty_reply

            log.info(f"Executing {len(tool_calls)} tool(s): {', '.join(b['name'] for b in tool_calls)}")
            results = await self._run_tools(tool_calls, context, log)
            session = await self._store.append(identity, tool_result_bundle(results))

        log.warning(f"Hit safety breaker after {config.max_rounds} rounds")
        return config.replies.clarification

    def _accept_content(self, response: ModelResponse, log) -> tuple[list[dict], list[dict]]:
        """Keep text blocks and tool calls with a distinct id issued by this response."""
        content: list[dict] = []
        tool_calls: list[dict] = []
        seen_ids: set[str] = set()
        for block in response.content:
            if block.get("type") == "text":
                if str(block.get("text", "")).strip():
                    content.append(block)
                continue
            if block.get("type") != "tool_use":
                continue
            call_id = block.get("id")
            if not call_id or not block.get("name"):
                log.warning(f"Ignoring tool call without id or name: {block!r}")
                continue
            if call_id in seen_ids:
                log.warning(f"Ignoring repeated tool call id {call_id}")
                continue
            seen_ids.add(call_id)
            content.append(block)
            tool_calls.append(block)
        return content, tool_calls

    async def _run_tools(self, tool_calls: list[dict], context: ToolContext, log) -> list[dict]:
        async def run_one(block: dict) -> dict:
            tool_name = block["name"]
            handler = self._registry.get(tool_name)
            if handler is None:
                log.error(f"Unknown tool: {tool_name}")
                result = ToolResult.failure(f"Unknown tool: {tool_name}")
            else:
                try:
                    result = await self._runner.execute(handler, block.get("input"), context)
                except Exception as ex:
                    log.error(f"Tool {tool_name} raised outside the runner contract: {ex}")
                    result = ToolResult.failure(f"Tool {tool_name} failed: {ex}")
            return self._result_block(block["id"], tool_name, result, log)

        # Calls within a round are independent and individually idempotent.
        return list(await asyncio.gather(*(run_one(b) for b in tool_calls)))

    @staticmethod
    def _result_block(call_id: str, tool_name: str, result: ToolResult, log) -> dict:
        try:
            content = json.dumps(result.to_payload(), ensure_ascii=False)
        except (TypeError, ValueError) as ex:
            log.error(f"Result of {tool_name} ({call_id}) is not serializable: {ex}")
            content = json.dumps(_UNSERIALIZABLE_RESULT)
        block = {"type": "tool_result", "tool_use_id": call_id, "content": content}
        if not result.ok:
            block["is_error"] = True
        return block

    def _lock_for(self, identity: str):
        if not self._config.serialize_per_identity:
            return contextlib.nullcontext()
        lock = self._identity_locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._identity_locks[identity] = lock
        return lock
