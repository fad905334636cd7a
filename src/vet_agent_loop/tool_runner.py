from __future__ import annotations

import asyncio
import hashlib
import json
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from vet_agent_loop.errors import ToolValidationError
from vet_agent_loop.tool import DEFAULT_TOOL_POLICY, ToolContext, ToolHandler, ToolPolicy, ToolResult

DEFAULT_CACHE_CAPACITY = 100


def idempotency_key(tool_name: str, tool_input: Any, context: ToolContext) -> str:
    canonical = json.dumps(tool_input, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]
    # Without a delivery id the key is scoped to the current request.
    message_key = context.inbound_message_id or f"req-{context.request_id}"
    return f"{tool_name}:{context.identity}:{message_key}:{digest}"


def _describe(ex: BaseException, timeout: float | None) -> str:
    if isinstance(ex, asyncio.TimeoutError):
        return f"Tool execution timeout after {timeout}s"
    return str(ex) or type(ex).__name__


class ToolRunner:
    """Executes handlers with a timeout race, exponential retry and an idempotency cache.

    The cache is in-process and bounded; once a key is evicted the same unit of
    work may execute again.
    """

    def __init__(
        self,
        *,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
        default_policy: ToolPolicy = DEFAULT_TOOL_POLICY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._cache_capacity = max(1, cache_capacity)
        self._default_policy = default_policy
        self._sleep = sleep
        self._cache: OrderedDict[str, ToolResult] = OrderedDict()
        self._inflight: dict[str, asyncio.Future] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def execute(self, handler: ToolHandler, tool_input: Any, context: ToolContext) -> ToolResult:
        policy = (handler.policy or ToolPolicy()).merged_with(self._default_policy)
        key = idempotency_key(handler.name, tool_input, context)

        cached = self._cache.get(key)
        if cached is not None:
            logger.info(f"[{context.request_id}] Tool {handler.name} returned cached result")
            return cached

        inflight = self._inflight.get(key)
        if inflight is not None:
            logger.info(f"[{context.request_id}] Tool {handler.name} joined an in-flight execution")
            return await asyncio.shield(inflight)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._run(handler, tool_input, context, policy)
        except BaseException:
            future.cancel()
            raise
        finally:
            self._inflight.pop(key, None)

        self._remember(key, result)
        future.set_result(result)
        return result

    async def _run(
        self,
        handler: ToolHandler,
        tool_input: Any,
        context: ToolContext,
        policy: ToolPolicy,
    ) -> ToolResult:
        try:
            args = handler.validate(tool_input)
        except ToolValidationError as ex:
            logger.warning(f"[{context.request_id}] {ex}")
            return ToolResult.failure(str(ex))
        except Exception as ex:
            logger.error(f"[{context.request_id}] Validator for {handler.name} failed: {ex!r}")
            return ToolResult.failure(f"Invalid input for tool {handler.name}: {ex}")

        total = int(policy.retries) + 1

        def on_retry(retry_state) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            wait = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                f"[{context.request_id}] Tool {handler.name} failed "
                f"(attempt {retry_state.attempt_number}/{total}): {_describe(exc, policy.timeout)}. "
                f"Retrying in {wait:.2f}s"
            )

        retrying = AsyncRetrying(
            retry=retry_if_not_exception_type(ToolValidationError),
            wait=wait_exponential(multiplier=policy.retry_delay, min=0),
            stop=stop_after_attempt(total),
            before_sleep=on_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    logger.info(
                        f"[{context.request_id}] Executing tool {handler.name} "
                        f"(attempt {attempt.retry_state.attempt_number}/{total})"
                    )
                    result = await asyncio.wait_for(handler.execute(args, context), timeout=policy.timeout)
        except ToolValidationError as ex:
            logger.warning(f"[{context.request_id}] {ex}")
            return ToolResult.failure(str(ex))
        except Exception as ex:
            reason = _describe(ex, policy.timeout)
            logger.error(f"[{context.request_id}] Tool {handler.name} failed after {total} attempts: {reason}")
            return ToolResult.failure(f"Tool {handler.name} failed after {total} attempts: {reason}")

        if not isinstance(result, ToolResult):
            result = ToolResult.success(result)
        return result

    def _remember(self, key: str, result: ToolResult) -> None:
        self._cache[key] = result
        self._cache.move_to_end(key)
        while len(self._cache) > self._cache_capacity:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Idempotency cache evicted {evicted}")
