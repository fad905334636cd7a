import asyncio
import unittest
from typing import Any

from vet_agent_loop.errors import ToolValidationError, TransientExternalError
from vet_agent_loop.tool import ToolContext, ToolPolicy, ToolResult
from vet_agent_loop.tool_runner import ToolRunner, idempotency_key


class _FakeTool:
    def __init__(
        self,
        name: str = "fake_tool",
        outcomes: list[Any] | None = None,
        policy: ToolPolicy | None = ToolPolicy(timeout=1.0, retries=2, retry_delay=1.0),
        delay: float = 0,
        gate: asyncio.Event | None = None,
    ):
        self._name = name
        self._outcomes = list(outcomes or [])
        self._policy = policy
        self._delay = delay
        self._gate = gate
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Fake tool"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    @property
    def policy(self) -> ToolPolicy | None:
        return self._policy

    def validate(self, tool_input: Any) -> Any:
        if not isinstance(tool_input, dict) or "bad" in tool_input:
            raise ToolValidationError(self._name, "bad: not allowed")
        return tool_input

    async def execute(self, args: Any, context: ToolContext) -> Any:
        self.calls += 1
        if self._gate is not None:
            await self._gate.wait()
        if self._delay:
            await asyncio.sleep(self._delay)
        outcome = self._outcomes.pop(0) if self._outcomes else ToolResult.success({"echo": args})
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class _BrokenValidatorTool(_FakeTool):
    def __init__(self):
        super().__init__()
        self.validate_calls = 0

    def validate(self, tool_input: Any) -> Any:
        self.validate_calls += 1
        return tool_input["missing"]


class _RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _context(message_id: str | None = "SM1", request_id: str = "req1") -> ToolContext:
    return ToolContext(request_id=request_id, identity="+5491100000000", inbound_message_id=message_id)


class ToolRunnerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._sleep = _RecordingSleep()
        self._runner = ToolRunner(sleep=self._sleep)

    def test_success_returns_handler_result(self) -> None:
        tool = _FakeTool()

        result = asyncio.run(self._runner.execute(tool, {"q": 1}, _context()))

        self.assertTrue(result.ok)
        self.assertEqual({"echo": {"q": 1}}, result.data)
        self.assertEqual(1, tool.calls)

    def test_same_unit_of_work_executes_at_most_once(self) -> None:
        tool = _FakeTool()

        first = asyncio.run(self._runner.execute(tool, {"a": 1, "b": 2}, _context()))
        second = asyncio.run(self._runner.execute(tool, {"b": 2, "a": 1}, _context()))

        self.assertEqual(1, tool.calls)
        self.assertEqual(first, second)

    def test_different_message_id_executes_again(self) -> None:
        tool = _FakeTool()

        asyncio.run(self._runner.execute(tool, {"q": 1}, _context("SM1")))
        asyncio.run(self._runner.execute(tool, {"q": 1}, _context("SM2")))

        self.assertEqual(2, tool.calls)

    def test_without_message_id_cache_is_scoped_to_request(self) -> None:
        tool = _FakeTool()

        asyncio.run(self._runner.execute(tool, {"q": 1}, _context(None, "req1")))
        asyncio.run(self._runner.execute(tool, {"q": 1}, _context(None, "req1")))
        asyncio.run(self._runner.execute(tool, {"q": 1}, _context(None, "req2")))

        self.assertEqual(2, tool.calls)

    def test_retries_with_exponential_backoff(self) -> None:
        tool = _FakeTool(
            outcomes=[
                TransientExternalError("boom"),
                TransientExternalError("boom"),
                ToolResult.success("third time"),
            ]
        )

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertTrue(result.ok)
        self.assertEqual("third time", result.data)
        self.assertEqual(3, tool.calls)
        self.assertEqual([1.0, 2.0], self._sleep.delays)

    def test_exhausted_retries_become_failure_result(self) -> None:
        tool = _FakeTool(outcomes=[RuntimeError("down")] * 3)

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertFalse(result.ok)
        self.assertEqual("Tool fake_tool failed after 3 attempts: down", result.error)
        self.assertEqual(3, tool.calls)
        self.assertEqual([1.0, 2.0], self._sleep.delays)

    def test_backoff_scales_with_retry_delay(self) -> None:
        tool = _FakeTool(
            outcomes=[RuntimeError("x")] * 4,
            policy=ToolPolicy(timeout=1.0, retries=3, retry_delay=0.5),
        )

        asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertEqual([0.5, 1.0, 2.0], self._sleep.delays)

    def test_timeout_is_reported(self) -> None:
        tool = _FakeTool(delay=1.0, policy=ToolPolicy(timeout=0.01, retries=0, retry_delay=0))

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertFalse(result.ok)
        self.assertIn("Tool execution timeout after 0.01s", result.error)
        self.assertEqual(1, tool.calls)

    def test_validation_failure_is_not_executed_or_retried(self) -> None:
        tool = _FakeTool()

        result = asyncio.run(self._runner.execute(tool, {"bad": True}, _context()))

        self.assertFalse(result.ok)
        self.assertEqual("Invalid input for tool fake_tool: bad: not allowed", result.error)
        self.assertEqual(0, tool.calls)
        self.assertEqual([], self._sleep.delays)
        self.assertEqual(1, self._runner.cache_size)

    def test_unexpected_validator_error_becomes_cached_failure(self) -> None:
        tool = _BrokenValidatorTool()

        first = asyncio.run(self._runner.execute(tool, {"q": 1}, _context()))
        second = asyncio.run(self._runner.execute(tool, {"q": 1}, _context()))

        self.assertFalse(first.ok)
        self.assertEqual("Invalid input for tool fake_tool: 'missing'", first.error)
        self.assertEqual(first, second)
        self.assertEqual(1, tool.validate_calls)
        self.assertEqual(0, tool.calls)
        self.assertEqual(1, self._runner.cache_size)
        self.assertEqual([], self._sleep.delays)

    def test_validation_error_raised_during_execute_is_not_retried(self) -> None:
        tool = _FakeTool(outcomes=[ToolValidationError("fake_tool", "pet not found")])

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertFalse(result.ok)
        self.assertEqual(1, tool.calls)
        self.assertEqual([], self._sleep.delays)

    def test_default_policy_applies_when_handler_has_none(self) -> None:
        tool = _FakeTool(outcomes=[RuntimeError("x")] * 3, policy=None)

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertFalse(result.ok)
        self.assertEqual(3, tool.calls)

    def test_plain_return_value_is_wrapped(self) -> None:
        tool = _FakeTool(outcomes=[{"raw": True}])

        result = asyncio.run(self._runner.execute(tool, {}, _context()))

        self.assertEqual(ToolResult.success({"raw": True}), result)

    def test_cache_is_bounded_and_evicts_oldest(self) -> None:
        runner = ToolRunner(cache_capacity=2, sleep=self._sleep)
        tool = _FakeTool()

        for i in range(3):
            asyncio.run(runner.execute(tool, {"i": i}, _context()))
        asyncio.run(runner.execute(tool, {"i": 0}, _context()))

        self.assertEqual(2, runner.cache_size)
        self.assertEqual(4, tool.calls)

    def test_concurrent_duplicates_share_one_execution(self) -> None:
        async def scenario():
            gate = asyncio.Event()
            tool = _FakeTool(gate=gate)
            first = asyncio.ensure_future(self._runner.execute(tool, {"q": 1}, _context()))
            second = asyncio.ensure_future(self._runner.execute(tool, {"q": 1}, _context()))
            await asyncio.sleep(0)
            gate.set()
            return tool, await first, await second

        tool, first, second = asyncio.run(scenario())

        self.assertEqual(1, tool.calls)
        self.assertEqual(first, second)

    def test_clear_cache(self) -> None:
        tool = _FakeTool()
        asyncio.run(self._runner.execute(tool, {}, _context()))

        self._runner.clear_cache()

        self.assertEqual(0, self._runner.cache_size)


class IdempotencyKeyTests(unittest.TestCase):
    def test_key_ignores_argument_order(self) -> None:
        context = _context()

        self.assertEqual(
            idempotency_key("t", {"a": 1, "b": [1, 2]}, context),
            idempotency_key("t", {"b": [1, 2], "a": 1}, context),
        )

    def test_key_includes_tool_identity_and_message(self) -> None:
        key = idempotency_key("list_pets", {}, _context("SM7"))

        self.assertTrue(key.startswith("list_pets:+5491100000000:SM7:"))
        self.assertEqual(32, len(key.rsplit(":", 1)[1]))

    def test_key_changes_with_input(self) -> None:
        context = _context()

        self.assertNotEqual(
            idempotency_key("t", {"q": "gatos"}, context),
            idempotency_key("t", {"q": "perros"}, context),
        )


if __name__ == "__main__":
    unittest.main()
