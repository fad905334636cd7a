import unittest

from vet_agent_loop.errors import ProtocolInconsistencyError
from vet_agent_loop.session.models import assistant_message, tool_result_bundle, user_message
from vet_agent_loop.transcoder import transcode, validate_wire_messages


def _tool_use(call_id: str, name: str = "list_pets") -> dict:
    return {"type": "tool_use", "id": call_id, "name": name, "input": {}}


def _tool_result(call_id: str) -> dict:
    return {"type": "tool_result", "tool_use_id": call_id, "content": '{"ok": true, "data": []}'}


def _text(text: str) -> dict:
    return {"type": "text", "text": text}


class TranscodeTests(unittest.TestCase):
    def test_user_text_becomes_text_block(self) -> None:
        result = transcode([user_message("hola")])

        self.assertEqual([{"role": "user", "content": [_text("hola")]}], result.messages)
        self.assertEqual([], result.issues)

    def test_consecutive_user_messages_are_merged(self) -> None:
        result = transcode([user_message("hola"), user_message("¿sigues ahí?")])

        self.assertEqual(
            [{"role": "user", "content": [_text("hola"), _text("¿sigues ahí?")]}],
            result.messages,
        )

    def test_valid_tool_exchange_is_preserved(self) -> None:
        messages = [
            user_message("mis mascotas"),
            assistant_message([_tool_use("t1")]),
            tool_result_bundle([_tool_result("t1")]),
            assistant_message([_text("No tienes mascotas.")]),
        ]

        result = transcode(messages)

        self.assertEqual(["user", "assistant", "user", "assistant"], [m["role"] for m in result.messages])
        self.assertEqual([_tool_result("t1")], result.messages[2]["content"])
        self.assertEqual([], result.issues)
        validate_wire_messages(result.messages)

    def test_mismatched_bundle_is_dropped(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_tool_use("t1")]),
            tool_result_bundle([_tool_result("t2")]),
            assistant_message([_text("listo")]),
        ]

        result = transcode(messages)

        self.assertEqual(
            [
                {"role": "user", "content": [_text("hola")]},
                {"role": "assistant", "content": [_text("listo")]},
            ],
            result.messages,
        )
        self.assertTrue(any("Protocol inconsistency" in issue for issue in result.issues))
        validate_wire_messages(result.messages)

    def test_bundle_after_user_message_is_dropped(self) -> None:
        messages = [user_message("hola"), tool_result_bundle([_tool_result("t1")])]

        result = transcode(messages)

        self.assertEqual([{"role": "user", "content": [_text("hola")]}], result.messages)
        self.assertEqual(1, len(result.issues))

    def test_partial_bundle_strips_unanswered_calls(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_text("Reviso."), _tool_use("t1"), _tool_use("t2")]),
            tool_result_bundle([_tool_result("t1")]),
        ]

        result = transcode(messages)

        self.assertEqual([_text("Reviso."), _tool_use("t1")], result.messages[1]["content"])
        validate_wire_messages(result.messages)

    def test_unanswered_tool_call_is_removed_and_neighbours_merged(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_tool_use("t1")]),
            user_message("¿hola?"),
        ]

        result = transcode(messages)

        self.assertEqual(
            [{"role": "user", "content": [_text("hola"), _text("¿hola?")]}],
            result.messages,
        )
        validate_wire_messages(result.messages)

    def test_user_text_after_tool_results_is_kept_distinct(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_tool_use("t1")]),
            tool_result_bundle([_tool_result("t1")]),
            user_message("otra cosa"),
        ]

        result = transcode(messages)

        self.assertEqual(4, len(result.messages))
        self.assertEqual({"role": "user", "content": [_text("otra cosa")]}, result.messages[3])
        self.assertEqual(1, len(result.issues))

    def test_leading_assistant_message_is_dropped(self) -> None:
        messages = [assistant_message([_text("Bienvenido")]), user_message("hola")]

        result = transcode(messages)

        self.assertEqual([{"role": "user", "content": [_text("hola")]}], result.messages)

    def test_empty_messages_are_skipped(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_text("  ")]),
            user_message("   "),
        ]

        result = transcode(messages)

        self.assertEqual([{"role": "user", "content": [_text("hola")]}], result.messages)
        self.assertEqual(2, len(result.issues))

    def test_tool_use_without_id_is_dropped(self) -> None:
        messages = [
            user_message("hola"),
            assistant_message([_text("Veamos"), {"type": "tool_use", "name": "list_pets", "input": {}}]),
        ]

        result = transcode(messages)

        self.assertEqual({"role": "assistant", "content": [_text("Veamos")]}, result.messages[1])

    def test_input_is_not_mutated(self) -> None:
        messages = [user_message("hola"), user_message("chau")]

        transcode(messages)

        self.assertEqual([user_message("hola"), user_message("chau")], messages)


class ValidateWireMessagesTests(unittest.TestCase):
    def test_rejects_empty_request(self) -> None:
        with self.assertRaises(ProtocolInconsistencyError):
            validate_wire_messages([])

    def test_rejects_leading_assistant(self) -> None:
        with self.assertRaises(ProtocolInconsistencyError):
            validate_wire_messages([{"role": "assistant", "content": [_text("hola")]}])

    def test_rejects_tool_call_without_result(self) -> None:
        messages = [
            {"role": "user", "content": [_text("hola")]},
            {"role": "assistant", "content": [_tool_use("t1")]},
        ]

        with self.assertRaises(ProtocolInconsistencyError):
            validate_wire_messages(messages)

    def test_rejects_result_without_call(self) -> None:
        messages = [
            {"role": "user", "content": [_text("hola")]},
            {"role": "assistant", "content": [_text("ok")]},
            {"role": "user", "content": [_tool_result("t9")]},
        ]

        with self.assertRaises(ProtocolInconsistencyError):
            validate_wire_messages(messages)


if __name__ == "__main__":
    unittest.main()
