import unittest

from vet_agent_loop.session.models import assistant_message, tool_result_bundle, user_message
from vet_agent_loop.session.trimming import split_turns, trim_turns


class TrimmingTests(unittest.TestCase):
    def test_split_turns_groups_from_each_user_message(self) -> None:
        messages = [
            user_message("uno"),
            assistant_message([{"type": "tool_use", "id": "t1", "name": "list_pets", "input": {}}]),
            tool_result_bundle([{"type": "tool_result", "tool_use_id": "t1", "content": "[]"}]),
            assistant_message([{"type": "text", "text": "No tienes mascotas."}]),
            user_message("dos"),
        ]

        orphans, turns = split_turns(messages)

        self.assertEqual([], orphans)
        self.assertEqual(2, len(turns))
        self.assertEqual(4, len(turns[0]))
        self.assertEqual([user_message("dos")], turns[1])

    def test_tool_result_bundle_does_not_start_a_turn(self) -> None:
        messages = [
            user_message("uno"),
            tool_result_bundle([{"type": "tool_result", "tool_use_id": "t1", "content": "{}"}]),
        ]

        _, turns = split_turns(messages)

        self.assertEqual(1, len(turns))

    def test_leading_messages_without_user_are_orphans(self) -> None:
        messages = [
            assistant_message([{"type": "text", "text": "hola"}]),
            tool_result_bundle([{"type": "tool_result", "tool_use_id": "t1", "content": "{}"}]),
            user_message("uno"),
        ]

        orphans, turns = split_turns(messages)

        self.assertEqual(2, len(orphans))
        self.assertEqual([[user_message("uno")]], turns)

    def test_trim_drops_orphans_and_oldest_turns(self) -> None:
        messages = [assistant_message([{"type": "text", "text": "huérfano"}])]
        for i in range(5):
            messages.append(user_message(f"u{i}"))
            messages.append(assistant_message([{"type": "text", "text": f"a{i}"}]))

        trimmed = trim_turns(messages, 2)

        self.assertEqual(
            [
                user_message("u3"),
                assistant_message([{"type": "text", "text": "a3"}]),
                user_message("u4"),
                assistant_message([{"type": "text", "text": "a4"}]),
            ],
            trimmed,
        )

    def test_trim_within_budget_is_unchanged(self) -> None:
        messages = [user_message("u0"), assistant_message([{"type": "text", "text": "a0"}])]

        self.assertEqual(messages, trim_turns(messages, 12))


if __name__ == "__main__":
    unittest.main()
