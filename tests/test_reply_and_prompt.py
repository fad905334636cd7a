import unittest

from vet_agent_loop.reply_cleaner import clean_reply
from vet_agent_loop.system_prompt import build_system_prompt


class CleanReplyTests(unittest.TestCase):
    def test_bold_and_headings(self) -> None:
        self.assertEqual("Resumen\n*Luna* está al día", clean_reply("### Resumen\n**Luna** está al día"))

    def test_empty(self) -> None:
        self.assertEqual("", clean_reply(""))


class BuildSystemPromptTests(unittest.TestCase):
    def test_sections_follow_enabled_tools(self) -> None:
        base = build_system_prompt(["ask_user"])
        full = build_system_prompt(["ask_user", "register_pet", "get_consultation", "web_search", "map_search"])

        self.assertNotIn("register_pet", base)
        self.assertNotIn("map_search", base)
        self.assertNotIn("get_consultation", base)
        self.assertIn("register_pet", full)
        self.assertIn("get_consultation", full)
        self.assertIn("web_search", full)
        self.assertIn("map_search", full)


if __name__ == "__main__":
    unittest.main()
