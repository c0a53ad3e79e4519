import unittest

from chatrelay.services.titles import DEFAULT_TITLE, title_for


class TestTitleFor(unittest.TestCase):
    def test_short_message_is_kept(self) -> None:
        self.assertEqual(title_for("Hello"), "Hello")

    def test_first_character_is_capitalized(self) -> None:
        self.assertEqual(title_for("what is the weather like?"), "What is the weather like?")

    def test_only_first_line_is_used(self) -> None:
        self.assertEqual(title_for("  trip plan  \nday one: museum\nday two: beach"), "Trip plan")

    def test_long_line_is_truncated_with_ellipsis(self) -> None:
        title = title_for("please explain the difference between lists and tuples in python")

        self.assertEqual(title, "Please explain the difference between...")
        self.assertLessEqual(len(title), 40)
        self.assertTrue(title.endswith("..."))

    def test_exactly_forty_characters_is_not_truncated(self) -> None:
        text = "a" * 40
        self.assertEqual(title_for(text), "A" + "a" * 39)

    def test_empty_input_gives_placeholder(self) -> None:
        self.assertEqual(title_for(""), DEFAULT_TITLE)
        self.assertEqual(title_for(None), DEFAULT_TITLE)
        self.assertEqual(title_for("   \n  "), DEFAULT_TITLE)

    def test_deterministic(self) -> None:
        text = "Summarize the attached invoice for the accounting team please"
        self.assertEqual(title_for(text), title_for(text))

    def test_truncation_keeps_exactly_thirty_seven_characters(self) -> None:
        title = title_for("a" * 36 + " " + "b" * 10)

        self.assertEqual(title, "A" + "a" * 35 + " ...")
        self.assertEqual(len(title), 40)

    def test_leading_blank_lines_are_skipped(self) -> None:
        self.assertEqual(title_for("\n\n   \nbudget review\nsecond line"), "Budget review")
