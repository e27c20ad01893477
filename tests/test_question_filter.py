"""
Tests for sourcefs.stream.question_filter.
"""

import pytest

from sourcefs.stream.question_filter import extract_core_question, strip_question_from_start


class TestExtractCoreQuestion:
    @pytest.mark.parametrize(
        "question,expected",
        [
            ("@svelte How do I define a route?", "How do I define a route?"),
            ("@svelte @kit   How do\n I   route?", "How do I route?"),
            ("  plain question  ", "plain question"),
            ("email me@example.com", "email me@example.com"),
            ("@only", ""),
            ("", ""),
            (None, ""),
        ],
    )
    def test_extract(self, question, expected):
        assert extract_core_question(question) == expected


class TestStripQuestionFromStart:
    CORE = "How do I define a route?"

    def test_full_echo_removed(self):
        text = "How do I define a route?\n\nUse a +page.svelte file."
        assert strip_question_from_start(text, self.CORE) == "Use a +page.svelte file."

    def test_case_and_whitespace_insensitive(self):
        text = "  how DO i\n\tdefine a   route? Use files."
        assert strip_question_from_start(text, self.CORE) == "Use files."

    def test_unrelated_answer_untouched(self):
        text = "Routes live in src/routes."
        assert strip_question_from_start(text, self.CORE) == text

    def test_prefix_withheld_while_streaming(self):
        assert strip_question_from_start("How do I def", self.CORE) == ""
        assert strip_question_from_start("How do I def", self.CORE, final=True) == "How do I def"

    def test_exact_echo_undecided_until_more_text(self):
        assert strip_question_from_start("How do I define a route?", self.CORE) == ""
        assert strip_question_from_start("How do I define a route?  ", self.CORE) == ""
        assert strip_question_from_start("How do I define a route?", self.CORE, final=True) == ""

    def test_word_continuation_is_not_an_echo(self):
        assert strip_question_from_start("what is xylophone", "what is x") == "what is xylophone"

    def test_punctuation_may_follow_directly(self):
        assert strip_question_from_start("what is x: a letter", "what is x") == ": a letter"

    def test_no_core_question(self):
        assert strip_question_from_start("  anything", "") == "  anything"
