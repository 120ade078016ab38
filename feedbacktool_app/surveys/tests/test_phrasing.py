from unittest.mock import Mock

import pytest

from feedbacktool_app.surveys.llm_client import GenerationResult
from feedbacktool_app.surveys.phrasing import (
    TYPE_CONFIGS,
    TextImprovementError,
    build_prompt,
    generate_option_suggestions,
    generate_text_suggestions,
    improve_option_text,
    improve_question_phrasing,
    improve_survey_title,
    improve_text_phrasing,
    truncate_at_word,
)


def client_returning(text=None, error=None):
    client = Mock()
    if error:
        client.generate.return_value = GenerationResult.failure(error)
    else:
        client.generate.return_value = GenerationResult.success(text)
    return client


class TestTruncate:
    def test_short_text_untouched(self):
        assert truncate_at_word("short", 10) == "short"

    def test_cuts_at_late_word_boundary(self):
        text = "alpha beta gamma delta"
        # The last space sits exactly at 80% of the limit, so the cut is hard
        assert truncate_at_word(text, 20) == "alpha beta gamma del"
        assert truncate_at_word(text, 18) == "alpha beta gamma..."


class TestImprove:
    def test_requires_text(self):
        with pytest.raises(TextImprovementError):
            improve_text_phrasing("   ", client=Mock())

    def test_strips_quotes(self):
        client = client_returning('"Quarterly Team Pulse"')
        assert improve_survey_title("team survey", client=client) == "Quarterly Team Pulse"

    def test_prompt_and_token_budget(self):
        client = client_returning("Better option")
        improve_option_text("opt one", client=client)
        args, kwargs = client.generate.call_args
        assert "Please improve the following option" in args[0]
        assert "Keep it under 100 characters" in args[0]
        assert kwargs["max_tokens"] == 50
        assert kwargs["system_prompt"] == TYPE_CONFIGS["option"].system_prompt

    def test_over_limit_output_truncated(self):
        client = client_returning("word " * 40)
        result = improve_survey_title("t", client=client)
        assert len(result) <= 83
        assert result.endswith("...")

    def test_failure_raises(self):
        client = client_returning(error="An error occurred while generating content")
        with pytest.raises(TextImprovementError) as exc:
            improve_text_phrasing("Some text", client=client)
        assert str(exc.value) == "Failed to improve text. Please try again."

    def test_question_type_context(self):
        client = client_returning("How would you rate lunch?")
        improve_question_phrasing("rate lunch", "rating", client=client)
        prompt = client.generate.call_args.args[0]
        assert "rate something on a scale" in prompt

    def test_preserve_length_prompt(self):
        prompt = build_prompt("abc", "general", TYPE_CONFIGS["general"], preserve_length=True)
        assert "around 3 characters" in prompt


class TestSuggestions:
    def test_text_suggestions_split_lines(self):
        client = client_returning("One\n\n Two \nThree\nFour")
        assert generate_text_suggestions("x", client=client) == ["One", "Two", "Three"]

    def test_option_suggestions(self):
        client = client_returning("Yes\nNo\nMaybe\nNot sure\nExtra")
        assert generate_option_suggestions("Coming?", client=client) == ["Yes", "No", "Maybe", "Not sure"]

    def test_option_suggestions_need_question(self):
        with pytest.raises(TextImprovementError):
            generate_option_suggestions("", client=Mock())

    def test_suggestion_failure(self):
        with pytest.raises(TextImprovementError):
            generate_text_suggestions("x", client=client_returning(error="No text generated"))
