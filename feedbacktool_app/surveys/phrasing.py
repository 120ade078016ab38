"""
AI-assisted rewording of survey titles, descriptions, questions and options.

Each text type has its own system prompt and length limit. Generated text
is cleaned of wrapping quotes and cut back to the limit at a word boundary
where one falls close enough to the end.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import re
from typing import Optional

from .llm_client import TextGenerationClient
from .questions import QuestionType

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
SUGGESTION_TEMPERATURE = 0.8


class TextImprovementError(Exception):
    """Raised when text cannot be improved. The message is user-facing."""


@dataclass(frozen=True)
class PhrasingConfig:
    max_length: int
    system_prompt: str
    instructions: str


TYPE_CONFIGS = {
    "title": PhrasingConfig(
        80,
        "You are an expert at creating clear, engaging, and concise titles. "
        "Your task is to improve the user's title while keeping it short, "
        "impactful, and professional.",
        "Make it catchy but professional, clear and concise",
    ),
    "description": PhrasingConfig(
        500,
        "You are an expert at writing clear, informative descriptions. "
        "Your task is to improve the user's description while maintaining "
        "clarity and engagement.",
        "Make it clear, informative, and well-structured",
    ),
    "question": PhrasingConfig(
        200,
        "You are an expert at creating clear, unbiased survey questions. "
        "Your task is to improve the user's question while ensuring it is "
        "neutral and easy to understand. Avoid leading questions.",
        "Make it clear, neutral, and easy to understand",
    ),
    "option": PhrasingConfig(
        100,
        "You are an expert at creating clear, concise option text. "
        "Your task is to improve the user's option while keeping it brief.",
        "Make it clear and concise",
    ),
    "general": PhrasingConfig(
        300,
        "You are an expert at improving text clarity and engagement. "
        "Your task is to enhance the user's text while maintaining its "
        "original intent.",
        "Make it clear, well-written, and engaging",
    ),
}

TEXT_TYPES = tuple(TYPE_CONFIGS)

QUESTION_TYPE_CONTEXT = {
    QuestionType.RATING: "This is a rating question that asks users to rate something on a scale.",
    QuestionType.MULTIPLE_CHOICE: "This is a multiple choice question with predefined options.",
    QuestionType.TEXT: "This is a text input question that allows open-ended responses.",
    QuestionType.LONG_TEXT: "This is a long text question for detailed responses.",
}

SUGGESTIONS_SYSTEM_PROMPT = (
    "You are an expert copywriter who creates multiple variations of text "
    "improvements. Provide diverse, high-quality alternatives that keep the "
    "original intent."
)

_WRAPPING_QUOTES = re.compile(r"""^["']|["']$""")


def clean_generated_text(text: str) -> str:
    return _WRAPPING_QUOTES.sub("", text.strip())


def truncate_at_word(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length``, preferring a space in the last fifth."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + "..."
    return truncated


def build_prompt(
    text: str,
    text_type: str,
    config: PhrasingConfig,
    context: str = "",
    tone: str = "professional",
    preserve_length: bool = False,
) -> str:
    prompt = f'Please improve the following {text_type}:\n\n"{text}"\n\n'
    prompt += f"Instructions: {config.instructions}. "
    if preserve_length:
        prompt += f"Keep the length similar to the original (around {len(text)} characters). "
    else:
        prompt += f"Keep it under {config.max_length} characters. "
    prompt += f"Use a {tone} tone. "
    if context:
        prompt += f"Context: {context}. "
    prompt += "\n\nReturn only the improved text without any additional explanation or formatting."
    return prompt


def _split_lines(text: str, count: int) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()][:count]


def improve_text_phrasing(
    text: str,
    text_type: str = "general",
    max_length: Optional[int] = None,
    context: str = "",
    tone: str = "professional",
    preserve_length: bool = False,
    client: Optional[TextGenerationClient] = None,
) -> str:
    if not text or not text.strip():
        raise TextImprovementError("Text is required for improvement")

    base = TYPE_CONFIGS.get(text_type) or TYPE_CONFIGS["general"]
    config = PhrasingConfig(max_length or base.max_length, base.system_prompt, base.instructions)
    prompt = build_prompt(text, text_type, config, context, tone, preserve_length)

    client = client or TextGenerationClient()
    result = client.generate(
        prompt,
        system_prompt=config.system_prompt,
        temperature=DEFAULT_TEMPERATURE,
        max_tokens=math.ceil(config.max_length / 2),
    )
    if not result.ok:
        logger.warning(f"Improving {text_type} text failed: {result.error}")
        raise TextImprovementError("Failed to improve text. Please try again.")

    improved = truncate_at_word(clean_generated_text(result.text), config.max_length)
    logger.info(f"Improved {text_type} text ({len(text)} -> {len(improved)} chars)")
    return improved


def improve_survey_title(title: str, client=None, **options) -> str:
    options.setdefault("context", "This is a survey title that should be engaging and clear")
    return improve_text_phrasing(title, "title", max_length=80, client=client, **options)


def improve_survey_description(description: str, client=None, **options) -> str:
    options.setdefault(
        "context", "This is a survey description that explains the purpose and instructions"
    )
    return improve_text_phrasing(description, "description", max_length=500, client=client, **options)


def improve_question_text(question: str, client=None, **options) -> str:
    options.setdefault("context", "This is a survey question that should be clear and unbiased")
    return improve_text_phrasing(question, "question", max_length=200, client=client, **options)


def improve_option_text(option: str, client=None, **options) -> str:
    options.setdefault(
        "context", "This is a multiple choice option that should be clear and distinct from other options"
    )
    return improve_text_phrasing(option, "option", max_length=100, client=client, **options)


def improve_question_phrasing(question_text: str, question_type: str = "", client=None, **options) -> str:
    """Improve a question, adding context for its answer type."""
    if not question_text or not question_text.strip():
        raise TextImprovementError("Question text is required")

    context = "This is a survey question that should be clear, neutral, and unbiased."
    try:
        extra = QUESTION_TYPE_CONTEXT.get(QuestionType((question_type or "").upper()))
    except ValueError:
        extra = None
    context += " " + (extra or "Make it engaging but neutral.")
    options.setdefault("context", context)
    return improve_question_text(question_text, client=client, **options)


def generate_text_suggestions(
    text: str, text_type: str = "general", count: int = 3, client=None
) -> list[str]:
    if not text or not text.strip():
        raise TextImprovementError("Text is required for generating suggestions")

    prompt = (
        f'Generate {count} different improved versions of this {text_type}:\n\n"{text}"\n\n'
        "Requirements:\n"
        "- Each version should be distinct and offer a different approach\n"
        "- Maintain the original meaning and intent\n"
        "- Return only the suggestions, one per line, without numbering or additional text"
    )
    client = client or TextGenerationClient()
    result = client.generate(
        prompt, system_prompt=SUGGESTIONS_SYSTEM_PROMPT, temperature=SUGGESTION_TEMPERATURE
    )
    if not result.ok:
        logger.warning(f"Generating {text_type} suggestions failed: {result.error}")
        raise TextImprovementError("Failed to generate suggestions. Please try again.")
    return [clean_generated_text(s) for s in _split_lines(result.text, count)]


def generate_option_suggestions(question_text: str, count: int = 4, client=None) -> list[str]:
    if not question_text or not question_text.strip():
        raise TextImprovementError("Question text is required for generating option suggestions")

    prompt = (
        f'Generate {count} appropriate multiple choice options for this question: "{question_text}"\n\n'
        "Requirements:\n"
        "- Options should be mutually exclusive and comprehensive\n"
        "- Be concise and clear\n"
        "- Return only the options, one per line, without numbering or formatting"
    )
    client = client or TextGenerationClient()
    result = client.generate(
        prompt,
        system_prompt=TYPE_CONFIGS["option"].system_prompt,
        temperature=DEFAULT_TEMPERATURE,
        max_tokens=250,
    )
    if not result.ok:
        logger.warning(f"Generating option suggestions failed: {result.error}")
        raise TextImprovementError("Failed to generate option suggestions. Please try again.")
    return [clean_generated_text(s) for s in _split_lines(result.text, count)]
