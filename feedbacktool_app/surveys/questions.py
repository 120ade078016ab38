"""
Question model for the survey builder.

Each question carries a type-specific payload serialised into
``options_json`` exactly as the REST API stores it:

- TEXT / LONG_TEXT: ``None``
- RATING: ``{"scale": 5, "labels": {"min": "Poor", "max": "Excellent"}}``
- MULTIPLE_CHOICE: ``["Option 1", "Option 2"]``
"""

from __future__ import annotations

from dataclasses import dataclass, field
import itertools
import json
import time
from typing import Any

from django.conf import settings
from django.db import models


class QuestionType(models.TextChoices):
    TEXT = "TEXT", "Short Text"
    LONG_TEXT = "LONG_TEXT", "Long Text"
    RATING = "RATING", "Rating Scale"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE", "Multiple Choice"


class SurveyStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"


PAYLOAD_TYPES = {QuestionType.RATING, QuestionType.MULTIPLE_CHOICE}

MIN_CHOICE_OPTIONS = 2
MAX_CHOICE_OPTIONS = 8
DEFAULT_CHOICE_OPTIONS = ["Option 1", "Option 2"]
DEFAULT_RATING_LABELS = {"min": "Poor", "max": "Excellent"}

QUESTION_TEXT_SOFT_LIMIT = 200
DESCRIPTION_SOFT_LIMIT = 500


class InvalidOptionsError(ValueError):
    """Raised when options_json cannot be decoded for its question type."""


@dataclass(frozen=True)
class RatingPolicy:
    """Which rating scales a builder accepts.

    The creation screen lets authors pick a 3-10 point scale, while the edit
    screen pins every rating question to six points (0-5) and only exposes
    the labels. Both contracts exist against the same API, so the policy is
    chosen per builder instead of hard-coding either one.
    """

    name: str
    min_scale: int
    max_scale: int
    default_scale: int
    editable_scale: bool = True

    def accepts(self, scale: Any) -> bool:
        return (
            isinstance(scale, int)
            and not isinstance(scale, bool)
            and self.min_scale <= scale <= self.max_scale
        )


CREATION_RATING_POLICY = RatingPolicy("creation", 3, 10, 5)
FIXED_RATING_POLICY = RatingPolicy("fixed", 6, 6, 6, editable_scale=False)

RATING_POLICIES = {
    CREATION_RATING_POLICY.name: CREATION_RATING_POLICY,
    FIXED_RATING_POLICY.name: FIXED_RATING_POLICY,
}


def get_rating_policy(name: str | None = None) -> RatingPolicy:
    name = name or getattr(settings, "SURVEY_RATING_POLICY", "creation")
    return RATING_POLICIES.get(name, CREATION_RATING_POLICY)


_id_sequence = itertools.count()


def temporary_id() -> int:
    """Time-based id for questions that have not been saved yet."""
    return int(time.time() * 1000) * 1000 + next(_id_sequence) % 1000


def default_options_json(
    question_type: str, rating_policy: RatingPolicy = CREATION_RATING_POLICY
) -> str | None:
    if question_type == QuestionType.RATING:
        return rating_options_json(rating_policy.default_scale, **DEFAULT_RATING_LABELS)
    if question_type == QuestionType.MULTIPLE_CHOICE:
        return json.dumps(DEFAULT_CHOICE_OPTIONS)
    return None


def rating_options_json(scale: int, min: str = "", max: str = "") -> str:
    return json.dumps({"scale": int(scale), "labels": {"min": min, "max": max}})


def parse_choice_options(options_json: str | None) -> list[str]:
    try:
        options = json.loads(options_json or "[]")
    except (TypeError, ValueError) as e:
        raise InvalidOptionsError("Invalid options format") from e
    if not isinstance(options, list):
        raise InvalidOptionsError("Invalid options format")
    return options


def parse_rating_config(options_json: str | None) -> dict[str, Any]:
    try:
        config = json.loads(options_json or "{}")
    except (TypeError, ValueError) as e:
        raise InvalidOptionsError("Invalid rating configuration") from e
    if not isinstance(config, dict):
        raise InvalidOptionsError("Invalid rating configuration")
    return config


@dataclass
class Question:
    id: int
    type: str = QuestionType.TEXT
    question_text: str = ""
    required: bool = False
    options_json: str | None = None
    order_number: int = 1

    @classmethod
    def new(
        cls,
        question_type: str = QuestionType.TEXT,
        question_text: str = "",
        order_number: int = 1,
        rating_policy: RatingPolicy = CREATION_RATING_POLICY,
    ) -> "Question":
        return cls(
            id=temporary_id(),
            type=QuestionType(question_type),
            question_text=question_text,
            options_json=default_options_json(question_type, rating_policy),
            order_number=order_number,
        )

    @classmethod
    def from_api(cls, payload: dict[str, Any], position: int) -> "Question":
        options = payload.get("optionsJson")
        if options is not None and not isinstance(options, str):
            options = json.dumps(options)
        return cls(
            id=payload.get("id"),
            type=QuestionType(payload.get("type", QuestionType.TEXT)),
            question_text=payload.get("questionText") or "",
            required=bool(payload.get("required", False)),
            options_json=options,
            order_number=payload.get("orderNumber") or position + 1,
        )

    @property
    def choice_options(self) -> list[str]:
        if self.type != QuestionType.MULTIPLE_CHOICE:
            return []
        return parse_choice_options(self.options_json)

    @property
    def rating_config(self) -> dict[str, Any]:
        if self.type != QuestionType.RATING:
            return {}
        return parse_rating_config(self.options_json)

    def to_api(self) -> dict[str, Any]:
        """Payload for the REST API, without builder-only fields such as the temporary id."""
        return {
            "type": str(self.type),
            "questionText": self.question_text,
            "optionsJson": self.options_json,
            "orderNumber": self.order_number,
            "required": self.required,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": str(self.type),
            "questionText": self.question_text,
            "required": self.required,
            "optionsJson": self.options_json,
            "orderNumber": self.order_number,
        }


@dataclass(frozen=True)
class SurveyTemplate:
    name: str
    description: str
    questions: list[dict[str, Any]] = field(default_factory=list)

    def build_questions(self, rating_policy: RatingPolicy = CREATION_RATING_POLICY) -> list[Question]:
        built = []
        for index, entry in enumerate(self.questions):
            question = Question.new(
                entry["type"], entry["text"], order_number=index + 1, rating_policy=rating_policy
            )
            if entry["type"] == QuestionType.MULTIPLE_CHOICE:
                question.options_json = json.dumps(entry["options"])
            elif entry["type"] == QuestionType.RATING:
                scale = entry["scale"] if rating_policy.editable_scale else rating_policy.default_scale
                question.options_json = rating_options_json(scale, **DEFAULT_RATING_LABELS)
            built.append(question)
        return built


SURVEY_TEMPLATES = {
    "customer-satisfaction": SurveyTemplate(
        "Customer Satisfaction",
        "Standard customer feedback survey",
        [
            {"type": QuestionType.RATING, "text": "How satisfied are you with our service?", "scale": 5},
            {
                "type": QuestionType.MULTIPLE_CHOICE,
                "text": "How likely are you to recommend us?",
                "options": ["Very likely", "Likely", "Neutral", "Unlikely", "Very unlikely"],
            },
            {"type": QuestionType.LONG_TEXT, "text": "What can we improve?"},
        ],
    ),
    "event-feedback": SurveyTemplate(
        "Event Feedback",
        "Gather feedback about events",
        [
            {"type": QuestionType.RATING, "text": "How would you rate the event overall?", "scale": 10},
            {
                "type": QuestionType.MULTIPLE_CHOICE,
                "text": "Which session was most valuable?",
                "options": ["Session 1", "Session 2", "Session 3", "Networking"],
            },
            {"type": QuestionType.LONG_TEXT, "text": "Additional comments"},
        ],
    ),
    "employee-engagement": SurveyTemplate(
        "Employee Engagement",
        "Internal team satisfaction survey",
        [
            {"type": QuestionType.RATING, "text": "How engaged do you feel at work?", "scale": 7},
            {
                "type": QuestionType.MULTIPLE_CHOICE,
                "text": "What motivates you most?",
                "options": ["Recognition", "Growth opportunities", "Compensation", "Work-life balance"],
            },
            {"type": QuestionType.LONG_TEXT, "text": "How can we improve your work experience?"},
        ],
    ),
}
