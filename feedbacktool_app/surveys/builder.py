"""
In-memory survey draft and the operations the builder screens perform on it.

Question order is explicit: every question carries a 1-based
``order_number`` and the builder renumbers the whole list after each
insert, removal or move, so the numbers always read 1..N in list order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import json
import logging
from typing import Any, Optional, Union

from django.utils.dateparse import parse_datetime

from feedbacktool_app.core.api_client import ApiError, get_error_details

from .questions import (
    CREATION_RATING_POLICY,
    MAX_CHOICE_OPTIONS,
    PAYLOAD_TYPES,
    Question,
    QuestionType,
    RatingPolicy,
    SurveyStatus,
    SurveyTemplate,
    default_options_json,
    parse_rating_config,
    rating_options_json,
)
from .validation import validate_draft

logger = logging.getLogger(__name__)

LOCKED_SURVEY_MESSAGE = (
    "This survey already has responses. You can only update the title, "
    "description, end date, and publish/unpublish status. To make structural "
    "changes, create a new survey instead."
)


class QuestionsLockedError(Exception):
    """Raised on structural edits to a survey that already has responses."""


# Explicit mutations. ``update_question(index, field, value)`` maps the
# builder's free-form field names onto these.


@dataclass(frozen=True)
class SetText:
    text: str


@dataclass(frozen=True)
class SetType:
    type: str


@dataclass(frozen=True)
class SetRequired:
    required: bool


@dataclass(frozen=True)
class SetOptions:
    options: list


@dataclass(frozen=True)
class SetRatingConfig:
    scale: int
    min_label: str = ""
    max_label: str = ""


@dataclass(frozen=True)
class SetOptionsJson:
    options_json: Optional[str]


QuestionMutation = Union[SetText, SetType, SetRequired, SetOptions, SetRatingConfig, SetOptionsJson]

STRUCTURAL_MUTATIONS = (SetType, SetOptions, SetRatingConfig, SetOptionsJson)


def mutation_for_field(field_name: str, value: Any) -> QuestionMutation:
    if field_name in ("questionText", "question_text", "text"):
        return SetText(str(value or ""))
    if field_name == "type":
        return SetType(value)
    if field_name == "required":
        return SetRequired(bool(value))
    if field_name in ("optionsJson", "options_json"):
        if value is not None and not isinstance(value, str):
            value = json.dumps(value)
        return SetOptionsJson(value)
    if field_name == "options":
        if value is not None and not isinstance(value, (list, tuple)):
            raise ValueError("Options must be a list")
        return SetOptions(list(value or []))
    raise ValueError(f"Unknown question field: {field_name}")


@dataclass
class SurveyDraft:
    title: str = ""
    description: str = ""
    status: str = SurveyStatus.DRAFT
    end_date: Optional[datetime] = None
    questions: list = field(default_factory=list)
    survey_id: Optional[int] = None

    @classmethod
    def from_survey(cls, survey: dict[str, Any]) -> "SurveyDraft":
        end_date = survey.get("endDate")
        return cls(
            title=survey.get("title") or "",
            description=survey.get("description") or "",
            status=survey.get("status") or SurveyStatus.DRAFT,
            end_date=parse_datetime(end_date) if end_date else None,
            questions=[
                Question.from_api(q, i) for i, q in enumerate(survey.get("questions") or [])
            ],
            survey_id=survey.get("id"),
        )

    def to_api(self, status: str) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "status": str(status),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "questions": [q.to_api() for q in self.questions],
        }


class SurveyDraftBuilder:
    def __init__(
        self,
        draft: Optional[SurveyDraft] = None,
        rating_policy: RatingPolicy = CREATION_RATING_POLICY,
        questions_locked: bool = False,
    ):
        self.draft = draft or SurveyDraft()
        self.rating_policy = rating_policy
        self.questions_locked = questions_locked
        self.revision = 0
        self.unsaved_changes = False
        self.errors: dict[str, str] = {}

    @property
    def questions(self) -> list:
        return self.draft.questions

    def _touch(self) -> None:
        self.revision += 1
        self.unsaved_changes = True

    def _renumber(self) -> None:
        for position, question in enumerate(self.draft.questions, start=1):
            question.order_number = position

    def _check_unlocked(self, action: str) -> None:
        if self.questions_locked:
            raise QuestionsLockedError(f"Cannot {action} on a survey with responses")

    def _question(self, index: int) -> Question:
        if not 0 <= index < len(self.draft.questions):
            raise IndexError(f"No question at position {index}")
        return self.draft.questions[index]

    # ---------------------------------------------------------------- metadata

    def set_title(self, title: str) -> None:
        self.draft.title = title
        self.errors.pop("title", None)
        self._touch()

    def set_description(self, description: str) -> None:
        self.draft.description = description
        self._touch()

    def set_end_date(self, end_date: Optional[datetime]) -> None:
        self.draft.end_date = end_date
        self._touch()

    # --------------------------------------------------------------- questions

    def add_question(self, question_type: str = QuestionType.TEXT, text: str = "") -> Question:
        self._check_unlocked("add questions")
        question = Question.new(
            question_type,
            text,
            order_number=len(self.draft.questions) + 1,
            rating_policy=self.rating_policy,
        )
        self.draft.questions.append(question)
        self._touch()
        return question

    def remove_question(self, index: int) -> Question:
        self._check_unlocked("remove questions")
        self._question(index)
        removed = self.draft.questions.pop(index)
        self._renumber()
        self._touch()
        return removed

    def apply(self, index: int, mutation: QuestionMutation) -> Question:
        question = self._question(index)
        if isinstance(mutation, STRUCTURAL_MUTATIONS):
            self._check_unlocked("change question structure")

        if isinstance(mutation, SetText):
            question.question_text = mutation.text
        elif isinstance(mutation, SetRequired):
            question.required = mutation.required
        elif isinstance(mutation, SetType):
            self._change_type(question, QuestionType(mutation.type))
        elif isinstance(mutation, SetOptions):
            self._set_choice_options(question, mutation.options)
        elif isinstance(mutation, SetRatingConfig):
            self._set_rating_config(question, mutation)
        elif isinstance(mutation, SetOptionsJson):
            question.options_json = mutation.options_json
        else:
            raise TypeError(f"Unsupported mutation: {mutation!r}")

        self.errors.pop(f"question_{index}_text", None)
        self._touch()
        return question

    def update_question(self, index: int, field_name: str, value: Any) -> Question:
        return self.apply(index, mutation_for_field(field_name, value))

    def _change_type(self, question: Question, new_type: QuestionType) -> None:
        question.type = new_type
        if new_type in PAYLOAD_TYPES:
            question.options_json = default_options_json(new_type, self.rating_policy)
        else:
            question.options_json = None

    def _set_choice_options(self, question: Question, options: list) -> None:
        if question.type != QuestionType.MULTIPLE_CHOICE:
            raise ValueError("Options can only be set on multiple choice questions")
        if len(options) > MAX_CHOICE_OPTIONS:
            raise ValueError(f"A question can have at most {MAX_CHOICE_OPTIONS} options")
        question.options_json = json.dumps([str(o) for o in options])

    def _set_rating_config(self, question: Question, mutation: SetRatingConfig) -> None:
        if question.type != QuestionType.RATING:
            raise ValueError("Rating configuration only applies to rating questions")
        scale = mutation.scale
        if not self.rating_policy.editable_scale:
            scale = self.rating_policy.default_scale
        question.options_json = rating_options_json(
            int(scale), min=mutation.min_label, max=mutation.max_label
        )

    def set_rating_labels(self, index: int, min_label: str, max_label: str) -> Question:
        """Label-only edit, allowed under every rating policy."""
        question = self._question(index)
        config = parse_rating_config(question.options_json)
        scale = config.get("scale", self.rating_policy.default_scale)
        return self.apply(index, SetRatingConfig(scale, min_label, max_label))

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move a question by drag-and-drop.

        ``to_index`` is the drop slot in the list as it looked before the
        move; dropping below the original position lands one slot earlier
        because the dragged item is no longer above it.
        """
        if from_index == to_index:
            return
        self._check_unlocked("reorder questions")
        self._question(from_index)
        if not 0 <= to_index <= len(self.draft.questions):
            raise IndexError(f"No drop position {to_index}")
        moved = self.draft.questions.pop(from_index)
        target = to_index - 1 if from_index < to_index else to_index
        self.draft.questions.insert(target, moved)
        self._renumber()
        self._touch()

    def move_up(self, index: int) -> None:
        if index > 0:
            self.reorder(index, index - 1)

    def move_down(self, index: int) -> None:
        if index < len(self.draft.questions) - 1:
            self.reorder(index, index + 2)

    def apply_template(self, template: SurveyTemplate) -> None:
        self._check_unlocked("replace questions")
        self.draft.questions = template.build_questions(self.rating_policy)
        self.draft.title = template.name
        self.draft.description = template.description
        self._renumber()
        self._touch()

    # -------------------------------------------------------------- submission

    def validate(self, target_status: str = SurveyStatus.ACTIVE) -> dict[str, str]:
        self.errors = validate_draft(
            self.draft,
            target_status=target_status,
            rating_policy=self.rating_policy,
            questions_locked=self.questions_locked,
        )
        return self.errors

    def submit(self, target_status: str, service) -> "SubmitResult":
        errors = self.validate(target_status)
        if errors:
            return SubmitResult(success=False, errors=errors)

        payload = self.draft.to_api(target_status)
        try:
            if self.draft.survey_id:
                survey = service.update_survey(self.draft.survey_id, payload)
            else:
                survey = service.create_survey(payload)
        except ApiError as e:
            details = get_error_details(e)
            message = details["message"] or "Failed to save survey"
            if "Cannot modify questions" in message or "already has responses" in message:
                message = LOCKED_SURVEY_MESSAGE
            logger.warning(f"Survey submission failed: {details['message']}")
            self.errors = {"submit": message}
            return SubmitResult(success=False, errors=dict(self.errors))

        if isinstance(survey, dict) and survey.get("id"):
            self.draft.survey_id = survey["id"]
        self.draft.status = target_status
        self.unsaved_changes = False
        return SubmitResult(success=True, survey=survey)

    # ----------------------------------------------------------- persistence

    def to_session(self) -> dict[str, Any]:
        return {
            "title": self.draft.title,
            "description": self.draft.description,
            "status": str(self.draft.status),
            "endDate": self.draft.end_date.isoformat() if self.draft.end_date else None,
            "surveyId": self.draft.survey_id,
            "questions": [q.to_dict() for q in self.draft.questions],
            "ratingPolicy": self.rating_policy.name,
            "questionsLocked": self.questions_locked,
            "revision": self.revision,
            "unsavedChanges": self.unsaved_changes,
        }

    @classmethod
    def from_session(cls, data: dict[str, Any], rating_policies: dict[str, RatingPolicy]) -> "SurveyDraftBuilder":
        end_date = data.get("endDate")
        draft = SurveyDraft(
            title=data.get("title", ""),
            description=data.get("description", ""),
            status=data.get("status", SurveyStatus.DRAFT),
            end_date=parse_datetime(end_date) if end_date else None,
            questions=[Question.from_api(q, i) for i, q in enumerate(data.get("questions", []))],
            survey_id=data.get("surveyId"),
        )
        builder = cls(
            draft,
            rating_policy=rating_policies.get(data.get("ratingPolicy"), CREATION_RATING_POLICY),
            questions_locked=data.get("questionsLocked", False),
        )
        builder.revision = data.get("revision", 0)
        builder.unsaved_changes = data.get("unsavedChanges", False)
        return builder


@dataclass
class SubmitResult:
    success: bool
    survey: Any = None
    errors: dict = field(default_factory=dict)
