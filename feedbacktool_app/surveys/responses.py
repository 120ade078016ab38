"""
Respondent-side form state for a published survey.

Answers are keyed by question id. The REST API expects rating answers as
an integer ``ratingValue`` (0-5) and every other answer as a string
``answerValue``; ``encode_answers`` produces exactly that shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from feedbacktool_app.core.api_client import ApiError, get_error_message

from .questions import QuestionType, SurveyStatus

logger = logging.getLogger(__name__)

RATING_MIN = 0
RATING_MAX = 5

CLOSED_MESSAGE = "This survey is no longer accepting responses."

OUTCOME_SUBMITTED = "submitted"
OUTCOME_INVALID = "invalid"
OUTCOME_CLOSED = "closed"
OUTCOME_AUTH_REQUIRED = "auth_required"
OUTCOME_ERROR = "error"

AUTH_CHOICES = ("login", "signup", "anonymous")


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


@dataclass
class SubmissionOutcome:
    state: str
    error: str = ""
    choices: tuple = ()
    elapsed_seconds: int | None = None
    result: Any = None

    @property
    def submitted(self) -> bool:
        return self.state == OUTCOME_SUBMITTED


class SurveyForm:
    def __init__(self, survey: dict[str, Any], started_at: datetime | None = None):
        self.survey = survey
        self.questions: list[dict[str, Any]] = sorted(
            survey.get("questions") or [],
            key=lambda q: q.get("orderNumber") or 0,
        )
        self.answers: dict[str, Any] = {str(q["id"]): "" for q in self.questions}
        self.started_at = started_at or timezone.now()

    @property
    def survey_id(self):
        return self.survey.get("id")

    @property
    def is_private(self) -> bool:
        return bool(self.survey.get("isPrivate"))

    def set_answer(self, question_id, value: Any) -> None:
        key = str(question_id)
        if key not in self.answers:
            raise KeyError(f"Question {question_id} is not part of this survey")
        self.answers[key] = value

    def set_answers(self, answers: dict[str, Any]) -> None:
        for question_id, value in answers.items():
            if str(question_id) in self.answers:
                self.answers[str(question_id)] = value

    def progress(self) -> int:
        """Percentage of questions answered, rounded half up."""
        total = len(self.questions)
        if not total:
            return 0
        answered = sum(1 for value in self.answers.values() if not _is_blank(value))
        return (answered * 200 + total) // (total * 2)

    def missing_required(self) -> list[str]:
        return [
            q.get("questionText", "")
            for q in self.questions
            if q.get("required") and _is_blank(self.answers.get(str(q["id"])))
        ]

    def required_error(self) -> str:
        missing = self.missing_required()
        if not missing:
            return ""
        return f"Please answer all required questions: {', '.join(missing)}"

    def is_available(self, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        if self.survey.get("status") == SurveyStatus.INACTIVE:
            return False
        end_date = self.survey.get("endDate")
        if end_date:
            end = parse_datetime(end_date) if isinstance(end_date, str) else end_date
            if end and end < now:
                return False
        return True

    def closed_message(self) -> str:
        return CLOSED_MESSAGE

    def elapsed_seconds(self, now: datetime | None = None) -> int:
        now = now or timezone.now()
        return max(0, int((now - self.started_at).total_seconds()))

    def encode_answers(self) -> list[dict[str, Any]]:
        encoded = []
        for question in self.questions:
            value = self.answers.get(str(question["id"]))
            if _is_blank(value):
                continue
            answer: dict[str, Any] = {"questionId": int(question["id"])}
            if question.get("type") == QuestionType.RATING:
                try:
                    rating = int(value)
                except (TypeError, ValueError):
                    continue
                if not RATING_MIN <= rating <= RATING_MAX:
                    continue
                answer["ratingValue"] = rating
            else:
                answer["answerValue"] = str(value)
            encoded.append(answer)
        return encoded

    def submit(self, service, session, continue_anonymously: bool = False, now=None) -> SubmissionOutcome:
        now = now or timezone.now()
        if not self.is_available(now):
            return SubmissionOutcome(OUTCOME_CLOSED, error=self.closed_message())

        error = self.required_error()
        if error:
            return SubmissionOutcome(OUTCOME_INVALID, error=error)

        if self.is_private and not session.is_authenticated and not continue_anonymously:
            return SubmissionOutcome(OUTCOME_AUTH_REQUIRED, choices=AUTH_CHOICES)

        elapsed = self.elapsed_seconds(now)
        try:
            result = service.submit_response(self.survey_id, {"answers": self.encode_answers()})
        except ApiError as e:
            logger.warning(f"Response submission for survey {self.survey_id} failed: {e}")
            return SubmissionOutcome(OUTCOME_ERROR, error=get_error_message(e), elapsed_seconds=elapsed)

        logger.info(f"Response submitted for survey {self.survey_id} after {elapsed}s")
        return SubmissionOutcome(OUTCOME_SUBMITTED, elapsed_seconds=elapsed, result=result)

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        available = self.is_available(now)
        data = {
            "survey": {
                "id": self.survey_id,
                "title": self.survey.get("title"),
                "description": self.survey.get("description"),
                "isPrivate": self.is_private,
            },
            "available": available,
            "startedAt": self.started_at.isoformat(),
        }
        if available:
            data["questions"] = self.questions
            data["progress"] = self.progress()
        else:
            data["closedMessage"] = self.closed_message()
        return data
