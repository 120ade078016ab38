from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .questions import (
    CREATION_RATING_POLICY,
    DESCRIPTION_SOFT_LIMIT,
    MIN_CHOICE_OPTIONS,
    QUESTION_TEXT_SOFT_LIMIT,
    InvalidOptionsError,
    QuestionType,
    RatingPolicy,
    SurveyStatus,
    parse_choice_options,
    parse_rating_config,
)

if TYPE_CHECKING:
    from .builder import SurveyDraft


def _option_error(options_json: str | None) -> str | None:
    try:
        options = parse_choice_options(options_json)
    except InvalidOptionsError:
        return "Invalid options format"
    if any(not isinstance(opt, str) or not opt.strip() for opt in options):
        return "All options must have text"
    if len(options) < MIN_CHOICE_OPTIONS:
        return "At least 2 options are required"
    return None


def _rating_error(options_json: str | None, policy: RatingPolicy) -> str | None:
    try:
        config = parse_rating_config(options_json)
    except InvalidOptionsError:
        return "Invalid rating configuration"
    if not policy.accepts(config.get("scale")):
        if policy.min_scale == policy.max_scale:
            return f"Rating scale must be {policy.min_scale} points"
        return f"Rating scale must be between {policy.min_scale}-{policy.max_scale}"
    return None


def validate_draft(
    draft: "SurveyDraft",
    target_status: str = SurveyStatus.ACTIVE,
    rating_policy: RatingPolicy = CREATION_RATING_POLICY,
    questions_locked: bool = False,
) -> dict[str, str]:
    """Field key -> error message. An empty mapping means the draft can be submitted."""
    errors: dict[str, str] = {}

    if not (draft.title or "").strip():
        errors["title"] = "Survey title is required"

    # An empty draft may be saved; publishing needs at least one question.
    # Locked edit drafts keep whatever questions the survey already has.
    if not draft.questions and not questions_locked:
        if target_status != SurveyStatus.DRAFT:
            errors["questions"] = "At least one question is required"

    for index, question in enumerate(draft.questions):
        if not (question.question_text or "").strip():
            errors[f"question_{index}_text"] = "Question text is required"

        if question.type == QuestionType.MULTIPLE_CHOICE:
            message = _option_error(question.options_json)
            if message:
                errors[f"question_{index}_options"] = message

        if question.type == QuestionType.RATING:
            message = _rating_error(question.options_json, rating_policy)
            if message:
                errors[f"question_{index}_rating"] = message

    return errors


def character_counts(draft: "SurveyDraft") -> dict[str, dict[str, Any]]:
    """Counters for the soft length caps. Exceeding them is never an error."""
    counts = {
        "description": {
            "length": len(draft.description or ""),
            "limit": DESCRIPTION_SOFT_LIMIT,
        }
    }
    for index, question in enumerate(draft.questions):
        counts[f"question_{index}_text"] = {
            "length": len(question.question_text or ""),
            "limit": QUESTION_TEXT_SOFT_LIMIT,
        }
    for entry in counts.values():
        entry["over"] = entry["length"] > entry["limit"]
    return counts


def validate_survey_metadata(survey: dict[str, Any]) -> dict[str, str]:
    """Checks applied by the admin list before updating survey metadata."""
    errors: dict[str, str] = {}

    title = survey.get("title") or ""
    if not title.strip():
        errors["title"] = "Survey title is required"
    elif len(title) > 200:
        errors["title"] = "Survey title must be 200 characters or less"

    description = survey.get("description") or ""
    if not description.strip():
        errors["description"] = "Survey description is required"
    elif len(description) > 1000:
        errors["description"] = "Survey description must be 1000 characters or less"

    status = survey.get("status")
    if not status:
        errors["status"] = "Survey status is required"
    elif status not in SurveyStatus.values:
        errors["status"] = "Invalid survey status"

    return errors
