from __future__ import annotations

import logging

from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django_ratelimit.decorators import ratelimit
from rest_framework import serializers
from rest_framework.decorators import api_view
from rest_framework.response import Response

from feedbacktool_app.core.api_client import ApiError, get_error_details, get_error_message
from feedbacktool_app.core.permissions import role_required
from feedbacktool_app.core.session import ROLE_ADMIN

from .autosave import DraftAutoSaver
from .builder import (
    QuestionsLockedError,
    SetRatingConfig,
    SurveyDraft,
    SurveyDraftBuilder,
)
from .export import EXPORT_KINDS, ExportError, build_export, csv_download
from .phrasing import (
    TEXT_TYPES,
    TextImprovementError,
    generate_option_suggestions,
    generate_text_suggestions,
    improve_option_text,
    improve_question_phrasing,
    improve_question_text,
    improve_survey_description,
    improve_survey_title,
    improve_text_phrasing,
)
from .questions import (
    RATING_POLICIES,
    SURVEY_TEMPLATES,
    QuestionType,
    SurveyStatus,
    get_rating_policy,
)
from .responses import SurveyForm
from .services import (
    AnalyticsService,
    ResponseService,
    SurveyService,
    UserService,
    calculate_stats,
    filter_by_status,
    format_status,
    group_by_status,
)
from .validation import character_counts, validate_survey_metadata

logger = logging.getLogger(__name__)

DRAFT_SESSION_KEY = "survey_draft"
AUTOSAVE_SESSION_KEY = "survey_draft_autosave"
FORM_STARTED_KEY = "survey_form_started_{survey_id}"

DRAFT_ACTIONS = (
    "add",
    "remove",
    "update",
    "reorder",
    "move",
    "template",
    "meta",
    "validate",
    "submit",
    "reset",
    "edit",
)


# --------------------------------------------------------------------- helpers


def _services(request):
    api = request.feedback_session.api
    return SurveyService(api), ResponseService(api), AnalyticsService(api)


def _load_builder(request) -> SurveyDraftBuilder:
    data = request.session.get(DRAFT_SESSION_KEY)
    if data:
        return SurveyDraftBuilder.from_session(data, RATING_POLICIES)
    return SurveyDraftBuilder(rating_policy=get_rating_policy())


def _store_builder(request, builder: SurveyDraftBuilder) -> None:
    request.session[DRAFT_SESSION_KEY] = builder.to_session()


def _stored_session_value(request, key: str):
    """Read ``key`` from the session backend rather than this request's copy."""
    if not request.session.session_key:
        return request.session.get(key)
    return request.session.__class__(request.session.session_key).get(key)


def _draft_payload(builder: SurveyDraftBuilder) -> dict:
    return {
        "draft": builder.to_session(),
        "errors": builder.errors,
        "characterCounts": character_counts(builder.draft),
    }


def _api_error_response(e: ApiError, fallback_status: int = 502) -> Response:
    details = get_error_details(e)
    return Response(
        {"success": False, "error": details["message"], "errors": details["errors"]},
        status=details["status"] or fallback_status,
    )


class DraftActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=DRAFT_ACTIONS)
    index = serializers.IntegerField(required=False, min_value=0)
    type = serializers.ChoiceField(choices=QuestionType.choices, required=False)
    text = serializers.CharField(required=False, allow_blank=True)
    field = serializers.CharField(required=False)
    value = serializers.JSONField(required=False)
    from_index = serializers.IntegerField(required=False, min_value=0)
    to_index = serializers.IntegerField(required=False, min_value=0)
    direction = serializers.ChoiceField(choices=("up", "down"), required=False)
    template = serializers.ChoiceField(choices=tuple(SURVEY_TEMPLATES), required=False)
    title = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    end_date = serializers.DateTimeField(required=False, allow_null=True)
    target_status = serializers.ChoiceField(
        choices=SurveyStatus.choices, required=False, default=SurveyStatus.ACTIVE
    )
    survey_id = serializers.IntegerField(required=False)


def _require(data: dict, *names: str) -> None:
    missing = [n for n in names if data.get(n) is None]
    if missing:
        raise ValueError(f"Missing field(s): {', '.join(missing)}")


def _update_question(builder: SurveyDraftBuilder, data: dict) -> None:
    _require(data, "index", "field")
    index, field_name, value = data["index"], data["field"], data.get("value")
    if field_name not in ("rating", "ratingLabels"):
        builder.update_question(index, field_name, value)
        return

    value = value or {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object")
    min_label, max_label = str(value.get("min") or ""), str(value.get("max") or "")
    if field_name == "ratingLabels":
        builder.set_rating_labels(index, min_label, max_label)
        return

    scale = value.get("scale", builder.rating_policy.default_scale)
    if isinstance(scale, bool) or not isinstance(scale, (int, str)):
        raise ValueError("Rating scale must be a number")
    builder.apply(index, SetRatingConfig(int(scale), min_label, max_label))


def _start_edit(request, survey_id: int) -> SurveyDraftBuilder:
    survey_service, response_service, _ = _services(request)
    survey = survey_service.get_survey(survey_id)
    locked = response_service.has_responses(survey_id)
    return SurveyDraftBuilder(
        SurveyDraft.from_survey(survey),
        rating_policy=get_rating_policy(),
        questions_locked=locked,
    )


# ----------------------------------------------------------------- dashboard


@role_required(ROLE_ADMIN)
@api_view(["GET"])
def admin_dashboard(request):
    survey_service, _, analytics_service = _services(request)
    try:
        surveys = survey_service.get_all_surveys()
    except ApiError as e:
        logger.warning(f"Loading admin dashboard failed: {e}")
        return _api_error_response(e)

    status = request.query_params.get("status")
    data = {
        "stats": calculate_stats(surveys),
        "statusChart": group_by_status(surveys),
        "surveys": [
            {**survey, "statusLabel": format_status(survey.get("status"))}
            for survey in filter_by_status(surveys, status)
        ],
    }
    try:
        data["recentResponses"] = analytics_service.get_recent_responses()
    except ApiError as e:
        # The dashboard renders without recent responses
        logger.info(f"Recent responses unavailable: {e}")
        data["recentResponses"] = []
    return Response(data)


# --------------------------------------------------------------------- draft


@role_required(ROLE_ADMIN)
@api_view(["GET", "POST"])
def survey_draft(request):
    """Builder actions on the draft kept in the Django session."""
    builder = _load_builder(request)
    if request.method == "GET":
        return Response(_draft_payload(builder))

    serializer = DraftActionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({"success": False, "errors": serializer.errors}, status=400)
    data = serializer.validated_data
    action = data["action"]

    try:
        if action == "add":
            builder.add_question(data.get("type", QuestionType.TEXT), data.get("text", ""))
        elif action == "remove":
            _require(data, "index")
            builder.remove_question(data["index"])
        elif action == "update":
            _update_question(builder, data)
        elif action == "reorder":
            _require(data, "from_index", "to_index")
            builder.reorder(data["from_index"], data["to_index"])
        elif action == "move":
            _require(data, "index", "direction")
            if data["direction"] == "up":
                builder.move_up(data["index"])
            else:
                builder.move_down(data["index"])
        elif action == "template":
            _require(data, "template")
            builder.apply_template(SURVEY_TEMPLATES[data["template"]])
        elif action == "meta":
            if "title" in data:
                builder.set_title(data["title"])
            if "description" in data:
                builder.set_description(data["description"])
            if "end_date" in data:
                builder.set_end_date(data["end_date"])
        elif action == "validate":
            builder.validate(data["target_status"])
        elif action == "reset":
            builder = SurveyDraftBuilder(rating_policy=get_rating_policy())
            request.session.pop(AUTOSAVE_SESSION_KEY, None)
        elif action == "edit":
            _require(data, "survey_id")
            builder = _start_edit(request, data["survey_id"])
            request.session.pop(AUTOSAVE_SESSION_KEY, None)
        elif action == "submit":
            survey_service, _, _ = _services(request)
            result = builder.submit(data["target_status"], survey_service)
            _store_builder(request, builder)
            payload = _draft_payload(builder)
            payload.update(success=result.success, survey=result.survey)
            return Response(payload, status=200 if result.success else 400)
    except QuestionsLockedError as e:
        return Response({"success": False, "error": str(e)}, status=409)
    except (IndexError, ValueError) as e:
        return Response({"success": False, "error": str(e)}, status=400)
    except ApiError as e:
        logger.warning(f"Draft action {action} failed: {e}")
        return _api_error_response(e)

    _store_builder(request, builder)
    return Response(_draft_payload(builder))


@role_required(ROLE_ADMIN)
@api_view(["POST"])
def draft_autosave(request):
    """Save the session draft as a DRAFT survey when the interval has elapsed."""
    builder = _load_builder(request)
    saver = DraftAutoSaver.from_session(request.session.get(AUTOSAVE_SESSION_KEY))
    now = timezone.now()
    force = bool(request.data.get("force"))

    if not force and not saver.is_due(now, builder.unsaved_changes, builder.draft.title):
        return Response({"saved": False, "status": saver.status, "autosave": saver.to_session()})

    revision = builder.revision
    saver.begin(revision)
    survey_service, _, _ = _services(request)
    result = builder.submit(builder.draft.status, survey_service)

    # Concurrent saves may have finished while this one ran
    saver = DraftAutoSaver.from_session(_stored_session_value(request, AUTOSAVE_SESSION_KEY))
    if result.success:
        stored = saver.complete(revision, now)
    else:
        saver.fail(revision)
        stored = False

    if stored or not result.success:
        request.session[AUTOSAVE_SESSION_KEY] = saver.to_session()
    if stored:
        _store_builder(request, builder)

    return Response(
        {
            "saved": stored,
            "status": saver.status,
            "errors": result.errors,
            "autosave": saver.to_session(),
        },
        status=200 if result.success else 400,
    )


# -------------------------------------------------------------------- export


@role_required(ROLE_ADMIN)
@api_view(["GET"])
def export_csv(request, survey_id: int, kind: str):
    if kind not in EXPORT_KINDS:
        return Response({"error": f"Unknown export type: {kind}"}, status=404)

    survey_service, response_service, _ = _services(request)
    try:
        survey = survey_service.get_survey(survey_id)
        responses = response_service.get_responses_by_survey(survey_id)
        analytics = (
            survey_service.get_survey_results(survey_id) if kind != "responses" else None
        )
        content, filename = build_export(kind, survey, responses, analytics)
    except ApiError as e:
        logger.warning(f"Export {kind} for survey {survey_id} failed: {e}")
        return _api_error_response(e)
    except ExportError as e:
        return Response({"error": str(e)}, status=404)

    logger.info(f"Exported {kind} CSV for survey {survey_id}")
    return csv_download(content, filename)


# ------------------------------------------------------------------------ AI


TEXT_IMPROVERS = {
    "title": improve_survey_title,
    "description": improve_survey_description,
    "question": improve_question_text,
    "option": improve_option_text,
}


class ImproveTextSerializer(serializers.Serializer):
    text = serializers.CharField()
    type = serializers.ChoiceField(choices=TEXT_TYPES, default="general")
    question_type = serializers.CharField(required=False, allow_blank=True)
    mode = serializers.ChoiceField(
        choices=("improve", "suggestions", "options"), default="improve"
    )
    count = serializers.IntegerField(required=False, min_value=1, max_value=8)
    tone = serializers.CharField(required=False, default="professional")
    preserve_length = serializers.BooleanField(required=False, default=False)


@ratelimit(key="ip", rate="20/m", block=True)
@role_required(ROLE_ADMIN)
@api_view(["POST"])
def improve_text(request):
    serializer = ImproveTextSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({"success": False, "errors": serializer.errors}, status=400)
    data = serializer.validated_data

    try:
        if data["mode"] == "suggestions":
            suggestions = generate_text_suggestions(data["text"], data["type"], data.get("count") or 3)
            return Response({"success": True, "suggestions": suggestions})
        if data["mode"] == "options":
            suggestions = generate_option_suggestions(data["text"], data.get("count") or 4)
            return Response({"success": True, "suggestions": suggestions})
        options = {"tone": data["tone"], "preserve_length": data["preserve_length"]}
        if data["type"] == "question" and data.get("question_type"):
            text = improve_question_phrasing(data["text"], data["question_type"], **options)
        elif data["type"] in TEXT_IMPROVERS:
            text = TEXT_IMPROVERS[data["type"]](data["text"], **options)
        else:
            text = improve_text_phrasing(data["text"], data["type"], **options)
    except TextImprovementError as e:
        return Response({"success": False, "error": str(e)}, status=502)
    return Response({"success": True, "text": text})


# -------------------------------------------------------------- public form


def _form_started_at(request, survey_id: int):
    key = FORM_STARTED_KEY.format(survey_id=survey_id)
    started = request.session.get(key)
    if started:
        return parse_datetime(started)
    now = timezone.now()
    request.session[key] = now.isoformat()
    return now


@api_view(["GET", "POST"])
def take_survey(request, survey_id: int):
    """Public survey form: GET renders state, POST submits answers."""
    session = request.feedback_session
    survey_service = SurveyService(session.api)
    try:
        survey = survey_service.get_public_survey(survey_id)
    except ApiError as e:
        logger.info(f"Public survey {survey_id} unavailable: {e}")
        return Response({"error": get_error_message(e)}, status=e.status or 502)

    form = SurveyForm(survey, started_at=_form_started_at(request, survey_id))
    if request.method == "GET":
        return Response(form.to_dict())

    answers = request.data.get("answers") or {}
    if not isinstance(answers, dict):
        return Response({"error": "Answers must be an object keyed by question id"}, status=400)
    form.set_answers(answers)
    outcome = form.submit(
        survey_service,
        session,
        continue_anonymously=bool(request.data.get("anonymous")),
    )

    body = {"state": outcome.state, "progress": form.progress()}
    if outcome.error:
        body["error"] = outcome.error
    if outcome.choices:
        body["choices"] = list(outcome.choices)
    if outcome.submitted:
        request.session.pop(FORM_STARTED_KEY.format(survey_id=survey_id), None)
        body["completionSeconds"] = outcome.elapsed_seconds
        return Response(body, status=201)

    status = {"closed": 410, "invalid": 400, "auth_required": 401}.get(outcome.state, 502)
    return Response(body, status=status)


# ------------------------------------------------------------ admin list


class SurveyMetadataSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)
    description = serializers.CharField(allow_blank=True)
    status = serializers.CharField()
    end_date = serializers.DateTimeField(required=False, allow_null=True)


@role_required(ROLE_ADMIN)
@api_view(["PATCH", "DELETE"])
def admin_survey_detail(request, survey_id: int):
    survey_service, _, _ = _services(request)
    if request.method == "DELETE":
        try:
            survey_service.delete_survey(survey_id)
        except ApiError as e:
            return _api_error_response(e)
        logger.info(f"Survey {survey_id} deleted")
        return Response(status=204)

    serializer = SurveyMetadataSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({"success": False, "errors": serializer.errors}, status=400)
    data = serializer.validated_data
    errors = validate_survey_metadata(data)
    if errors:
        return Response({"success": False, "errors": errors}, status=400)

    end_date = data.get("end_date")
    try:
        survey = survey_service.update_survey(
            survey_id,
            {
                "title": data["title"],
                "description": data["description"],
                "status": data["status"],
                "endDate": end_date.isoformat() if end_date else None,
            },
        )
    except ApiError as e:
        return _api_error_response(e)
    return Response({"success": True, "survey": survey})


@role_required(ROLE_ADMIN)
@api_view(["GET"])
def admin_analytics(request):
    _, _, analytics_service = _services(request)
    try:
        days = int(request.query_params.get("days", 30))
    except ValueError:
        return Response({"error": "days must be a number"}, status=400)
    try:
        data = {
            "overview": analytics_service.get_dashboard_overview(),
            "trends": analytics_service.get_response_trends(days),
            "performance": analytics_service.get_survey_performance(),
            "recentActivity": analytics_service.get_recent_activity(),
        }
    except ApiError as e:
        return _api_error_response(e)
    return Response(data)


@role_required(ROLE_ADMIN)
@api_view(["GET"])
def admin_responses(request):
    _, response_service, _ = _services(request)
    try:
        return Response({"responses": response_service.get_all_responses()})
    except ApiError as e:
        return _api_error_response(e)


@role_required(ROLE_ADMIN)
@api_view(["GET", "DELETE"])
def admin_response_detail(request, response_id: int):
    _, response_service, _ = _services(request)
    try:
        if request.method == "DELETE":
            response_service.delete_response(response_id)
            return Response(status=204)
        return Response(response_service.get_response(response_id))
    except ApiError as e:
        return _api_error_response(e)


# ---------------------------------------------------------------- respondent


@role_required()
@api_view(["GET"])
def user_dashboard(request):
    user_service = UserService(request.feedback_session.api)
    try:
        return Response(user_service.get_user_dashboard())
    except ApiError as e:
        return _api_error_response(e)


@role_required()
@api_view(["GET"])
def my_response(request, survey_id: int):
    user_service = UserService(request.feedback_session.api)
    try:
        return Response(user_service.get_user_response(survey_id))
    except ApiError as e:
        return _api_error_response(e)
