"""
Service layer over the FeedbackTool REST API.

Views and the builder talk to these services instead of calling the API
client directly, so every endpoint path lives in one place.
"""

from __future__ import annotations

from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from feedbacktool_app.core.api_client import ApiClient, extract_data

from .questions import SurveyStatus

STATUS_CHART_COLORS = {
    SurveyStatus.ACTIVE: "#43e97b",
    SurveyStatus.INACTIVE: "#ff6b6b",
    SurveyStatus.DRAFT: "#feca57",
}


class SurveyService:
    base_url = "/surveys"

    def __init__(self, api: ApiClient):
        self.api = api

    def get_all_surveys(self) -> list[dict[str, Any]]:
        """Admin list with response statistics."""
        return extract_data(self.api.get(f"{self.base_url}/admin")) or []

    def get_public_survey(self, survey_id) -> dict[str, Any]:
        return extract_data(self.api.get(f"/public/surveys/{survey_id}"))

    def get_survey(self, survey_id) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/{survey_id}"))

    def get_survey_results(self, survey_id) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/{survey_id}/results"))

    def create_survey(self, survey_data: dict[str, Any]) -> dict[str, Any]:
        return extract_data(self.api.post(self.base_url, survey_data))

    def update_survey(self, survey_id, survey_data: dict[str, Any]) -> dict[str, Any]:
        # The update endpoint takes an ``active`` flag rather than a status
        payload = dict(survey_data)
        payload["active"] = payload.get("status") == SurveyStatus.ACTIVE
        return extract_data(self.api.put(f"{self.base_url}/{survey_id}", payload))

    def delete_survey(self, survey_id) -> Any:
        return extract_data(self.api.delete(f"{self.base_url}/{survey_id}"))

    def submit_response(self, survey_id, response_data: dict[str, Any]) -> Any:
        return extract_data(
            self.api.post(f"/public/surveys/{survey_id}/responses", response_data)
        )


class ResponseService:
    base_url = "/responses"

    def __init__(self, api: ApiClient):
        self.api = api

    def get_all_responses(self) -> list[dict[str, Any]]:
        return extract_data(self.api.get(f"{self.base_url}/list")) or []

    def get_responses_by_survey(self, survey_id) -> dict[str, Any]:
        data = extract_data(self.api.get(f"{self.base_url}/survey/{survey_id}"))
        if isinstance(data, list):
            return {"responses": data}
        return data or {"responses": []}

    def get_response(self, response_id) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/{response_id}"))

    def delete_response(self, response_id) -> Any:
        return extract_data(self.api.delete(f"{self.base_url}/{response_id}"))

    def has_responses(self, survey_id) -> bool:
        return bool(self.get_responses_by_survey(survey_id).get("responses"))


class UserService:
    base_url = "/users"

    def __init__(self, api: ApiClient):
        self.api = api

    def get_user_dashboard(self) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/dashboard"))

    def get_user_response(self, survey_id) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/responses/survey/{survey_id}"))


class AnalyticsService:
    base_url = "/analytics"

    def __init__(self, api: ApiClient):
        self.api = api

    def get_response_trends(self, days: int = 30) -> Any:
        return extract_data(
            self.api.get(f"{self.base_url}/response-trends", params={"days": days})
        )

    def get_recent_activity(self, limit: int = 50) -> Any:
        return extract_data(
            self.api.get(f"{self.base_url}/recent-activity", params={"limit": limit})
        )

    def get_recent_responses(self, limit: int = 5) -> Any:
        return extract_data(
            self.api.get(f"{self.base_url}/recent-responses", params={"limit": limit})
        )

    def get_dashboard_overview(self) -> dict[str, Any]:
        return extract_data(self.api.get(f"{self.base_url}/overview"))

    def get_survey_performance(self) -> Any:
        return extract_data(self.api.get(f"{self.base_url}/survey-performance"))


def filter_by_status(surveys: list[dict[str, Any]], status: str | None) -> list[dict[str, Any]]:
    if not status or status == "ALL":
        return surveys
    return [s for s in surveys if s.get("status") == status]


def calculate_stats(surveys: list[dict[str, Any]], now=None) -> dict[str, int]:
    now = now or timezone.now()
    total = len(surveys)
    total_responses = sum(s.get("totalResponses") or 0 for s in surveys)
    avg_completion = (
        round(sum(s.get("completionRate") or 0 for s in surveys) / total) if total else 0
    )

    new_this_month = 0
    for survey in surveys:
        created = parse_datetime(survey.get("createdAt") or "")
        if created and created.year == now.year and created.month == now.month:
            new_this_month += 1

    return {
        "totalSurveys": total,
        "activeSurveys": sum(1 for s in surveys if s.get("status") == SurveyStatus.ACTIVE),
        "totalResponses": total_responses,
        "avgCompletionRate": avg_completion,
        "newSurveysThisMonth": new_this_month,
    }


def group_by_status(surveys: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Pie-chart series: one slice per status that has at least one survey."""
    counts: dict[str, int] = {}
    for survey in surveys:
        counts[survey.get("status")] = counts.get(survey.get("status"), 0) + 1
    return [
        {"name": status.label, "value": counts.get(status.value, 0), "color": color}
        for status, color in STATUS_CHART_COLORS.items()
        if counts.get(status.value, 0) > 0
    ]


def format_status(status: str) -> str:
    try:
        return SurveyStatus(status).label
    except ValueError:
        return status
