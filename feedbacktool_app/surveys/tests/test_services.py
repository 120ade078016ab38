from datetime import datetime, timezone as dt_timezone
from unittest.mock import Mock

from feedbacktool_app.surveys.services import (
    AnalyticsService,
    ResponseService,
    SurveyService,
    calculate_stats,
    filter_by_status,
    format_status,
    group_by_status,
)

SURVEYS = [
    {"id": 1, "status": "ACTIVE", "totalResponses": 10, "completionRate": 80, "createdAt": "2024-06-03T10:00:00Z"},
    {"id": 2, "status": "ACTIVE", "totalResponses": 5, "completionRate": 61, "createdAt": "2024-05-20T10:00:00Z"},
    {"id": 3, "status": "DRAFT", "totalResponses": 0, "completionRate": 0, "createdAt": "2024-06-10T10:00:00Z"},
]


class TestSurveyService:
    def test_unwraps_envelope(self):
        api = Mock()
        api.get.return_value = {"success": True, "data": SURVEYS, "message": "ok"}
        assert SurveyService(api).get_all_surveys() == SURVEYS
        api.get.assert_called_once_with("/surveys/admin")

    def test_update_sends_active_flag(self):
        api = Mock()
        api.put.return_value = {"id": 1}
        SurveyService(api).update_survey(1, {"title": "T", "status": "ACTIVE"})
        path, payload = api.put.call_args.args
        assert path == "/surveys/1"
        assert payload["active"] is True

    def test_submit_response_path(self):
        api = Mock()
        api.post.return_value = None
        SurveyService(api).submit_response(9, {"answers": []})
        api.post.assert_called_once_with("/public/surveys/9/responses", {"answers": []})


class TestResponseService:
    def test_list_payload_is_normalised(self):
        api = Mock()
        api.get.return_value = [{"responseId": 1}]
        service = ResponseService(api)
        assert service.get_responses_by_survey(4) == {"responses": [{"responseId": 1}]}
        assert service.has_responses(4)

    def test_no_responses(self):
        api = Mock()
        api.get.return_value = {"success": True, "data": None, "message": "none"}
        assert not ResponseService(api).has_responses(4)


def test_analytics_params():
    api = Mock()
    api.get.return_value = []
    AnalyticsService(api).get_response_trends(7)
    api.get.assert_called_once_with("/analytics/response-trends", params={"days": 7})


def test_filter_by_status():
    assert filter_by_status(SURVEYS, "ALL") == SURVEYS
    assert [s["id"] for s in filter_by_status(SURVEYS, "DRAFT")] == [3]


def test_calculate_stats():
    now = datetime(2024, 6, 15, tzinfo=dt_timezone.utc)
    assert calculate_stats(SURVEYS, now) == {
        "totalSurveys": 3,
        "activeSurveys": 2,
        "totalResponses": 15,
        "avgCompletionRate": 47,
        "newSurveysThisMonth": 2,
    }


def test_calculate_stats_empty():
    assert calculate_stats([])["avgCompletionRate"] == 0


def test_group_by_status_skips_empty_slices():
    assert group_by_status(SURVEYS) == [
        {"name": "Active", "value": 2, "color": "#43e97b"},
        {"name": "Draft", "value": 1, "color": "#feca57"},
    ]


def test_format_status():
    assert format_status("INACTIVE") == "Inactive"
    assert format_status("ARCHIVED") == "ARCHIVED"
