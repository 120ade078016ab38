from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import Mock

import pytest

from feedbacktool_app.core.api_client import ApiError
from feedbacktool_app.surveys.responses import (
    CLOSED_MESSAGE,
    OUTCOME_AUTH_REQUIRED,
    OUTCOME_CLOSED,
    OUTCOME_ERROR,
    OUTCOME_INVALID,
    OUTCOME_SUBMITTED,
    SurveyForm,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=dt_timezone.utc)


def make_survey(**overrides):
    survey = {
        "id": 3,
        "title": "Lunch",
        "description": "How was lunch?",
        "status": "ACTIVE",
        "isPrivate": False,
        "endDate": None,
        "questions": [
            {"id": 11, "type": "RATING", "questionText": "Rate the food", "required": True, "orderNumber": 2},
            {"id": 10, "type": "TEXT", "questionText": "Your name", "required": True, "orderNumber": 1},
            {"id": 12, "type": "MULTIPLE_CHOICE", "questionText": "Dessert?", "required": False, "orderNumber": 3},
        ],
    }
    survey.update(overrides)
    return survey


@pytest.fixture
def form():
    return SurveyForm(make_survey(), started_at=NOW - timedelta(seconds=95))


class TestFormState:
    def test_questions_sorted_and_answers_blank(self, form):
        assert [q["id"] for q in form.questions] == [10, 11, 12]
        assert form.answers == {"10": "", "11": "", "12": ""}

    def test_progress(self, form):
        assert form.progress() == 0
        form.set_answer(10, "Ada")
        assert form.progress() == 33
        form.set_answer(11, 4)
        assert form.progress() == 67

    @pytest.mark.parametrize("answered,expected", [(1, 13), (5, 63), (7, 88), (8, 100)])
    def test_progress_rounds_halves_up(self, answered, expected):
        questions = [
            {"id": i, "type": "TEXT", "questionText": f"Q{i}", "orderNumber": i} for i in range(1, 9)
        ]
        form = SurveyForm(make_survey(questions=questions), started_at=NOW)
        for question_id in range(1, answered + 1):
            form.set_answer(question_id, "yes")
        assert form.progress() == expected

    def test_unknown_question(self, form):
        with pytest.raises(KeyError):
            form.set_answer(99, "x")

    def test_required_error_lists_texts(self, form):
        assert form.required_error() == (
            "Please answer all required questions: Your name, Rate the food"
        )
        form.set_answers({"10": "Ada", "11": "3"})
        assert form.required_error() == ""


class TestAvailability:
    def test_inactive_is_closed(self):
        form = SurveyForm(make_survey(status="INACTIVE"))
        assert not form.is_available(NOW)
        assert form.closed_message() == CLOSED_MESSAGE

    def test_past_end_date_is_closed(self):
        form = SurveyForm(make_survey(endDate="2024-05-31T23:59:59Z"))
        assert not form.is_available(NOW)

    def test_future_end_date_is_open(self):
        form = SurveyForm(make_survey(endDate="2024-06-02T00:00:00Z"))
        assert form.is_available(NOW)


class TestEncoding:
    def test_rating_and_text_fields(self, form):
        form.set_answers({"10": "Ada", "11": "4", "12": "Cake"})
        assert form.encode_answers() == [
            {"questionId": 10, "answerValue": "Ada"},
            {"questionId": 11, "ratingValue": 4},
            {"questionId": 12, "answerValue": "Cake"},
        ]

    def test_blank_answers_skipped(self, form):
        form.set_answers({"10": "  ", "11": 0})
        assert form.encode_answers() == [{"questionId": 11, "ratingValue": 0}]

    @pytest.mark.parametrize("value", [6, -1, "great"])
    def test_out_of_range_rating_dropped(self, form, value):
        form.set_answers({"10": "Ada", "11": value})
        assert form.encode_answers() == [{"questionId": 10, "answerValue": "Ada"}]


class TestSubmit:
    def session(self, authenticated=False):
        return Mock(is_authenticated=authenticated)

    def test_closed(self):
        service = Mock()
        form = SurveyForm(make_survey(status="INACTIVE"))
        outcome = form.submit(service, self.session(), now=NOW)
        assert outcome.state == OUTCOME_CLOSED
        service.submit_response.assert_not_called()

    def test_missing_required(self, form):
        outcome = form.submit(Mock(), self.session(), now=NOW)
        assert outcome.state == OUTCOME_INVALID
        assert "Your name" in outcome.error

    def test_private_survey_offers_choices(self):
        form = SurveyForm(make_survey(isPrivate=True))
        form.set_answers({"10": "Ada", "11": 5})
        outcome = form.submit(Mock(), self.session(), now=NOW)
        assert outcome.state == OUTCOME_AUTH_REQUIRED
        assert outcome.choices == ("login", "signup", "anonymous")

    def test_private_survey_anonymous_submission(self):
        service = Mock()
        form = SurveyForm(make_survey(isPrivate=True))
        form.set_answers({"10": "Ada", "11": 5})
        outcome = form.submit(service, self.session(), continue_anonymously=True, now=NOW)
        assert outcome.submitted
        service.submit_response.assert_called_once()

    def test_submitted(self, form):
        service = Mock()
        service.submit_response.return_value = {"responseId": 1}
        form.set_answers({"10": "Ada", "11": 5})
        outcome = form.submit(service, self.session(), now=NOW)
        assert outcome.state == OUTCOME_SUBMITTED
        assert outcome.elapsed_seconds == 95
        service.submit_response.assert_called_once_with(
            3,
            {"answers": [{"questionId": 10, "answerValue": "Ada"}, {"questionId": 11, "ratingValue": 5}]},
        )

    def test_api_error(self, form):
        service = Mock()
        service.submit_response.side_effect = ApiError("Survey is closed", status=400)
        form.set_answers({"10": "Ada", "11": 5})
        outcome = form.submit(service, self.session(), now=NOW)
        assert outcome.state == OUTCOME_ERROR
        assert outcome.error == "Survey is closed"


def test_to_dict_hides_questions_when_closed():
    form = SurveyForm(make_survey(status="INACTIVE"), started_at=NOW)
    data = form.to_dict(NOW)
    assert data["available"] is False
    assert data["closedMessage"] == CLOSED_MESSAGE
    assert "questions" not in data
