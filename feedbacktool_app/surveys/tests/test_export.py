from datetime import date

import pytest

from feedbacktool_app.surveys.export import (
    ExportError,
    build_export,
    convert_to_csv,
    csv_download,
    export_filename,
    format_analytics_for_csv,
    format_responses_for_csv,
    format_summary_for_csv,
)

SURVEY = {
    "id": 4,
    "title": "Staff / Survey 2024",
    "status": "ACTIVE",
    "createdAt": "2024-02-03T10:00:00Z",
    "questions": [
        {"id": 1, "type": "TEXT", "questionText": "Name?", "orderNumber": 1},
        {"id": 2, "type": "RATING", "questionText": "Rate us", "orderNumber": 2},
        {"id": 3, "type": "MULTIPLE_CHOICE", "questionText": "Pick", "orderNumber": 3},
    ],
}

RESPONSES = {
    "responses": [
        {
            "responseId": 100,
            "respondentName": "O'Brien, \"Lead\"",
            "respondentEmail": "ob@example.com",
            "isAnonymous": False,
            "submittedAt": "2024-03-01T09:30:00Z",
            "isComplete": True,
            "answers": [
                {"questionId": 1, "answerText": "Pat"},
                {"questionId": 2, "ratingValue": 4},
                {"questionText": "Pick", "answer": ["A", "B"]},
            ],
        },
        {"responseId": None, "isAnonymous": True, "answers": []},
    ]
}


class TestConvert:
    def test_no_rows(self):
        assert convert_to_csv([], ["a"]) == ""

    def test_quotes_commas_quotes_and_newlines(self):
        rows = [{"a": "O'Brien, \"Lead\"", "b": "line1\nline2", "c": None}]
        assert convert_to_csv(rows, ["a", "b", "c"]) == (
            'a,b,c\n"O\'Brien, ""Lead""","line1\nline2",'
        )


class TestResponses:
    def test_headers(self):
        rows, headers = format_responses_for_csv(SURVEY, RESPONSES)
        assert headers[:6] == [
            "Response ID",
            "Respondent Name",
            "Respondent Email",
            "Is Anonymous",
            "Submitted At",
            "Completion Status",
        ]
        assert headers[6:] == ["Q1: Name?", "Q2: Rate us", "Q3: Pick"]
        assert len(rows) == 2

    def test_row_values(self):
        rows, _ = format_responses_for_csv(SURVEY, RESPONSES)
        first, second = rows
        assert first["Q1: Name?"] == "Pat"
        assert first["Q2: Rate us"] == "4/5"
        assert first["Q3: Pick"] == "A; B"
        assert first["Is Anonymous"] == "No"
        assert first["Submitted At"] == "01/03/2024, 09:30:00"
        assert second["Response ID"] == "N/A"
        assert second["Respondent Name"] == "Anonymous"
        assert second["Respondent Email"] == "Not provided"
        assert second["Completion Status"] == "Incomplete"
        assert second["Q1: Name?"] == "No response"

    def test_empty(self):
        assert format_responses_for_csv(SURVEY, {"responses": []}) == ([], [])


def test_analytics_rows():
    analytics = {
        "questionCompletionData": [
            {"question": "Q2", "total": 8, "completion": 80, "averageRating": 4.2, "mostPopularAnswer": "5"},
        ]
    }
    rows, headers = format_analytics_for_csv(SURVEY, analytics)
    assert headers[0] == "Question Number"
    assert rows[1]["Average Rating"] == 4.2
    assert rows[1]["Completion Rate (%)"] == 80
    assert rows[0]["Average Rating"] == "Not applicable"
    assert rows[0]["Most Popular Answer"] == "N/A"


def test_summary_rows():
    analytics = {"respondentAnalysis": {"authenticatedUsers": 1, "anonymousUsers": 1}}
    rows, headers = format_summary_for_csv(SURVEY, RESPONSES, analytics)
    assert headers == ["Metric", "Value", "Description"]
    values = {r["Metric"]: r["Value"] for r in rows}
    assert values["Survey Title"] == "Staff / Survey 2024"
    assert values["Created Date"] == "03/02/2024"
    assert values["Total Questions"] == 3
    assert values["Total Responses"] == 2
    assert values["Authentication Rate"] == "50%"


def test_filename():
    assert export_filename("Staff / Survey 2024", "responses", date(2024, 6, 1)) == (
        "Staff___Survey_2024_responses_2024-06-01.csv"
    )


def test_build_export_without_responses():
    with pytest.raises(ExportError):
        build_export("responses", SURVEY, {"responses": []})


def test_download_headers():
    resp = csv_download("a,b\n1,2", "x.csv")
    assert resp["Content-Type"].startswith("text/csv")
    assert resp["Content-Disposition"] == 'attachment; filename="x.csv"'
