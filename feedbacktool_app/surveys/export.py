"""
CSV export of survey responses and analytics.

Three table shapes share one encoder and one download helper:

- raw responses: metadata columns plus one ``Q<n>: <text>`` column per question
- per-question analytics summary
- whole-survey Metric/Value/Description summary
"""

from __future__ import annotations

import csv
from datetime import date
import io
import re
from typing import Any, Iterable

from django.http import HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime

NO_RESPONSE = "No response"

RESPONSE_HEADERS = [
    "Response ID",
    "Respondent Name",
    "Respondent Email",
    "Is Anonymous",
    "Submitted At",
    "Completion Status",
]

ANALYTICS_HEADERS = [
    "Question Number",
    "Question Text",
    "Question Type",
    "Total Responses",
    "Completion Rate (%)",
    "Most Popular Answer",
    "Average Rating",
    "Response Count",
]

SUMMARY_HEADERS = ["Metric", "Value", "Description"]


class ExportError(Exception):
    """Raised when there is nothing to export."""


def convert_to_csv(rows: list[dict[str, Any]], headers: list[str]) -> str:
    """Render rows as CSV. Values with commas, quotes or newlines are quoted."""
    if not rows:
        return ""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])
    return output.getvalue().rstrip("\n")


def _format_timestamp(value: Any) -> str:
    if not value:
        return "N/A"
    parsed = parse_datetime(value) if isinstance(value, str) else value
    if parsed is None:
        return str(value)
    return parsed.strftime("%d/%m/%Y, %H:%M:%S")


def _question_header(question: dict[str, Any], index: int) -> str:
    number = question.get("orderNumber") or index + 1
    text = question.get("questionText") or f"Question {number}"
    return f"Q{number}: {text}"


def _find_answer(response: dict[str, Any], question: dict[str, Any]) -> dict[str, Any] | None:
    for answer in response.get("answers") or []:
        if answer.get("questionId") == question.get("id"):
            return answer
        if question.get("questionText") and answer.get("questionText") == question.get("questionText"):
            return answer
    return None


def _answer_text(answer: dict[str, Any], question: dict[str, Any]) -> Any:
    value = answer.get("answerText")
    if value in (None, ""):
        value = answer.get("answer")
    if value in (None, ""):
        value = answer.get("answerValue")
    if value in (None, "") and answer.get("ratingValue") is not None:
        value = answer.get("ratingValue")

    if isinstance(value, (list, tuple)):
        return "; ".join(str(v) for v in value)
    if question.get("type") == "RATING" and isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"{value}/5"
    return "" if value is None else value


def format_responses_for_csv(
    survey: dict[str, Any] | None, responses_data: dict[str, Any] | None
) -> tuple[list[dict[str, Any]], list[str]]:
    if not survey or not responses_data or not responses_data.get("responses"):
        return [], []

    questions = survey.get("questions") or []
    headers = list(RESPONSE_HEADERS)
    question_headers = [_question_header(q, i) for i, q in enumerate(questions)]
    headers.extend(question_headers)

    rows = []
    for response in responses_data["responses"]:
        row: dict[str, Any] = {
            "Response ID": response.get("responseId") or "N/A",
            "Respondent Name": response.get("respondentName") or "Anonymous",
            "Respondent Email": response.get("respondentEmail") or "Not provided",
            "Is Anonymous": "Yes" if response.get("isAnonymous") else "No",
            "Submitted At": _format_timestamp(response.get("submittedAt")),
            "Completion Status": "Complete" if response.get("isComplete") else "Incomplete",
        }
        for question, header in zip(questions, question_headers):
            answer = _find_answer(response, question)
            row[header] = _answer_text(answer, question) if answer else NO_RESPONSE
        rows.append(row)

    return rows, headers


def format_analytics_for_csv(
    survey: dict[str, Any] | None, analytics: dict[str, Any] | None
) -> tuple[list[dict[str, Any]], list[str]]:
    if not survey or not analytics:
        return [], []

    completion = {
        item.get("question"): item for item in analytics.get("questionCompletionData") or []
    }
    rows = []
    for index, question in enumerate(survey.get("questions") or []):
        number = question.get("orderNumber") or index + 1
        stats = completion.get(f"Q{number}") or {}
        rows.append(
            {
                "Question Number": number,
                "Question Text": question.get("questionText") or "N/A",
                "Question Type": question.get("type") or "N/A",
                "Total Responses": stats.get("total", 0),
                "Completion Rate (%)": stats.get("completion", 0),
                "Most Popular Answer": stats.get("mostPopularAnswer") or "N/A",
                "Average Rating": (
                    stats.get("averageRating") or "N/A"
                    if question.get("type") == "RATING"
                    else "Not applicable"
                ),
                "Response Count": stats.get("total", 0),
            }
        )
    return rows, list(ANALYTICS_HEADERS)


def format_summary_for_csv(
    survey: dict[str, Any] | None,
    responses_data: dict[str, Any] | None,
    analytics: dict[str, Any] | None,
) -> tuple[list[dict[str, Any]], list[str]]:
    survey = survey or {}
    respondents = (analytics or {}).get("respondentAnalysis") or {}
    total_responses = len((responses_data or {}).get("responses") or [])
    authenticated = respondents.get("authenticatedUsers") or 0
    anonymous = respondents.get("anonymousUsers") or 0
    created = parse_datetime(survey.get("createdAt") or "")
    rate = f"{round(authenticated / total_responses * 100)}%" if total_responses else "0%"

    rows = [
        ("Survey Title", survey.get("title") or "N/A", "Title of the survey"),
        ("Survey Status", survey.get("status") or "N/A", "Current status of the survey"),
        (
            "Created Date",
            created.strftime("%d/%m/%Y") if created else "N/A",
            "Date when survey was created",
        ),
        ("Total Questions", len(survey.get("questions") or []), "Number of questions in the survey"),
        ("Total Responses", total_responses, "Total number of responses received"),
        ("Authenticated Users", authenticated, "Number of responses from authenticated users"),
        ("Anonymous Users", anonymous, "Number of responses from anonymous users"),
        ("Authentication Rate", rate, "Percentage of authenticated responses"),
    ]
    return [dict(zip(SUMMARY_HEADERS, r)) for r in rows], list(SUMMARY_HEADERS)


def export_filename(title: str, kind: str, today: date | None = None) -> str:
    today = today or timezone.localdate()
    safe_title = re.sub(r"[^a-z0-9]", "_", title or "Survey", flags=re.IGNORECASE)
    return f"{safe_title}_{kind}_{today.isoformat()}.csv"


def csv_download(content: str, filename: str) -> HttpResponse:
    resp = HttpResponse(content, content_type="text/csv; charset=utf-8")
    resp["Content-Disposition"] = f'attachment; filename="{filename}"'
    return resp


def build_export(
    kind: str,
    survey: dict[str, Any],
    responses_data: dict[str, Any] | None = None,
    analytics: dict[str, Any] | None = None,
) -> tuple[str, str]:
    """Return (csv content, filename) for one of the three export kinds."""
    if kind == "responses":
        rows, headers = format_responses_for_csv(survey, responses_data)
        if not rows:
            raise ExportError("No data to export")
    elif kind == "analytics":
        rows, headers = format_analytics_for_csv(survey, analytics)
        if not rows:
            raise ExportError("No analytics data to export")
    elif kind == "summary":
        rows, headers = format_summary_for_csv(survey, responses_data, analytics)
    else:
        raise ValueError(f"Unknown export kind: {kind}")
    return convert_to_csv(rows, headers), export_filename(survey.get("title"), kind)


EXPORT_KINDS: Iterable[str] = ("responses", "analytics", "summary")
