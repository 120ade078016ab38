from django.urls import path

from . import views

app_name = "surveys"

urlpatterns = [
    path("dashboard", views.user_dashboard, name="user_dashboard"),
    path("surveys/admin/dashboard", views.admin_dashboard, name="admin_dashboard"),
    path("surveys/admin/analytics", views.admin_analytics, name="admin_analytics"),
    path("surveys/admin/responses", views.admin_responses, name="admin_responses"),
    path(
        "surveys/admin/responses/<int:response_id>",
        views.admin_response_detail,
        name="admin_response_detail",
    ),
    path("surveys/draft/", views.survey_draft, name="draft"),
    path("surveys/draft/autosave", views.draft_autosave, name="draft_autosave"),
    path("surveys/ai/improve", views.improve_text, name="improve_text"),
    path("surveys/<int:survey_id>", views.admin_survey_detail, name="admin_survey_detail"),
    path("surveys/<int:survey_id>/my-response", views.my_response, name="my_response"),
    path(
        "surveys/<int:survey_id>/export/<str:kind>.csv",
        views.export_csv,
        name="export_csv",
    ),
    path("s/<int:survey_id>", views.take_survey, name="take"),
]
