from django.urls import include, path

urlpatterns = [
    path("", include("feedbacktool_app.core.urls")),
    path("", include("feedbacktool_app.surveys.urls")),
]
