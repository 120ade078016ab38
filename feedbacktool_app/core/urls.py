from django.urls import path

from . import views

app_name = "core"

urlpatterns = [
    path("health", views.healthcheck, name="healthcheck"),
    path("auth/login", views.login_view, name="login"),
    path("auth/register", views.register_view, name="register"),
    path("auth/logout", views.logout_view, name="logout"),
    path("auth/me", views.me_view, name="me"),
]
