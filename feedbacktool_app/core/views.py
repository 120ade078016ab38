import logging

from django_ratelimit.decorators import ratelimit
from rest_framework import serializers
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .api_client import ApiError, get_error_message

logger = logging.getLogger(__name__)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(trim_whitespace=False)


class RegisterSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, trim_whitespace=False)


def _field_errors(serializer) -> dict:
    return {k: " ".join(str(m) for m in v) for k, v in serializer.errors.items()}


def _auth_response(result, success_status=200) -> Response:
    if result.success:
        return Response(
            {"success": True, "user": result.user.to_dict(), "message": result.message},
            status=success_status,
        )
    return Response(
        {"success": False, "error": result.error, "fields": result.field_errors},
        status=400 if result.field_errors else 401,
    )


@api_view(["GET"])
def healthcheck(request):
    return Response({"status": "ok"})


@ratelimit(key="ip", rate="10/m", block=True)
@api_view(["POST"])
def login_view(request):
    serializer = LoginSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"success": False, "error": "Invalid credentials", "fields": _field_errors(serializer)},
            status=400,
        )
    session = request.feedback_session
    result = session.login(**serializer.validated_data)
    return _auth_response(result)


@ratelimit(key="ip", rate="5/m", block=True)
@api_view(["POST"])
def register_view(request):
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"success": False, "error": "Please correct the highlighted fields", "fields": _field_errors(serializer)},
            status=400,
        )
    session = request.feedback_session
    result = session.register(**serializer.validated_data)
    return _auth_response(result, success_status=201)


@api_view(["POST"])
def logout_view(request):
    request.feedback_session.logout()
    return Response({"success": True, "message": "Logged out successfully"})


@api_view(["GET"])
def me_view(request):
    session = request.feedback_session
    if not session.is_authenticated:
        return Response({"authenticated": False}, status=401)
    user = session.user
    if request.query_params.get("refresh"):
        try:
            user = session.refresh_user()
        except ApiError as e:
            return Response(
                {"authenticated": False, "error": get_error_message(e)}, status=401
            )
    return Response({"authenticated": True, "user": user.to_dict()})
