from __future__ import annotations

from functools import wraps

from django.conf import settings
from django.http import JsonResponse
from django.shortcuts import redirect


def access_denied_response(session, required_role: str) -> JsonResponse:
    return JsonResponse(
        {
            "error": "Access Denied",
            "message": "You don't have permission to access this page.",
            "required_role": required_role,
            "your_role": session.user.role if session.user else None,
        },
        status=403,
    )


def role_required(role: str | None = None):
    """Route guard for views.

    Unauthenticated visitors are redirected to LOGIN_URL; authenticated users
    without ``role`` get an access-denied response. Roles are only read from
    a session verified against the API.
    """

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            session = request.feedback_session
            if not session.is_authenticated:
                return redirect(f"{settings.LOGIN_URL}?next={request.path}")
            if role and not session.has_role(role):
                return access_denied_response(session, role)
            return view_func(request, *args, **kwargs)

        return _wrapped

    return decorator
