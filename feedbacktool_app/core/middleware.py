from django.utils.functional import SimpleLazyObject

from .session import SessionStore, SessionTokenStorage


def get_feedback_session(request) -> SessionStore:
    """Return the request's session store, verifying it on first use."""
    store = getattr(request, "_cached_feedback_session", None)
    if store is None:
        store = SessionStore(SessionTokenStorage(request.session))
        store.initialize()
        request._cached_feedback_session = store
    return store


class FeedbackSessionMiddleware:
    """
    Populate request.feedback_session with a verified SessionStore.
    The /auth/me round trip only happens when a view actually touches it.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.feedback_session = SimpleLazyObject(
            lambda: get_feedback_session(request)
        )
        return self.get_response(request)
