from unittest.mock import patch

from django.core.cache import cache
import pytest

from feedbacktool_app.core.api_client import ApiClient
from feedbacktool_app.core.session import TOKEN_KEY

from .fakes import ADMIN_TOKEN, USER_TOKEN, FakeRemoteApi


@pytest.fixture(autouse=True)
def isolated_cache(settings):
    settings.RATELIMIT_ENABLE = False
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def remote_api():
    fake = FakeRemoteApi()
    with patch.object(ApiClient, "request", autospec=True, side_effect=fake):
        yield fake


def _signed_in(client, token):
    session = client.session
    session[TOKEN_KEY] = token
    session.save()
    return client


@pytest.fixture
def admin_client(client, remote_api):
    return _signed_in(client, ADMIN_TOKEN)


@pytest.fixture
def user_client(client, remote_api):
    return _signed_in(client, USER_TOKEN)
