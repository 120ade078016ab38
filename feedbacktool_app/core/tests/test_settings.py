import importlib
import sys

from django.core.exceptions import ImproperlyConfigured
import pytest

from feedbacktool_app import settings as settings_module


@pytest.fixture
def outside_pytest(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delitem(sys.modules, "pytest")


def test_secret_key_required_without_debug(outside_pytest, monkeypatch):
    monkeypatch.setenv("DEBUG", "False")
    with pytest.raises(ImproperlyConfigured):
        importlib.reload(settings_module)


def test_debug_falls_back_to_generated_key(outside_pytest, monkeypatch):
    monkeypatch.setenv("DEBUG", "True")
    reloaded = importlib.reload(settings_module)
    assert len(reloaded.SECRET_KEY) == 64


def test_configured_key_is_used(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "shared-between-workers")
    monkeypatch.setenv("DEBUG", "False")
    assert importlib.reload(settings_module).SECRET_KEY == "shared-between-workers"
