from datetime import datetime, timedelta, timezone as dt_timezone

from feedbacktool_app.surveys.autosave import (
    STATUS_ERROR,
    STATUS_SAVED,
    STATUS_SAVING,
    DraftAutoSaver,
)

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=dt_timezone.utc)


class TestSchedule:
    def test_interval_from_settings(self, settings):
        settings.SURVEY_AUTOSAVE_INTERVAL = 45
        assert DraftAutoSaver().interval == timedelta(seconds=45)

    def test_needs_changes_and_title(self):
        saver = DraftAutoSaver(interval=30)
        assert not saver.is_due(T0, unsaved_changes=False, title="T")
        assert not saver.is_due(T0, unsaved_changes=True, title="  ")
        assert saver.is_due(T0, unsaved_changes=True, title="T")

    def test_waits_for_interval(self):
        saver = DraftAutoSaver(interval=30)
        saver.begin(1)
        saver.complete(1, T0)
        assert not saver.is_due(T0 + timedelta(seconds=29), True, "T")
        assert saver.is_due(T0 + timedelta(seconds=30), True, "T")


class TestFencing:
    def test_status_transitions(self):
        saver = DraftAutoSaver(interval=30)
        saver.begin(3)
        assert saver.status == STATUS_SAVING
        assert saver.complete(3, T0)
        assert saver.status == STATUS_SAVED
        assert saver.saved_revision == 3

    def test_stale_save_is_discarded(self):
        saver = DraftAutoSaver(interval=30)
        saver.begin(4)
        saver.begin(7)
        assert saver.complete(7, T0)
        # The slower, older save finishes last
        assert not saver.complete(4, T0 + timedelta(seconds=1))
        assert saver.saved_revision == 7
        assert saver.last_saved_at == T0

    def test_failure(self):
        saver = DraftAutoSaver(interval=30)
        saver.begin(2)
        saver.fail(2)
        assert saver.status == STATUS_ERROR
        assert saver.pending_revision is None
        assert saver.saved_revision == -1


def test_session_round_trip():
    saver = DraftAutoSaver(interval=30)
    saver.begin(5)
    saver.complete(5, T0)
    restored = DraftAutoSaver.from_session(saver.to_session())
    assert restored.saved_revision == 5
    assert restored.last_saved_at == T0
    assert restored.status == STATUS_SAVED
