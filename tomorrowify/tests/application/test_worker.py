import logging
from unittest.mock import Mock

import pytest

from tomorrowify.application.worker import (
    RotationWorker, UserResult, STATUS_INVALID_USER, STATUS_NOOP,
    STATUS_PROVIDER_ERROR, STATUS_ROTATED,
)
from tomorrowify.crosscutting.config import TODAY_PLAYLIST_DESCRIPTION, TOMORROW_PLAYLIST_DESCRIPTION
from tomorrowify.crosscutting.metrics import MetricsEmitter
from tomorrowify.domain.entities import RotationOutcome, Track, UserCredential, UserProfile
from tomorrowify.domain.errors import InvalidUserError, ProviderCallError, UserRotationError
from tomorrowify.tests.fakes import FakeAuth, FakeStreamingProvider, RecordingSink, make_tracks


class TestRotationWorker:
    """Tests for one user's full rotation."""

    def setup_method(self):
        self.provider = FakeStreamingProvider(user_id="U")
        self.sink = RecordingSink()
        self.factory = Mock(return_value=self.provider)
        self.worker = RotationWorker(
            auth=FakeAuth(),
            provider_factory=self.factory,
            emitter=MetricsEmitter(self.sink, "TomorrowifyMetrics"),
        )
        self.credential = UserCredential(key="user-1", refresh_token="refresh-1")

    def test_uses_access_token_from_refresh(self):
        self.provider.add_playlist("tomorrow", "Tomorrow")
        self.provider.add_playlist("today", "Today")

        self.worker.rotate(self.credential)

        self.factory.assert_called_once_with("access-refresh-1")

    def test_two_hundred_fifty_track_scenario(self):
        tracks = make_tracks(250)
        uris = [t.uri for t in tracks]
        self.provider.add_playlist("tomorrow", "Tomorrow", tracks)
        self.provider.add_playlist("today", "Today", make_tracks(5, prefix="old"))

        outcome = self.worker.rotate(self.credential)

        assert outcome.moved == 250
        assert self.provider.mutations() == [
            ("replace", "today", uris[:100]),
            ("remove", "tomorrow", uris[:100]),
            ("add", "today", uris[100:200]),
            ("remove", "tomorrow", uris[100:200]),
            ("add", "today", uris[200:]),
            ("remove", "tomorrow", uris[200:]),
        ]
        assert len(self.sink.points) == 1
        namespace, name, value, _, dimensions = self.sink.points[0]
        assert (namespace, name, value) == ("TomorrowifyMetrics", "TomorrowTracks", 250.0)
        assert dimensions == [("User", "U")]
        assert [t.uri for t in self.provider.contents["today"]] == uris
        assert self.provider.contents["tomorrow"] == []

    def test_missing_playlists_are_created_before_any_pagination(self):
        self.worker.rotate(self.credential)

        names = [c[0] for c in self.provider.calls]
        creates = [c for c in self.provider.calls if c[0] == "create"]
        assert creates == [
            ("create", "Tomorrow", TOMORROW_PLAYLIST_DESCRIPTION),
            ("create", "Today", TODAY_PLAYLIST_DESCRIPTION),
        ]
        assert names.index("page") > max(i for i, n in enumerate(names) if n == "create")
        assert self.provider.mutations() == []

    def test_entries_without_id_are_never_moved(self):
        tracks = [
            Track(id="a", uri="spotify:track:a"),
            Track(id=None, uri="spotify:episode:e"),
            Track(id=None, uri=None),
            Track(id="b", uri="spotify:track:b"),
        ]
        self.provider.add_playlist("tomorrow", "Tomorrow", tracks)
        self.provider.add_playlist("today", "Today")

        outcome = self.worker.rotate(self.credential)

        assert outcome.moved == 2
        assert self.provider.mutations() == [
            ("replace", "today", ["spotify:track:a", "spotify:track:b"]),
            ("remove", "tomorrow", ["spotify:track:a", "spotify:track:b"]),
        ]
        assert self.sink.points[0][2] == 2.0

    def test_only_ineligible_entries_is_a_noop(self):
        self.provider.add_playlist("tomorrow", "Tomorrow", [Track(id=None, uri="spotify:local:x")])
        self.provider.add_playlist("today", "Today")

        outcome = self.worker.rotate(self.credential)

        assert outcome.is_noop
        assert self.provider.mutations() == []
        assert self.sink.points == []

    def test_second_run_without_new_tracks_is_a_noop(self):
        self.provider.add_playlist("tomorrow", "Tomorrow", make_tracks(130))
        self.provider.add_playlist("today", "Today")

        first = self.worker.run(self.credential)
        calls_after_first = len(self.provider.mutations())
        second = self.worker.run(self.credential)

        assert first.status == STATUS_ROTATED
        assert second.status == STATUS_NOOP
        assert len(self.provider.mutations()) == calls_after_first
        assert len(self.sink.points) == 1

    def test_missing_profile_raises_invalid_user(self):
        self.provider.profile = None

        with pytest.raises(UserRotationError) as exc_info:
            self.worker.rotate(self.credential)

        assert isinstance(exc_info.value.cause, InvalidUserError)
        assert exc_info.value.user_key == "user-1"
        assert [c[0] for c in self.provider.calls] == ["current_user"]

    def test_refresh_failure_is_wrapped(self):
        worker = RotationWorker(FakeAuth(failing_tokens=["refresh-1"]), self.factory,
                                MetricsEmitter(self.sink))

        with pytest.raises(UserRotationError) as exc_info:
            worker.rotate(self.credential)

        assert isinstance(exc_info.value.cause, ProviderCallError)
        self.factory.assert_not_called()

    def test_unexpected_error_is_wrapped(self):
        self.provider.current_user = Mock(side_effect=KeyError("id"))

        with pytest.raises(UserRotationError) as exc_info:
            self.worker.rotate(self.credential)

        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.user_key == "user-1"

    def test_run_reports_unexpected_error_as_result(self):
        self.provider.current_user = Mock(side_effect=KeyError("id"))

        result = self.worker.run(self.credential)

        assert not result.ok
        assert result.status == STATUS_PROVIDER_ERROR
        assert isinstance(result.error.cause, KeyError)

    def test_playlist_library_is_listed_once(self):
        self.provider.add_playlist("tomorrow", "Tomorrow", make_tracks(3))
        self.provider.add_playlist("today", "Today")

        self.worker.rotate(self.credential)

        names = [c[0] for c in self.provider.calls]
        assert names.count("list_playlists") == 1
        assert names[:3] == ["current_user", "list_playlists", "page"]

    def test_run_reports_invalid_user_result(self):
        self.provider.profile = None

        result = self.worker.run(self.credential)

        assert not result.ok
        assert result.status == STATUS_INVALID_USER
        assert result.user_key == "user-1"

    def test_run_reports_provider_error_after_partial_progress(self):
        self.provider.add_playlist("tomorrow", "Tomorrow", make_tracks(250))
        self.provider.add_playlist("today", "Today")
        self.provider.fail_on = ("add",)

        result = self.worker.run(self.credential)

        assert result.status == STATUS_PROVIDER_ERROR
        assert isinstance(result.error.cause, ProviderCallError)
        # first batch moved, nothing rolled back
        assert len(self.provider.contents["tomorrow"]) == 150
        assert len(self.provider.contents["today"]) == 100

    def test_metrics_failure_is_treated_as_provider_error(self):
        worker = RotationWorker(FakeAuth(), self.factory, MetricsEmitter(RecordingSink(fail=True)))
        self.provider.add_playlist("tomorrow", "Tomorrow", make_tracks(3))
        self.provider.add_playlist("today", "Today")

        result = worker.run(self.credential)

        assert result.status == STATUS_PROVIDER_ERROR
        assert self.provider.mutations() == []

    def test_uses_given_logging_handle(self):
        self.provider.add_playlist("tomorrow", "Tomorrow")
        self.provider.add_playlist("today", "Today")
        log = Mock(spec=logging.LoggerAdapter)

        self.worker.rotate(self.credential, log=log)

        assert log.info.called

    def test_logs_display_name(self):
        self.provider.profile = UserProfile(id="U", display_name="Alice")
        self.provider.add_playlist("tomorrow", "Tomorrow")
        self.provider.add_playlist("today", "Today")
        log = Mock(spec=logging.LoggerAdapter)

        self.worker.rotate(self.credential, log=log)

        messages = [c.args[0] for c in log.info.call_args_list]
        assert "Rotating playlists for Spotify user U (Alice)" in messages


class TestUserResult:
    def test_success_with_moves_is_rotated(self):
        result = UserResult.success("k", RotationOutcome(moved=3, batches=1))
        assert result.ok
        assert result.status == STATUS_ROTATED

    def test_failure_classifies_cause(self):
        error = UserRotationError("k", ProviderCallError("add_items", "boom"))
        assert UserResult.failure(error).status == STATUS_PROVIDER_ERROR
