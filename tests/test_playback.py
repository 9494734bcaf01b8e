from unittest.mock import MagicMock

import pytest

from vinylplayer.models import Track
from vinylplayer.playback import (
    DEFAULT_TRACK_DURATION_MS,
    SOURCE_CRACKLE,
    SOURCE_FULL,
    SOURCE_PREVIEW,
    AudioPlaybackError,
    DeadlineScheduler,
    PlaybackController,
    choose_source,
)


ALBUM = {
    "id": "a1",
    "name": "Side A",
    "tracks": {
        "items": [
            {"id": "t0", "name": "Zero", "duration_ms": 200000, "preview_url": "https://p/t0", "uri": "spotify:track:t0"},
            {"id": "t1", "name": "One", "duration_ms": 150000, "preview_url": None, "uri": "spotify:track:t1"},
            {"id": "t2", "name": "Two", "duration_ms": 210000, "preview_url": "https://p/t2", "uri": "spotify:track:t2"},
        ]
    },
}


@pytest.fixture
def scheduler(clock):
    return DeadlineScheduler(clock)


@pytest.fixture
def audio():
    return MagicMock()


@pytest.fixture
def crackle():
    return MagicMock()


@pytest.fixture
def notify():
    return MagicMock()


@pytest.fixture
def player(audio, crackle, scheduler, notify):
    controller = PlaybackController(audio, crackle, scheduler, notify=notify)
    controller.load_album(ALBUM)
    return controller


class TestChooseSource:
    def test_full_playback_wins_when_available(self):
        assert choose_source(Track(name="x", uri="spotify:track:x", preview_url="https://p/x"), True) == SOURCE_FULL

    def test_preview_without_full_playback(self):
        assert choose_source(Track(name="x", uri="spotify:track:x", preview_url="https://p/x"), False) == SOURCE_PREVIEW

    def test_crackle_when_nothing_playable(self):
        assert choose_source(Track(name="x"), False) == SOURCE_CRACKLE


def test_load_album_reads_track_list(player):
    assert [t.id for t in player.tracks] == ["t0", "t1", "t2"]
    assert player.tracks[1].preview_url is None


def test_preview_track_streams_url(player, audio):
    assert player.play_index(0) == SOURCE_PREVIEW

    audio.play.assert_called_once_with("https://p/t0")
    assert player.state.spinning
    assert player.state.tonearm_down


def test_missing_preview_plays_crackle_then_advances(player, audio, crackle, scheduler, clock):
    assert player.play_index(1) == SOURCE_CRACKLE
    crackle.start.assert_called_once()
    audio.play.assert_not_called()

    clock.advance(150000 - 1)
    assert scheduler.poll() == 0
    assert player.state.current_index == 1

    clock.advance(1)
    assert scheduler.poll() == 1

    assert player.state.current_index == 2
    assert player.state.source == SOURCE_PREVIEW
    audio.play.assert_called_once_with("https://p/t2")
    crackle.stop.assert_called()


def test_crackle_uses_default_duration(audio, crackle, scheduler, clock):
    player = PlaybackController(audio, crackle, scheduler)
    player.load_album({"tracks": {"items": [{"id": "x", "name": "No length"}, {"id": "y", "name": "Next", "preview_url": "https://p/y"}]}})

    player.play_index(0)
    clock.advance(DEFAULT_TRACK_DURATION_MS - 1)
    scheduler.poll()
    assert player.state.current_index == 0

    clock.advance(1)
    scheduler.poll()
    assert player.state.current_index == 1


def test_past_last_track_stops_and_resets(player, audio, crackle, scheduler, clock):
    player.play_index(2)
    player.on_track_ended()

    assert player.state.current_index is None
    assert not player.state.spinning
    assert not player.state.tonearm_down
    audio.stop.assert_called()


def test_user_action_cancels_pending_crackle_timer(player, scheduler, clock):
    player.play_index(1)
    player.play_index(0)

    assert scheduler.pending == 0
    clock.advance(DEFAULT_TRACK_DURATION_MS)
    assert scheduler.poll() == 0
    assert player.state.current_index == 0


def test_audio_element_failure_falls_back_to_crackle(player, audio, crackle, notify):
    audio.play.side_effect = AudioPlaybackError("NotAllowedError")

    assert player.play_index(0) == SOURCE_CRACKLE

    crackle.start.assert_called_once()
    notify.assert_called_once()


def test_late_audio_error_falls_back_to_crackle(player, audio, crackle, notify):
    player.play_index(0)
    player.on_audio_error(RuntimeError("network"))

    assert player.state.source == SOURCE_CRACKLE
    audio.stop.assert_called_once()
    crackle.start.assert_called_once()
    notify.assert_called_once()


class TestFullPlayback:
    def test_delegates_by_uri_and_follows_handle_events(self, audio, crackle, scheduler):
        handle = MagicMock()
        handle.play_uri.return_value = True
        player = PlaybackController(audio, crackle, scheduler, full_playback=handle)
        player.load_album(ALBUM)

        assert player.play_index(1) == SOURCE_FULL
        handle.play_uri.assert_called_once_with("spotify:track:t1")
        assert not player.state.spinning

        player.on_full_playback_state(paused=False)
        assert player.state.spinning
        player.on_full_playback_state(paused=True)
        assert not player.state.spinning
        crackle.start.assert_not_called()

    def test_refused_delegate_falls_back_to_preview(self, audio, crackle, scheduler, notify):
        handle = MagicMock()
        handle.play_uri.return_value = False
        player = PlaybackController(audio, crackle, scheduler, full_playback=handle, notify=notify)
        player.load_album(ALBUM)

        assert player.play_index(0) == SOURCE_PREVIEW
        audio.play.assert_called_once_with("https://p/t0")
        notify.assert_called_once_with("Spotify Premium required for full track playback")


def test_toggle_pauses_and_resumes_preview(player, audio):
    player.play_index(0)

    player.toggle()
    audio.pause.assert_called_once()
    assert not player.state.spinning

    player.toggle()
    audio.resume.assert_called_once()
    assert player.state.spinning


def test_pausing_crackle_cancels_auto_advance(player, crackle, scheduler, clock):
    player.play_index(1)
    player.pause()

    clock.advance(DEFAULT_TRACK_DURATION_MS)
    assert scheduler.poll() == 0
    assert player.state.current_index == 1
    crackle.stop.assert_called()


def test_play_index_out_of_range(player):
    with pytest.raises(IndexError):
        player.play_index(3)


def test_deadline_cancelled_by_earlier_callback_does_not_fire(scheduler, clock):
    later = MagicMock()
    handles = {}
    handles["first"] = scheduler.call_later(100, lambda: handles["second"].cancel())
    handles["second"] = scheduler.call_later(200, later)

    clock.advance(500)

    assert scheduler.poll() == 1
    later.assert_not_called()
    assert scheduler.pending == 0


def test_toggle_resumes_paused_crackle(player, crackle, scheduler):
    player.play_index(1)
    player.toggle()
    assert not player.state.spinning
    assert scheduler.pending == 0

    player.toggle()

    assert player.state.spinning
    assert crackle.start.call_count == 2
    assert scheduler.pending == 1
