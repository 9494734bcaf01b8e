from unittest.mock import MagicMock

import pytest
from spotipy.exceptions import SpotifyException

from vinylplayer.playback import SOURCE_FULL, SOURCE_PREVIEW, DeadlineScheduler, PlaybackController
from vinylplayer.spotify_client import SpotifyFullPlayback


TRACK = {"id": "t0", "name": "Zero", "duration_ms": 200000, "preview_url": "https://p/t0", "uri": "spotify:track:t0"}


@pytest.fixture
def user_client():
    """Stand-in for a spotipy.Spotify client built from the user's token."""
    return MagicMock()


@pytest.fixture
def handle(user_client):
    factory = MagicMock(return_value=user_client)
    handle = SpotifyFullPlayback("user-token", client_factory=factory)
    handle.factory = factory
    return handle


def test_play_uri_starts_playback_with_user_token(handle, user_client):
    assert handle.play_uri("spotify:track:t0") is True

    handle.factory.assert_called_with("user-token")
    user_client.start_playback.assert_called_once_with(uris=["spotify:track:t0"])


@pytest.mark.parametrize("status", [403, 404])
def test_play_uri_refused_returns_false(handle, user_client, status):
    user_client.start_playback.side_effect = SpotifyException(status, -1, "Player command failed: Premium required")

    assert handle.play_uri("spotify:track:t0") is False


def test_pause_and_resume(handle, user_client):
    handle.pause()
    handle.resume()

    user_client.pause_playback.assert_called_once_with()
    user_client.start_playback.assert_called_once_with()


def test_pause_failure_is_logged_not_raised(handle, user_client):
    user_client.pause_playback.side_effect = SpotifyException(404, -1, "No active device found")

    handle.pause()


@pytest.mark.parametrize(
    "playback, expected",
    [
        ({"is_playing": True}, False),
        ({"is_playing": False}, True),
        (None, None),
    ],
)
def test_is_paused(handle, user_client, playback, expected):
    user_client.current_playback.return_value = playback

    assert handle.is_paused() is expected


def test_controller_falls_back_to_preview_for_non_premium(handle, user_client, clock):
    user_client.start_playback.side_effect = SpotifyException(403, -1, "Premium required")
    audio = MagicMock()
    notify = MagicMock()
    player = PlaybackController(audio, MagicMock(), DeadlineScheduler(clock), full_playback=handle, notify=notify)
    player.load_album({"tracks": {"items": [TRACK]}})

    assert player.play_index(0) == SOURCE_PREVIEW
    audio.play.assert_called_once_with("https://p/t0")
    notify.assert_called_once_with("Spotify Premium required for full track playback")


def test_controller_delegates_to_device_for_premium(handle, user_client, clock):
    audio = MagicMock()
    player = PlaybackController(audio, MagicMock(), DeadlineScheduler(clock), full_playback=handle)
    player.load_album({"tracks": {"items": [TRACK]}})

    assert player.play_index(0) == SOURCE_FULL
    user_client.start_playback.assert_called_once_with(uris=["spotify:track:t0"])
    audio.play.assert_not_called()
