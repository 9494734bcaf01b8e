"""Client-side playback decisions and turntable state.

For each track the controller picks one audio source, in this order:

1. an authenticated full-playback handle, played by URI
2. the track's 30s ``preview_url`` on the plain audio element
3. a synthesized vinyl crackle for the track's nominal duration

Errors from (1) or the audio element degrade to the next option with a
transient notification; they are never surfaced as hard failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from vinylplayer.models import Track


logger = logging.getLogger(__name__)

DEFAULT_TRACK_DURATION_MS = 180000

SOURCE_FULL = "full"
SOURCE_PREVIEW = "preview"
SOURCE_CRACKLE = "crackle"


class AudioPlaybackError(Exception):
    pass


class AudioElement(Protocol):
    def play(self, url: str) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...


class CrackleSource(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class FullPlaybackHandle(Protocol):
    """Authenticated player, such as ``spotify_client.SpotifyFullPlayback``."""

    def play_uri(self, uri: str) -> bool: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class _Deadline:
    def __init__(self, due_ms: int, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class DeadlineScheduler:
    """Timers fired by polling, so a UI loop (or a test) controls time."""

    def __init__(self, clock: Callable[[], int]):
        self._clock = clock
        self._pending: List[_Deadline] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> _Deadline:
        deadline = _Deadline(self._clock() + delay_ms, callback)
        self._pending.append(deadline)
        return deadline

    @property
    def pending(self) -> int:
        return sum(1 for d in self._pending if not d.cancelled)

    def poll(self) -> int:
        """Run every due callback; return how many fired."""
        now = self._clock()
        due = [d for d in self._pending if not d.cancelled and d.due_ms <= now]
        self._pending = [d for d in self._pending if not d.cancelled and d.due_ms > now]
        fired = 0
        for deadline in due:
            # an earlier callback in this batch may have cancelled it
            if deadline.cancelled:
                continue
            deadline.callback()
            fired += 1
        return fired


@dataclass
class TurntableState:
    spinning: bool = False
    tonearm_down: bool = False
    current_index: Optional[int] = None
    source: Optional[str] = None


def track_from_item(item: dict) -> Track:
    return Track(**{k: v for k, v in item.items() if k in Track.model_fields and v is not None})


def choose_source(track: Track, full_playback_available: bool) -> str:
    if full_playback_available and track.uri:
        return SOURCE_FULL
    if track.preview_url:
        return SOURCE_PREVIEW
    return SOURCE_CRACKLE


class PlaybackController:
    def __init__(
        self,
        audio: AudioElement,
        crackle: CrackleSource,
        scheduler: Scheduler,
        full_playback: Optional[FullPlaybackHandle] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.audio = audio
        self.crackle = crackle
        self.scheduler = scheduler
        self.full_playback = full_playback
        self._notify = notify or (lambda message: logger.info("Notification: %s", message))
        self.state = TurntableState()
        self.tracks: List[Track] = []
        self._crackle_timer: Optional[TimerHandle] = None

    def load_album(self, album: dict) -> List[Track]:
        """Make ``album`` the current album; stops whatever was playing."""
        self.stop()
        items = ((album or {}).get("tracks") or {}).get("items") or []
        self.tracks = [track_from_item(item) for item in items if item]
        return self.tracks

    @property
    def current_track(self) -> Optional[Track]:
        if self.state.current_index is None:
            return None
        return self.tracks[self.state.current_index]

    def play_index(self, index: int) -> str:
        if not 0 <= index < len(self.tracks):
            raise IndexError(f"no track at position {index}")
        self._halt_sources()
        self.state.current_index = index
        track = self.tracks[index]

        source = choose_source(track, self.full_playback is not None)
        if source == SOURCE_FULL:
            if self._play_full(track):
                # spin state follows the handle's own events
                self.state.source = SOURCE_FULL
                return SOURCE_FULL
            source = SOURCE_PREVIEW if track.preview_url else SOURCE_CRACKLE

        if source == SOURCE_PREVIEW:
            try:
                self.audio.play(track.preview_url)
            except AudioPlaybackError as exc:
                logger.warning("Preview playback error for %s: %s", track.id, exc)
                self._notify("Preview unavailable, playing vinyl sound instead")
                return self._play_crackle(track)
            self.state.source = SOURCE_PREVIEW
            self._spin()
            return SOURCE_PREVIEW

        return self._play_crackle(track)

    def on_audio_error(self, error: Exception) -> None:
        """Audio element reported a failure after playback started."""
        track = self.current_track
        if track is None or self.state.source != SOURCE_PREVIEW:
            return
        logger.warning("Audio element error for %s: %s", track.id, error)
        self._notify("Preview unavailable, playing vinyl sound instead")
        self.audio.stop()
        self._play_crackle(track)

    def on_track_ended(self) -> None:
        if self.state.current_index is None:
            return
        next_index = self.state.current_index + 1
        if next_index >= len(self.tracks):
            self.stop()
            return
        self.play_index(next_index)

    def on_full_playback_state(self, paused: bool) -> None:
        if self.state.source != SOURCE_FULL:
            return
        if paused:
            self.state.spinning = False
        else:
            self._spin()

    def pause(self) -> None:
        if self.state.source == SOURCE_FULL and self.full_playback is not None:
            self.full_playback.pause()
        elif self.state.source == SOURCE_PREVIEW:
            self.audio.pause()
        elif self.state.source == SOURCE_CRACKLE:
            self._cancel_crackle_timer()
            self.crackle.stop()
        self.state.spinning = False

    def resume(self) -> None:
        if self.state.source == SOURCE_FULL and self.full_playback is not None:
            self.full_playback.resume()
            self._spin()
        elif self.state.source == SOURCE_PREVIEW:
            try:
                self.audio.resume()
            except AudioPlaybackError as exc:
                logger.warning("Failed to resume audio playback: %s", exc)
                self._play_crackle(self.current_track)
                return
            self._spin()
        elif self.state.source == SOURCE_CRACKLE:
            self._play_crackle(self.current_track)
        elif self.tracks:
            self.play_index(self.state.current_index or 0)

    def toggle(self) -> None:
        if self.state.spinning:
            self.pause()
        else:
            self.resume()

    def stop(self) -> None:
        self._halt_sources()
        self.state = TurntableState()

    def _play_full(self, track: Track) -> bool:
        try:
            started = self.full_playback.play_uri(track.uri)
        except AudioPlaybackError as exc:
            logger.warning("Full playback failed for %s: %s", track.uri, exc)
            started = False
        if not started:
            self._notify("Spotify Premium required for full track playback")
        return started

    def _play_crackle(self, track: Optional[Track]) -> str:
        self._cancel_crackle_timer()
        self.crackle.start()
        self.state.source = SOURCE_CRACKLE
        self._spin()
        duration_ms = (track.duration_ms if track else None) or DEFAULT_TRACK_DURATION_MS
        self._crackle_timer = self.scheduler.call_later(duration_ms, self._crackle_elapsed)
        return SOURCE_CRACKLE

    def _crackle_elapsed(self) -> None:
        self._crackle_timer = None
        self.crackle.stop()
        self.on_track_ended()

    def _cancel_crackle_timer(self) -> None:
        if self._crackle_timer is not None:
            self._crackle_timer.cancel()
            self._crackle_timer = None

    def _halt_sources(self) -> None:
        self._cancel_crackle_timer()
        if self.state.source == SOURCE_PREVIEW:
            self.audio.stop()
        elif self.state.source == SOURCE_CRACKLE:
            self.crackle.stop()
        elif self.state.source == SOURCE_FULL and self.full_playback is not None:
            self.full_playback.pause()

    def _spin(self) -> None:
        self.state.spinning = True
        self.state.tonearm_down = True
