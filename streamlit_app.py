from typing import Any, Callable, Dict, Optional

import streamlit as st

from vinylplayer.client import API_BASE, ApiError, AuthMirror, RequestGeneration, VinylApiClient
from vinylplayer.crackle import render_crackle_wav
from vinylplayer.logging_config import setup_logging
from vinylplayer.playback import (
    SOURCE_CRACKLE,
    SOURCE_FULL,
    SOURCE_PREVIEW,
    AudioPlaybackError,
    DeadlineScheduler,
    PlaybackController,
)
from vinylplayer.spotify_client import SpotifyFullPlayback
from vinylplayer.tokens import now_ms


PREVIEW_MS = 30000


class StreamlitAudio:
    """Audio element stand-in; the page renders ``st.audio`` from this state.

    ``st.audio`` reports no ended event, so one is synthesized after the
    length of a preview clip.
    """

    def __init__(self, scheduler: DeadlineScheduler):
        self.scheduler = scheduler
        self.on_ended: Callable[[], None] = lambda: None
        self.url: Optional[str] = None
        self.playing = False
        self._timer = None

    def play(self, url: str) -> None:
        self.url = url
        self._start()

    def pause(self) -> None:
        self._cancel()
        self.playing = False

    def resume(self) -> None:
        if not self.url:
            raise AudioPlaybackError("nothing loaded")
        self._start()

    def stop(self) -> None:
        self._cancel()
        self.url = None
        self.playing = False

    def _start(self) -> None:
        self._cancel()
        self.playing = True
        self._timer = self.scheduler.call_later(PREVIEW_MS, self._ended)

    def _ended(self) -> None:
        self._timer = None
        self.playing = False
        self.on_ended()

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class StreamlitCrackle:
    def __init__(self):
        self.active = False

    def start(self) -> None:
        self.active = True

    def stop(self) -> None:
        self.active = False


@st.cache_data
def crackle_loop() -> bytes:
    return render_crackle_wav(seconds=4.0)


def bootstrap_session() -> Dict[str, Any]:
    """Create per-browser objects once and copy the API's auth cookies over."""
    if "api" not in st.session_state:
        api = VinylApiClient(API_BASE)
        # API and UI share a host, so the OAuth cookies are visible here too
        for name, value in st.context.cookies.items():
            if name.startswith("spotify_"):
                api.session.cookies.set(name, value)
        scheduler = DeadlineScheduler(now_ms)
        audio = StreamlitAudio(scheduler)
        st.session_state.update(
            api=api,
            auth=AuthMirror(api),
            scheduler=scheduler,
            audio=audio,
            crackle=StreamlitCrackle(),
            generation=RequestGeneration(),
            artist=None,
            albums=[],
            album=None,
        )
        st.session_state.player = PlaybackController(
            st.session_state.audio,
            st.session_state.crackle,
            scheduler,
            notify=st.toast,
        )
        audio.on_ended = st.session_state.player.on_track_ended
    return st.session_state


def attach_full_playback(state) -> None:
    """Hand whole-track playback to the user's Spotify device while logged in."""
    token = state.auth.status.access_token if state.auth.authenticated else None
    current = state.player.full_playback
    if token is None:
        state.player.full_playback = None
    elif current is None or current.access_token != token:
        state.player.full_playback = SpotifyFullPlayback(token)


def search(state, name: str) -> None:
    ticket = state.generation.next()
    try:
        artist = state.api.search_artist(name)
        albums = state.api.artist_albums(artist["id"])
    except ApiError as exc:
        st.error(exc.message)
        return
    if not state.generation.is_current(ticket):
        return
    state.artist = artist
    # the API returns every release of the group; hide repeated titles
    seen = set()
    state.albums = [a for a in albums if not (a["name"] in seen or seen.add(a["name"]))]
    state.album = None


def load_album(state, album_id: str) -> None:
    ticket = state.generation.next()
    try:
        album = state.api.album(album_id)
    except ApiError as exc:
        st.error(exc.message)
        return
    if state.generation.is_current(ticket):
        state.album = album
        state.player.load_album(album)


@st.fragment(run_every="1s")
def ticker() -> None:
    state = st.session_state
    changed = state.scheduler.poll() > 0
    player = state.player
    if player.state.source == SOURCE_FULL and player.full_playback is not None:
        paused = player.full_playback.is_paused()
        if paused is not None and paused == player.state.spinning:
            player.on_full_playback_state(paused)
            changed = True
    if changed:
        st.rerun()


def render_auth(state) -> None:
    auth = state.auth
    with st.sidebar:
        if auth.authenticated:
            name = (auth.profile or {}).get("display_name") or "Spotify user"
            st.success(f"Logged in as {name}")
            # a full page visit, so the browser drops its cookies as well
            st.markdown(
                f'<a href="{state.api.logout_url()}" target="_self">Log out</a>',
                unsafe_allow_html=True,
            )
        else:
            st.link_button("Login with Spotify", f"{API_BASE}/auth/login")


def render_player(state) -> None:
    player = state.player
    track = player.current_track
    if track is None:
        return
    spinning = "spinning" if player.state.spinning else "stopped"
    st.subheader(f"Now playing: {track.name}")
    st.caption(f"Turntable {spinning}, source: {player.state.source}")

    if player.state.source == SOURCE_PREVIEW and state.audio.playing:
        st.audio(state.audio.url, autoplay=True)
    elif player.state.source == SOURCE_CRACKLE and state.crackle.active:
        st.audio(crackle_loop(), format="audio/wav", autoplay=True, loop=True)

    cols = st.columns(3)
    if cols[0].button("Play / Pause"):
        player.toggle()
        st.rerun()
    if cols[1].button("Next"):
        player.on_track_ended()
        st.rerun()
    if cols[2].button("Stop"):
        player.stop()
        st.rerun()


def main():
    st.set_page_config(page_title="Virtual Vinyl Player", page_icon="💿")
    setup_logging()

    state = bootstrap_session()
    if "auth_synced" not in st.session_state:
        state.auth.sync()
        st.session_state.auth_synced = True
    attach_full_playback(state)

    st.title("Virtual Vinyl Player 💿")
    render_auth(state)

    with st.form("artist_search"):
        name = st.text_input("Artist")
        submitted = st.form_submit_button("Search")
    if submitted:
        if not name.strip():
            st.error("Artist name is required")
        else:
            with st.spinner("Searching..."):
                search(state, name)

    if state.artist:
        st.header(state.artist.get("name", ""))
        for album in state.albums:
            if st.button(album["name"], key=f"album-{album['id']}"):
                with st.spinner("Loading album..."):
                    load_album(state, album["id"])

    if state.album:
        st.subheader(state.album.get("name", ""))
        for index, track in enumerate(state.player.tracks):
            marker = "🎧" if track.preview_url else "💿"
            if st.button(f"{marker} {index + 1}. {track.name}", key=f"track-{index}"):
                state.player.play_index(index)

    render_player(state)
    ticker()


if __name__ == "__main__":
    main()
