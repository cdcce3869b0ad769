"""Playback transfer between environments."""

import pytest

from homehub.core.models import Device, Track, UserQueue
from homehub.core.transfer import (HARD, QUEUE, TransferEngine,
                                   build_uri_list, find_track_position)
from homehub.errors import APIError, TransferError

from conftest import playing_snapshot, token_for


@pytest.fixture
def engine():
    return TransferEngine(("librespot", "iPhone"))


@pytest.fixture
def accounts(fake_spotify, home_env, main_env):
    """Both accounts online: librespot at home, iPhone + MacBook on main."""
    fake_spotify.devices[token_for(home_env)] = [
        Device(name="librespot", id="lib-1", supports_volume=True, volume_percent=35),
    ]
    fake_spotify.devices[token_for(main_env)] = [
        Device(name="iPhone", id="phone-1", supports_volume=False),
        Device(name="MacBook Air de Richard", id="mac-1", supports_volume=True, volume_percent=70),
    ]
    return home_env, main_env


class TestStrategy:
    def test_hard_transfer_destinations(self, engine):
        assert engine.strategy_for("librespot") == HARD
        assert engine.strategy_for("iPhone") == HARD
        assert engine.strategy_for("MacBook Air de Richard") == QUEUE

    def test_uri_list_puts_current_track_first_and_skips_blanks(self):
        queue = UserQueue(
            currently_playing=Track(name="now", uri="spotify:track:now"),
            queue=[Track(name="next", uri="spotify:track:next"), Track(name="local", uri="")],
        )
        assert build_uri_list(queue) == ["spotify:track:now", "spotify:track:next"]


class TestQueueTransfer:
    def test_moves_queue_to_destination(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot(
            progress_ms=61000, device=Device(name="librespot", id="lib-1"),
        )
        fake_spotify.queues[token_for(home)] = UserQueue(
            currently_playing=Track(name="Song A", uri="spotify:track:a"),
            queue=[Track(name="Song B", uri="spotify:track:b")],
        )

        outcome = engine.transfer(home, main, "MacBook Air de Richard", "librespot")

        assert outcome.transferred and outcome.strategy == QUEUE
        assert fake_spotify.mutations() == [
            ("pause_playback", token_for(home), "lib-1"),
            ("start_playback", token_for(main), "mac-1",
             {"uris": ["spotify:track:a", "spotify:track:b"], "position_ms": 61000}),
        ]

    def test_destination_token_is_refreshed_first(self, engine, fake_spotify, accounts):
        home, main = accounts

        engine.transfer(home, main, "MacBook Air de Richard", "librespot")

        assert fake_spotify.calls[0] == ("refresh_access_token", main.client_id)

    def test_nothing_playing_is_a_noop(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot(is_playing=False)
        fake_spotify.queues[token_for(home)] = UserQueue(queue=[Track(name="x", uri="spotify:track:x")])

        outcome = engine.transfer(home, main, "MacBook Air de Richard", "librespot")

        assert outcome.transferred is False
        assert fake_spotify.mutations() == []

    def test_empty_queue_is_a_noop(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot()

        outcome = engine.transfer(home, main, "MacBook Air de Richard", "librespot")

        assert outcome.transferred is False
        assert fake_spotify.mutations() == []

    def test_queue_without_usable_uris_fails(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot()
        fake_spotify.queues[token_for(home)] = UserQueue(queue=[Track(name="local file", uri="")])

        with pytest.raises(TransferError, match="No valid URIs"):
            engine.transfer(home, main, "MacBook Air de Richard", "librespot")
        assert fake_spotify.mutations() == []

    def test_queue_of_null_entries_fails_instead_of_noop(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot()
        fake_spotify.queues[token_for(home)] = UserQueue.from_api({"currently_playing": None, "queue": [None, None]})

        with pytest.raises(TransferError, match="No valid URIs"):
            engine.transfer(home, main, "MacBook Air de Richard", "librespot")
        assert fake_spotify.mutations() == []

    def test_destination_failure_leaves_source_paused(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot(device=Device(name="librespot", id="lib-1"))
        fake_spotify.queues[token_for(home)] = UserQueue(queue=[Track(name="b", uri="spotify:track:b")])
        fake_spotify.failures["start_playback"] = APIError("Starting playback failed (404)", status_code=404)

        with pytest.raises(TransferError, match="source remains paused"):
            engine.transfer(home, main, "MacBook Air de Richard", "librespot")
        assert [call[0] for call in fake_spotify.mutations()] == ["pause_playback", "start_playback"]


class TestHardTransfer:
    def test_restarts_context_at_track_position(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playlists["mix"] = [Track(name=f"t{i}") for i in range(150)]
        fake_spotify.playback[token_for(main)] = playing_snapshot(
            track_name="t120",
            progress_ms=9000,
            context_uri="spotify:playlist:mix",
            device=Device(name="MacBook Air de Richard", id="mac-1", supports_volume=True, volume_percent=70),
        )

        outcome = engine.transfer(main, home, "librespot", "MacBook Air de Richard")

        assert outcome.strategy == HARD and outcome.offset == 120
        assert fake_spotify.mutations() == [
            ("pause_playback", token_for(main), "mac-1"),
            ("start_playback", token_for(home), "lib-1",
             {"context_uri": "spotify:playlist:mix", "offset": {"position": 120}, "position_ms": 9000}),
            ("set_volume", token_for(home), 70, "lib-1"),
        ]

    def test_unknown_source_volume_defaults_to_fifty(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(home)] = playing_snapshot(
            context_uri="spotify:playlist:mix",
            device=Device(name="librespot", id="lib-1", supports_volume=False),
        )

        engine.transfer(home, main, "iPhone", "librespot")

        assert fake_spotify.calls_to("set_volume")[-1] == ("set_volume", token_for(main), 50, "phone-1")

    def test_context_less_playback_fails_after_pause(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(main)] = playing_snapshot(
            context_uri="", device=Device(name="iPhone", id="phone-1"),
        )

        with pytest.raises(TransferError):
            engine.transfer(main, home, "librespot", "iPhone")

        assert fake_spotify.mutations() == [("pause_playback", token_for(main), "phone-1")]
        assert all(call[1] != token_for(home) for call in fake_spotify.calls if len(call) > 1)

    def test_volume_failure_does_not_fail_transfer(self, engine, fake_spotify, accounts):
        home, main = accounts
        fake_spotify.playback[token_for(main)] = playing_snapshot(
            context_uri="spotify:album:abc", device=Device(name="iPhone", id="phone-1"),
        )
        fake_spotify.failures["set_volume"] = APIError("Setting volume failed (403)", status_code=403)

        outcome = engine.transfer(main, home, "librespot", "iPhone")

        assert outcome.transferred


class TestFindTrackPosition:
    def test_first_match_on_duplicate_titles(self, fake_spotify):
        fake_spotify.playlists["dupes"] = [Track(name="Intro"), Track(name="Song"), Track(name="Song")]
        assert find_track_position("tok", "spotify:playlist:dupes", Track(name="Song")) == 1

    def test_missing_track_is_position_zero(self, fake_spotify):
        fake_spotify.playlists["p"] = [Track(name="a"), Track(name="b")]
        assert find_track_position("tok", "spotify:playlist:p", Track(name="zzz")) == 0

    def test_album_pages_by_fifty(self, fake_spotify):
        fake_spotify.albums["alb"] = [Track(name=f"t{i}") for i in range(60)]

        assert find_track_position("tok", "spotify:album:alb", Track(name="t55")) == 55
        assert [call[3] for call in fake_spotify.calls_to("get_album_tracks")] == [0, 50]

    def test_artist_context_is_position_zero(self, fake_spotify):
        assert find_track_position("tok", "spotify:artist:x", Track(name="a")) == 0
        assert fake_spotify.calls == []
