"""
Moves an in-progress playback session from one environment/device to another.

Two strategies:

* queue transfer: replay the current track plus the user queue as an explicit
  URI list on the destination, at the captured progress;
* hard transfer: for destinations that do not take a URI list, restart the
  source's context (playlist/album) at the current track's position.

Transfers are not transactional. If the source was paused and the
destination fails to start, the source stays paused.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from ..api import spotify as spotify_api
from ..constants import (ALBUM_PAGE_SIZE, DEFAULT_TRANSFER_VOLUME,
                         PLAYLIST_PAGE_SIZE)
from ..errors import APIError, GatewayError, TransferError
from .devices import device_id
from .environment import Environment
from .models import PlaybackSnapshot, Track, TransferOutcome, UserQueue

logger = logging.getLogger("transfer")

QUEUE = "queue"
HARD = "hard"


def build_uri_list(queue: UserQueue) -> List[str]:
    """Current track first, then the queue; entries without a URI are skipped."""
    uris = []
    if queue.currently_playing is not None and queue.currently_playing.uri:
        uris.append(queue.currently_playing.uri)
    uris.extend(track.uri for track in queue.queue if track.uri)
    return uris


def _context_pager(token: str, context_uri: str):
    """Return ``(fetch_page, page_size)`` for a context, or ``None`` if it has no listing."""
    parts = context_uri.split(":")
    if len(parts) != 3 or parts[0] != "spotify" or not parts[2]:
        return None
    kind, context_id = parts[1], parts[2]
    if kind == "playlist":
        return (lambda offset: spotify_api.get_playlist_tracks(token, context_id, offset, PLAYLIST_PAGE_SIZE)), PLAYLIST_PAGE_SIZE
    if kind == "album":
        return (lambda offset: spotify_api.get_album_tracks(token, context_id, offset, ALBUM_PAGE_SIZE)), ALBUM_PAGE_SIZE
    return None


def find_track_position(token: str, context_uri: str, track: Optional[Track]) -> int:
    """Index of ``track`` inside its context, matched by name; 0 when not found.

    With duplicate titles the first occurrence wins.
    """
    if track is None or not track.name:
        return 0
    pager = _context_pager(token, context_uri)
    if pager is None:
        logger.info("transfer.position.unsupported_context", extra={"context": context_uri})
        return 0

    fetch_page, page_size = pager
    offset = 0
    while True:
        tracks, has_next = fetch_page(offset)
        for index, candidate in enumerate(tracks):
            if candidate.name == track.name:
                return offset + index
        if not has_next or not tracks:
            return 0
        offset += page_size


def _transfer_volume(snapshot: PlaybackSnapshot) -> int:
    device = snapshot.device
    if device is not None and device.supports_volume and device.volume_percent is not None:
        return device.volume_percent
    return DEFAULT_TRANSFER_VOLUME


class TransferEngine:
    """Selects and runs a transfer strategy.

    Destinations named in ``hard_transfer_devices`` get a hard transfer; all
    others receive the queue.
    """

    def __init__(self, hard_transfer_devices: Iterable[str] = ("librespot", "iPhone")):
        self.hard_transfer_devices = tuple(hard_transfer_devices)

    def strategy_for(self, to_name: str) -> str:
        return HARD if to_name in self.hard_transfer_devices else QUEUE

    def transfer(
        self,
        source: Environment,
        destination: Environment,
        to_name: str,
        from_name: Optional[str] = None,
    ) -> TransferOutcome:
        strategy = self.strategy_for(to_name)
        logger.info(
            "transfer.start",
            extra={"from_env": source.name, "to_env": destination.name, "to": to_name, "strategy": strategy},
        )
        if strategy == HARD:
            return self.hard_transfer_playback(source, destination, to_name, from_name)
        return self.transfer_playback(source, destination, to_name, from_name)

    def _pause_source(self, source: Environment, snapshot: PlaybackSnapshot, from_name: Optional[str]) -> None:
        source_device_id = snapshot.device.id if snapshot.device is not None else ""
        if not source_device_id and from_name:
            source_device_id = device_id(source, from_name)
        try:
            spotify_api.pause_playback(source.access_token, source_device_id or None)
        except APIError as exc:
            raise TransferError(
                f"Pausing the source failed ({exc.status_code}); transfer aborted",
                data=exc.data,
            ) from exc

    def _start_destination(self, destination: Environment, dest_id: str, body: dict, strategy: str) -> None:
        try:
            spotify_api.start_playback(destination.access_token, dest_id, body)
        except APIError as exc:
            logger.error(
                "transfer.destination.failed",
                extra={"to_env": destination.name, "strategy": strategy, "status": exc.status_code},
            )
            raise TransferError(
                f"Destination did not start playback ({exc.status_code}); source remains paused",
                data=exc.data,
            ) from exc

    def transfer_playback(
        self,
        source: Environment,
        destination: Environment,
        to_name: str,
        from_name: Optional[str] = None,
    ) -> TransferOutcome:
        """Queue-preserving transfer.

        Returns a non-transferred outcome (no mutations issued) when nothing is
        playing or the queue is empty.

        Raises:
            AuthError: If the destination token cannot be refreshed
            TransferError: If no URI is usable or a mutation is rejected
        """
        destination.refresh()

        snapshot = spotify_api.get_current_playback(source.access_token)
        queue = spotify_api.get_user_queue(source.access_token)

        if not queue.queue or not snapshot.is_playing:
            logger.info("transfer.noop", extra={"from_env": source.name, "is_playing": snapshot.is_playing})
            return TransferOutcome(transferred=False, strategy=QUEUE, reason="nothing playing or queue empty")

        uris = build_uri_list(queue)
        if not uris:
            raise TransferError("No valid URIs to transfer", data={"queue_length": len(queue.queue)})

        # Read-only lookup before the source is touched
        dest_id = device_id(destination, to_name)

        self._pause_source(source, snapshot, from_name)
        self._start_destination(
            destination,
            dest_id,
            {"uris": uris, "position_ms": snapshot.progress_ms},
            QUEUE,
        )

        logger.info(
            "transfer.done",
            extra={"strategy": QUEUE, "to": to_name, "tracks": len(uris), "position_ms": snapshot.progress_ms},
        )
        return TransferOutcome(
            transferred=True,
            strategy=QUEUE,
            track_count=len(uris),
            position_ms=snapshot.progress_ms,
        )

    def hard_transfer_playback(
        self,
        source: Environment,
        destination: Environment,
        to_name: str,
        from_name: Optional[str] = None,
    ) -> TransferOutcome:
        """Context + offset transfer.

        The source is paused before the context check, so a context-less
        playback fails after the pause and before any destination call.

        Raises:
            TransferError: If pausing fails, there is no context, or the
                destination rejects the play call
        """
        snapshot = spotify_api.get_current_playback(source.access_token)
        volume = _transfer_volume(snapshot)

        self._pause_source(source, snapshot, from_name)

        context_uri = snapshot.context.uri
        if not context_uri:
            raise TransferError(
                "Current playback has no context; it cannot be hard-transferred",
                data={"track": snapshot.track.name if snapshot.track else None},
            )

        destination.refresh()
        dest_id = device_id(destination, to_name)
        position = find_track_position(source.access_token, context_uri, snapshot.track)

        self._start_destination(
            destination,
            dest_id,
            {
                "context_uri": context_uri,
                "offset": {"position": position},
                "position_ms": snapshot.progress_ms,
            },
            HARD,
        )

        try:
            spotify_api.set_volume(destination.access_token, volume, dest_id)
        except GatewayError as exc:
            logger.warning("transfer.volume.failed", extra={"to": to_name, "error": exc.message})

        logger.info(
            "transfer.done",
            extra={"strategy": HARD, "to": to_name, "offset": position, "volume": volume},
        )
        return TransferOutcome(
            transferred=True,
            strategy=HARD,
            position_ms=snapshot.progress_ms,
            offset=position,
        )


def describe(outcome: TransferOutcome) -> Tuple[str, dict]:
    """Human message plus payload for an outcome."""
    if not outcome.transferred:
        return "Nothing to transfer", outcome.to_dict()
    return "Playback transferred", outcome.to_dict()
