"""Value types shared by the Spotify environment, resolver and transfer code."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Device:
    """A playback endpoint known to one environment.

    Names are configured statically; ids rotate (e.g. when a machine
    restarts) and are re-fetched from the API whenever they are needed.
    """
    name: str
    id: str = ""
    is_active: bool = False
    supports_volume: bool = False
    volume_percent: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Device":
        volume = payload.get("volume_percent")
        return cls(
            name=payload.get("name") or "",
            id=payload.get("id") or "",
            is_active=bool(payload.get("is_active")),
            supports_volume=bool(payload.get("supports_volume")),
            volume_percent=int(volume) if volume is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "supports_volume": self.supports_volume,
            "volume_percent": self.volume_percent,
        }


@dataclass
class Tokens:
    access_token: str
    refresh_token: str


@dataclass
class Track:
    type: str = ""
    name: str = ""
    uri: str = ""
    duration_ms: int = 0

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> Optional["Track"]:
        if not payload:
            return None
        return cls(
            type=payload.get("type") or "",
            name=payload.get("name") or "",
            uri=payload.get("uri") or "",
            duration_ms=int(payload.get("duration_ms") or 0),
        )


@dataclass
class PlaybackContext:
    type: str = ""
    uri: str = ""


@dataclass
class PlaybackSnapshot:
    """What the source was playing at transfer time. Never persisted."""
    track: Optional[Track] = None
    progress_ms: int = 0
    context: PlaybackContext = field(default_factory=PlaybackContext)
    device: Optional[Device] = None
    shuffle_state: bool = False
    repeat_state: str = "off"
    is_playing: bool = False

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> "PlaybackSnapshot":
        """Build a snapshot; ``None`` (HTTP 204) means nothing is playing."""
        if not payload:
            return cls()
        context = payload.get("context") or {}
        device = payload.get("device")
        return cls(
            track=Track.from_api(payload.get("item")),
            progress_ms=int(payload.get("progress_ms") or 0),
            context=PlaybackContext(
                type=context.get("type") or "",
                uri=context.get("uri") or "",
            ),
            device=Device.from_api(device) if device else None,
            shuffle_state=bool(payload.get("shuffle_state")),
            repeat_state=payload.get("repeat_state") or "off",
            is_playing=bool(payload.get("is_playing")),
        )


@dataclass
class UserQueue:
    currently_playing: Optional[Track] = None
    queue: List[Track] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> "UserQueue":
        if not payload:
            return cls()
        # null entries stay as empty tracks; the URI list builder skips them
        tracks = [Track.from_api(item) or Track() for item in payload.get("queue") or []]
        return cls(
            currently_playing=Track.from_api(payload.get("currently_playing")),
            queue=tracks,
        )


@dataclass
class TransferOutcome:
    """Result of a transfer. ``transferred=False`` is the nothing-to-move outcome."""
    transferred: bool
    strategy: str
    reason: str = ""
    track_count: int = 0
    position_ms: int = 0
    offset: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "transferred": self.transferred,
            "strategy": self.strategy,
            "track_count": self.track_count,
            "position_ms": self.position_ms,
        }
        if self.reason:
            payload["reason"] = self.reason
        if self.offset is not None:
            payload["offset"] = self.offset
        return payload
