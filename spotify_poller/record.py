"""Normalized now-playing metadata shared with display consumers."""
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


class PlaybackStatus(str, Enum):
    STOPPED = "stopped"
    PAUSED = "paused"
    PLAYING = "playing"


# Metadata fields this source fills in.
SUPPORTED_METADATA = (
    "title",
    "artists",
    "album",
    "release_year",
    "cover_url",
    "duration_ms",
    "progress_ms",
    "status",
    "url",
    "context_url",
    "playlist_name",
)


@dataclass
class PlaybackRecord:
    """Current track and playback state.

    Release date parts are None when the source date did not carry them.
    Context fields are None when the playback had no context.
    """

    title: str = ""
    artists: List[str] = field(default_factory=list)
    album: str = ""
    cover_url: str = ""
    url: str = ""
    duration_ms: int = 0
    progress_ms: int = 0
    status: PlaybackStatus = PlaybackStatus.STOPPED
    disc_number: int = 0
    track_number: int = 0
    explicit: bool = False
    release_year: Optional[int] = None
    release_month: Optional[int] = None
    release_day: Optional[int] = None
    context_type: Optional[str] = None
    context_url: Optional[str] = None
    context_external_url: Optional[str] = None
    playlist_name: Optional[str] = None

    def clear(self) -> None:
        fresh = PlaybackRecord()
        for f in fields(self):
            setattr(self, f.name, getattr(fresh, f.name))

    def copy(self) -> "PlaybackRecord":
        data = asdict(self)
        return PlaybackRecord(**data)

    def is_empty(self) -> bool:
        return self == PlaybackRecord()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    def update_from(self, other: "PlaybackRecord") -> None:
        """Replace every field in place so existing references see the change."""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))
