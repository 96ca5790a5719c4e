from typing import Any, Callable, Dict, List, Optional

from .record import PlaybackRecord


# Key under which Spotify lists its own links in external_urls maps.
EXTERNAL_URL_KEY = "spotify"


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


def _to_int(s: str) -> int:
    try:
        return int(s)
    except (TypeError, ValueError):
        return 0


def parse_release_date(record: PlaybackRecord, date: str) -> None:
    """Fill release year/month/day from "YYYY", "YYYY-MM" or "YYYY-MM-DD"."""
    if not date:
        return

    parts = date.split("-")
    if len(parts) > 3:
        return
    if len(parts) == 3:
        record.release_day = _to_int(parts[2])
    if len(parts) >= 2:
        record.release_month = _to_int(parts[1])
    record.release_year = _to_int(parts[0])


def parse_artists(artists: Any) -> List[str]:
    if not isinstance(artists, list):
        return []
    return [_str(_obj(a).get("name")) for a in artists]


def parse_cover_url(album: Dict[str, Any]) -> str:
    images = album.get("images")
    if not isinstance(images, list) or not images:
        return ""
    return _str(_obj(images[0]).get("url"))


def parse_context(
    record: PlaybackRecord,
    context: Dict[str, Any],
    fetch_playlist_name: Optional[Callable[[str], Optional[str]]] = None,
) -> None:
    record.context_type = _str(context.get("type"))
    record.context_url = _str(context.get("uri"))

    urls = context.get("external_urls")
    if isinstance(urls, dict):
        record.context_external_url = _str(urls.get(EXTERNAL_URL_KEY))

    href = context.get("href")
    if isinstance(href, str) and fetch_playlist_name is not None:
        name = fetch_playlist_name(href)
        if name is not None:
            record.playlist_name = name


def parse_track_json(
    response: Dict[str, Any],
    record: PlaybackRecord,
    *,
    fetch_playlist_name: Optional[Callable[[str], Optional[str]]] = None,
) -> PlaybackRecord:
    """Rebuild record from a /me/player payload.

    The record is cleared first so nothing leaks from the previous track.
    fetch_playlist_name resolves a context href to a display name and
    returns None when the lookup failed; it is only called when the payload
    has a context with an href.
    """

    track = _obj(response.get("item"))
    album = _obj(track.get("album"))

    record.clear()

    context = response.get("context")
    if isinstance(context, dict):
        parse_context(record, context, fetch_playlist_name)

    record.artists = parse_artists(track.get("artists"))
    record.cover_url = parse_cover_url(album)

    urls = track.get("external_urls")
    if isinstance(urls, dict) and urls and isinstance(urls.get(EXTERNAL_URL_KEY), str):
        record.url = urls[EXTERNAL_URL_KEY]

    record.title = _str(track.get("name"))
    record.duration_ms = _int(track.get("duration_ms"))
    record.album = _str(album.get("name"))
    record.explicit = track.get("explicit") is True
    record.disc_number = _int(track.get("disc_number"))
    record.track_number = _int(track.get("track_number"))

    parse_release_date(record, _str(album.get("release_date")))
    return record
