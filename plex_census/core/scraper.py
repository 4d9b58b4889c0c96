"""Turn Plex library XML into export items, one scraper per library."""
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from xml.etree.ElementTree import Element

from plex_census.core.covers import ALBUM, ARTIST, POSTER, CoverCache
from plex_census.core.formatting import (
    audio_codec_label,
    classify_resolution,
    format_duration,
    format_size_gb,
    format_size_mb,
    item_watch_status,
    natural_sort_key,
    sanitize_content_rating,
    show_watch_status,
    WATCH_NONE,
)
from plex_census.core.models import (
    Album,
    ArtistItem,
    Episode,
    MovieItem,
    Season,
    ShowItem,
    Track,
)

logger = logging.getLogger(__name__)

VARIOUS_ARTISTS = "Various Artists"


class ExportError(Exception):
    """Raised when a required part of the export cannot be produced."""


def _text(element: Element, name: str) -> str:
    return element.get(name) or ""


def _int(element: Element, name: str) -> int:
    try:
        return int(float(element.get(name) or 0))
    except ValueError:
        return 0


def _float(element: Element, name: str) -> float:
    try:
        return float(element.get(name) or 0)
    except ValueError:
        return 0.0


@dataclass
class _SeasonTotals:
    duration_ms: int = 0
    size_bytes: float = 0.0
    episodes: List[Episode] = field(default_factory=list)


@dataclass
class _ArtistTotals:
    title: str
    year: str
    thumb_url: str
    duration_ms: int = 0
    size_bytes: float = 0.0
    albums: List[Album] = field(default_factory=list)


class LibraryScraper:
    """Scrapes one library section into MovieItem/ShowItem/ArtistItem objects."""

    def __init__(
        self,
        service,
        covers: CoverCache,
        library_id: int,
        watch_status: bool = False,
        request_delay: float = 0.0,
    ):
        self.service = service
        self.covers = covers
        self.library_id = library_id
        self.watch_status = watch_status
        self.request_delay = request_delay

    def _pause(self) -> None:
        # Plex copes badly with back-to-back transcode and metadata requests
        if self.request_delay > 0:
            time.sleep(self.request_delay)

    def scrape(self, internal_type: str, section_key: str) -> list:
        if internal_type == "movie":
            return self.scrape_movies(section_key)
        if internal_type == "show":
            return self.scrape_shows(section_key)
        if internal_type == "music_artist":
            return self.scrape_music(section_key)
        raise ExportError(f"Unsupported library type: {internal_type}")

    # Movies

    def scrape_movies(self, section_key: str) -> List[MovieItem]:
        root = self.service.get_section_items(section_key)
        if root is None:
            raise ExportError(f"Failed to fetch films for library section {section_key}")

        videos = root.findall("Video")
        logger.debug(f"Found {len(videos)} films in section {section_key}")
        items = []
        for video in videos:
            items.append(self._build_movie(video))
            self._pause()
        return items

    def _build_movie(self, video: Element) -> MovieItem:
        logger.debug(f"Processing film: {_text(video, 'title')} (key {_text(video, 'ratingKey')})")

        total_size = 0.0
        largest_part = 0.0
        container = "N/A"
        audio_codec = "N/A"
        resolution = "N/A"

        # Several Media = several versions; the largest part decides the quality shown
        for media in video.findall("Media"):
            for part in media.findall("Part"):
                part_size = _float(part, "size")
                total_size += part_size
                if part_size > largest_part:
                    largest_part = part_size
                    audio_codec = _text(media, "audioCodec")
                    container = _text(media, "container")
                    resolution = _text(media, "videoResolution")

        status = WATCH_NONE
        if self.watch_status:
            status = item_watch_status(_int(video, "viewCount"), _int(video, "viewOffset"))

        return MovieItem(
            title=_text(video, "title"),
            tagline=_text(video, "tagline"),
            summary=_text(video, "summary"),
            year=_text(video, "year"),
            studio=_text(video, "studio"),
            content_rating=sanitize_content_rating(_text(video, "contentRating")),
            duration=format_duration(_int(video, "duration")),
            file_container=container,
            file_size_gb=format_size_gb(total_size),
            audio_formats=audio_codec_label(audio_codec),
            resolution=classify_resolution(resolution),
            thumb_url=self.covers.cache(_text(video, "thumb"), POSTER),
            w=status,
            library_id=self.library_id,
        )

    # TV shows

    def scrape_shows(self, section_key: str) -> List[ShowItem]:
        root = self.service.get_section_items(section_key)
        if root is None:
            raise ExportError(f"Failed to fetch TV shows for library section {section_key}")

        directories = root.findall("Directory")
        logger.debug(f"Found {len(directories)} shows in section {section_key}")
        items = []
        for show in directories:
            if show.get("type") != "show":
                continue
            item = self._build_show(show)
            if item is not None:
                items.append(item)
        return items

    def _build_show(self, show: Element) -> Optional[ShowItem]:
        title = _text(show, "title")
        rating_key = _text(show, "ratingKey")
        logger.debug(f"Processing TV show: {title} (key {rating_key})")

        status = WATCH_NONE
        if self.watch_status:
            status = show_watch_status(_int(show, "viewedLeafCount"), _int(show, "leafCount"))

        thumb_url = self.covers.cache(_text(show, "thumb"), POSTER)
        self._pause()

        episodes_root = self.service.get_show_episodes(rating_key)
        self._pause()
        if episodes_root is None:
            logger.warning(f"Failed to fetch episodes for '{title}', skipping show")
            return None

        seasons: Dict[int, _SeasonTotals] = defaultdict(_SeasonTotals)
        total_duration = 0
        total_size = 0.0

        for episode in episodes_root.findall("Video"):
            season_number = _int(episode, "parentIndex")
            duration = _int(episode, "duration")
            size = 0.0
            media = episode.find("Media")
            if media is not None:
                part = media.find("Part")
                if part is not None:
                    size = _float(part, "size")

            episode_status = WATCH_NONE
            if self.watch_status:
                episode_status = item_watch_status(_int(episode, "viewCount"), _int(episode, "viewOffset"))

            totals = seasons[season_number]
            totals.duration_ms += duration
            totals.size_bytes += size
            totals.episodes.append(Episode(
                episode_number=_int(episode, "index"),
                title=_text(episode, "title"),
                duration=format_duration(duration),
                file_size_gb=format_size_gb(size),
                w=episode_status,
            ))
            total_duration += duration
            total_size += size

        season_items = [
            Season(
                season_number=number,
                season_duration=format_duration(totals.duration_ms),
                season_file_size_gb=format_size_gb(totals.size_bytes),
                episodes=totals.episodes,
            )
            for number, totals in sorted(seasons.items())
        ]

        return ShowItem(
            title=title,
            tagline=_text(show, "tagline"),
            summary=_text(show, "summary"),
            year=_text(show, "year"),
            studio=_text(show, "studio"),
            content_rating=sanitize_content_rating(_text(show, "contentRating")),
            total_duration=format_duration(total_duration),
            total_file_size_gb=format_size_gb(total_size),
            total_seasons=len(season_items),
            thumb_url=thumb_url,
            seasons=season_items,
            w=status,
            library_id=self.library_id,
        )

    # Music

    def scrape_music(self, section_key: str) -> List[ArtistItem]:
        root = self.service.get_albums(section_key)
        if root is None:
            raise ExportError(f"Failed to fetch albums for music library section {section_key}")

        album_elements = root.findall("Directory")
        logger.debug(f"Found {len(album_elements)} albums in section {section_key}")

        artists: Dict[str, _ArtistTotals] = {}
        for album in album_elements:
            if album.get("type") != "album":
                continue
            artist_key = _text(album, "parentRatingKey")
            artist = artists.get(artist_key)
            if artist is None:
                logger.debug(f"Processing artist: {_text(album, 'parentTitle')} (key {artist_key})")
                artist = _ArtistTotals(
                    title=_text(album, "parentTitle"),
                    year=_text(album, "parentYear"),
                    thumb_url=self.covers.cache(_text(album, "parentThumb"), ARTIST),
                )
                artists[artist_key] = artist

            built = self._build_album(album, artist, len(artist.albums) + 1)
            if built is None:
                continue
            album_item, duration, size = built
            artist.albums.append(album_item)
            artist.duration_ms += duration
            artist.size_bytes += size

        items = []
        for artist in artists.values():
            albums = sorted(artist.albums, key=lambda a: natural_sort_key(a.album_title))
            items.append(ArtistItem(
                title=artist.title,
                year=artist.year,
                total_duration=format_duration(artist.duration_ms),
                total_file_size_gb=format_size_gb(artist.size_bytes),
                total_albums=len(albums),
                thumb_url=artist.thumb_url,
                albums=albums,
                library_id=self.library_id,
            ))
        return items

    def _build_album(self, album: Element, artist: _ArtistTotals, album_number: int):
        album_key = _text(album, "ratingKey")
        album_title = _text(album, "title")
        logger.debug(f"Processing album: {album_title} (key {album_key}) - artist: {artist.title}")

        thumb_url = self.covers.cache(_text(album, "thumb"), ALBUM)

        tracks_root = self.service.get_album_tracks(album_key)
        self._pause()
        if tracks_root is None:
            logger.warning(f"Failed to fetch tracks for album '{album_title}' by {artist.title}, skipping album")
            return None

        duration_total = 0
        size_total = 0.0
        tracks = []
        for track in tracks_root.findall("Track"):
            duration = _int(track, "duration")
            size = 0.0
            part = track.find("Media/Part")
            if part is not None:
                size = _float(part, "size")
            duration_total += duration
            size_total += size

            tracks.append(Track(
                disc_number=_int(track, "parentIndex") or 1,
                track_number=_int(track, "index"),
                title=track_title(track, artist.title),
                duration=format_duration(duration),
                file_size_mb=format_size_mb(size),
            ))

        album_item = Album(
            album_number=album_number,
            rating_key=album_key,
            album_title=album_title,
            year=_text(album, "year"),
            album_duration=format_duration(duration_total),
            album_file_size_gb=format_size_gb(size_total),
            thumb_url=thumb_url,
            tracks=tracks,
        )
        return album_item, duration_total, size_total


def track_title(track: Element, album_artist: str) -> str:
    """Track title, credited to the performer on "Various Artists" compilations."""
    title = _text(track, "title")
    if album_artist != VARIOUS_ARTISTS:
        return title

    performer = ""
    role = track.find("Role")
    artist_tag = track.find("Artist")
    grandparent = _text(track, "grandparentTitle")
    if role is not None and role.get("tag"):
        performer = role.get("tag")
    elif artist_tag is not None and artist_tag.get("tag"):
        performer = artist_tag.get("tag")
    elif grandparent and grandparent != album_artist:
        performer = grandparent
    elif _text(track, "originalTitle"):
        performer = _text(track, "originalTitle")

    if performer and performer.lower() not in title.lower():
        return f"{performer} - {title}"
    return title
