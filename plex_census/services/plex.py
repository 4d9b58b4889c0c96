"""Plex API client."""
import logging
import httpx
import requests
from dataclasses import dataclass
from typing import Dict, Optional
from xml.etree.ElementTree import Element, ParseError
from plexapi.exceptions import PlexApiException
from plexapi.server import PlexServer

from plex_census.config import PlexConfig, get_config
from plex_census.utils.http_client import HTTPClient

logger = logging.getLogger(__name__)

# Plex section type -> type used in the export document
INTERNAL_TYPES = {
    "movie": "movie",
    "show": "show",
    "artist": "music_artist",
}


class PlexError(Exception):
    """Raised when the Plex server cannot be reached or refuses a required call."""


@dataclass
class PlexSection:
    """A library section as listed by /library/sections."""
    key: str
    title: str
    plex_type: str

    @property
    def internal_type(self) -> str:
        return INTERNAL_TYPES.get(self.plex_type, self.plex_type)

    @property
    def is_supported(self) -> bool:
        return self.plex_type in INTERNAL_TYPES


class PlexService:
    """Service pour interagir avec Plex."""

    def __init__(
        self,
        plex_config: Optional[PlexConfig] = None,
        http_client: Optional[HTTPClient] = None,
        image_timeout: float = 30.0,
    ):
        plex_config = plex_config or get_config().require_plex()
        self.base_url = plex_config.url
        self.token = plex_config.token
        self.timeout = plex_config.timeout
        self.image_timeout = image_timeout
        self.http_client = http_client or HTTPClient(default_timeout=image_timeout)
        self._server: Optional[PlexServer] = None

    def _get_server(self) -> PlexServer:
        """Get or create Plex server connection."""
        if self._server is None:
            try:
                self._server = PlexServer(self.base_url, self.token, timeout=self.timeout)
            except (PlexApiException, requests.RequestException, ParseError) as e:
                raise PlexError(
                    f"Failed to connect to Plex at {self.base_url}: {e}. "
                    f"Check URL, token and firewall."
                ) from e
        return self._server

    def query(self, endpoint: str) -> Optional[Element]:
        """Fetch an XML endpoint once. Returns None when the call fails."""
        server = self._get_server()
        logger.debug(f"Attempting API call: {endpoint}")
        try:
            root = server.query(endpoint, timeout=self.timeout)
        except (PlexApiException, requests.RequestException, ParseError) as e:
            logger.error(f"Plex API fail on '{endpoint}': {e}")
            return None
        if root is None:
            logger.error(f"Plex API returned an empty body for '{endpoint}'")
            return None
        logger.debug(f"API success: {endpoint}")
        return root

    def server_info(self) -> Dict[str, str]:
        """Basic identity of the connected server."""
        server = self._get_server()
        return {
            "friendlyName": server.friendlyName,
            "version": server.version,
            "platform": server.platform,
        }

    def discover_libraries(self) -> Dict[str, PlexSection]:
        """Map every library title on the server to its section key and type."""
        root = self.query("/library/sections")
        if root is None:
            raise PlexError("Failed to retrieve library sections from Plex")

        libraries: Dict[str, PlexSection] = {}
        for directory in root.findall("Directory"):
            section = PlexSection(
                key=directory.get("key", ""),
                title=directory.get("title", ""),
                plex_type=directory.get("type", ""),
            )
            libraries[section.title] = section
        logger.debug(f"Library discovery found {len(libraries)} libraries")
        return libraries

    def get_certification_country(self, section_key: str) -> str:
        """Country whose rating system the library uses (e.g. 'GB'), or 'Unknown'."""
        root = self.query(f"/library/sections/{section_key}/prefs")
        if root is None:
            logger.error(f"Could not fetch preferences for section {section_key}")
            return "Unknown"

        for setting in root.findall("Setting"):
            if setting.get("id") == "country":
                value = (setting.get("value") or "").strip()
                return value.upper() if value else "Unknown"
        return "Unknown"

    def get_section_items(self, section_key: str) -> Optional[Element]:
        return self.query(f"/library/sections/{section_key}/all")

    def get_show_episodes(self, show_rating_key: str) -> Optional[Element]:
        # allLeaves returns every episode in one call instead of walking seasons
        return self.query(f"/library/metadata/{show_rating_key}/allLeaves")

    def get_albums(self, section_key: str) -> Optional[Element]:
        return self.query(f"/library/sections/{section_key}/albums")

    def get_album_tracks(self, album_rating_key: str) -> Optional[Element]:
        return self.query(f"/library/metadata/{album_rating_key}/children")

    def fetch_image(
        self,
        thumb_path: str,
        width: int,
        height: int,
        quality: int,
        image_format: str,
    ) -> Optional[bytes]:
        """Download a resized image through the Plex photo transcoder."""
        params = {
            "width": width,
            "height": height,
            "minSize": 1,
            "quality": quality,
            "url": thumb_path,
            "format": image_format,
        }
        try:
            response = self.http_client.get_sync(
                f"{self.base_url}/photo/:/transcode",
                service_name="plex",
                headers={"X-Plex-Token": self.token},
                params=params,
                timeout=self.image_timeout,
            )
        except httpx.HTTPError:
            return None
        if not response.content:
            logger.error(f"Plex transcoder returned an empty {image_format} for '{thumb_path}'")
            return None
        return response.content

    def close(self) -> None:
        self.http_client.close()
