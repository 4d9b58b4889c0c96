import xml.etree.ElementTree as ET

import httpx
import pytest
from plexapi.exceptions import NotFound

from plex_census.config import PlexConfig
from plex_census.services import plex as plex_module
from plex_census.services.plex import PlexService
from plex_census.utils.http_client import HTTPClient


SECTIONS_XML = """
<MediaContainer size="4">
  <Directory key="1" title="Films" type="movie"/>
  <Directory key="2" title="TV Shows" type="show"/>
  <Directory key="3" title="Music" type="artist"/>
  <Directory key="4" title="Photos" type="photo"/>
</MediaContainer>
"""

MOVIES_XML = """
<MediaContainer>
  <Video ratingKey="10" title="Alien" tagline="In space no one can hear you scream." summary="A crew..."
         year="1979" studio="20th Century Fox" contentRating="gb/15" duration="7020000"
         thumb="/library/metadata/10/thumb/1" viewCount="1">
    <Media videoResolution="1080" audioCodec="dca" container="mkv"><Part size="2147483648"/></Media>
    <Media videoResolution="4k" audioCodec="truehd" container="mp4"><Part size="4294967296"/></Media>
  </Video>
  <Video ratingKey="11" title="Heat" year="1995" duration="10221500" viewOffset="5000" contentRating="R">
    <Media videoResolution="sd" audioCodec="aac" container="avi"><Part size="734003200"/></Media>
  </Video>
</MediaContainer>
"""

SHOWS_XML = """
<MediaContainer>
  <Directory ratingKey="20" type="show" title="Firefly" year="2002" studio="Fox" contentRating="12"
             thumb="/library/metadata/20/thumb/1" leafCount="3" viewedLeafCount="3"/>
  <Directory ratingKey="21" type="show" title="Broken Show" leafCount="2" viewedLeafCount="0"/>
</MediaContainer>
"""

EPISODES_XML = """
<MediaContainer>
  <Video index="2" parentIndex="1" title="The Train Job" duration="2580000" viewCount="1">
    <Media><Part size="1073741824"/></Media>
  </Video>
  <Video index="1" parentIndex="1" title="Serenity" duration="5220000" viewCount="1">
    <Media><Part size="2147483648"/></Media>
  </Video>
  <Video index="1" parentIndex="0" title="Special" duration="600000">
    <Media><Part size="536870912"/></Media>
  </Video>
</MediaContainer>
"""

ALBUMS_XML = """
<MediaContainer>
  <Directory type="album" ratingKey="31" parentRatingKey="30" parentTitle="Pink Floyd" parentYear="1967"
             parentThumb="/library/metadata/30/thumb/1" title="Vol 10" year="1975"
             thumb="/library/metadata/31/thumb/1"/>
  <Directory type="album" ratingKey="32" parentRatingKey="30" parentTitle="Pink Floyd"
             parentThumb="/library/metadata/30/thumb/1" title="Vol 2" year="1973"
             thumb="/library/metadata/32/thumb/1"/>
  <Directory type="album" ratingKey="41" parentRatingKey="40" parentTitle="Various Artists" title="Hits"
             thumb="/library/metadata/41/thumb/1"/>
</MediaContainer>
"""

TRACKS_VOL10_XML = """
<MediaContainer>
  <Track index="1" parentIndex="1" title="Shine On" duration="810000"><Media><Part size="20971520"/></Media></Track>
  <Track index="1" parentIndex="2" title="Welcome" duration="450000"><Media><Part size="10485760"/></Media></Track>
</MediaContainer>
"""

TRACKS_VOL2_XML = """
<MediaContainer>
  <Track index="1" title="Speak to Me" duration="90000"><Media><Part size="5242880"/></Media></Track>
</MediaContainer>
"""

TRACKS_HITS_XML = """
<MediaContainer>
  <Track index="1" title="Song A" grandparentTitle="Various Artists" duration="200000"><Role tag="Artist A"/></Track>
  <Track index="2" title="Artist B - Song B" originalTitle="Artist B" grandparentTitle="Various Artists" duration="200000"/>
  <Track index="3" title="Song C" originalTitle="Artist C" grandparentTitle="Various Artists" duration="200000"/>
</MediaContainer>
"""


class FakePlexServer:
    """Stands in for plexapi's PlexServer, answering query() from canned XML."""

    friendlyName = "Test Server"
    version = "1.40.0"
    platform = "Linux"

    def __init__(self, responses):
        self.responses = responses
        self.queried = []

    def query(self, key, timeout=None):
        self.queried.append(key)
        if key not in self.responses:
            raise NotFound(f"(404) not_found; {key}")
        return ET.fromstring(self.responses[key])


class FakeImageServer:
    """httpx MockTransport handler for /photo/:/transcode."""

    def __init__(self):
        self.requests = []
        self.failing = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        if params.get("url") in self.failing:
            return httpx.Response(500)
        return httpx.Response(200, content=f"{params['format']}:{params['url']}".encode())

    def count(self, image_format=None):
        return len([
            r for r in self.requests
            if image_format is None or r.url.params.get("format") == image_format
        ])


@pytest.fixture
def plex_responses():
    return {
        "/library/sections": SECTIONS_XML,
        "/library/sections/1/prefs": '<MediaContainer><Setting id="country" value="gb"/></MediaContainer>',
        "/library/sections/2/prefs": '<MediaContainer><Setting id="collectionMode" value="0"/></MediaContainer>',
        "/library/sections/3/prefs": '<MediaContainer><Setting id="country" value=""/></MediaContainer>',
        "/library/sections/1/all": MOVIES_XML,
        "/library/sections/2/all": SHOWS_XML,
        "/library/metadata/20/allLeaves": EPISODES_XML,
        "/library/sections/3/albums": ALBUMS_XML,
        "/library/metadata/31/children": TRACKS_VOL10_XML,
        "/library/metadata/32/children": TRACKS_VOL2_XML,
        "/library/metadata/41/children": TRACKS_HITS_XML,
    }


@pytest.fixture
def plex_config():
    return PlexConfig(url="plex.local:32400", token="secret-token")


@pytest.fixture
def image_server():
    return FakeImageServer()


@pytest.fixture
def plex_service(plex_config, plex_responses, image_server):
    service = PlexService(
        plex_config,
        http_client=HTTPClient(transport=httpx.MockTransport(image_server)),
    )
    service._server = FakePlexServer(plex_responses)
    yield service
    service.close()


@pytest.fixture
def offline_plex(monkeypatch, plex_responses, image_server):
    """Route every PlexService built by the code under test to the fakes."""
    server = FakePlexServer(plex_responses)

    def connect(url, token, timeout=None):
        return server

    def client(default_timeout=30.0):
        return HTTPClient(default_timeout, transport=httpx.MockTransport(image_server))

    monkeypatch.setattr(plex_module, "PlexServer", connect)
    monkeypatch.setattr(plex_module, "HTTPClient", client)
    return server
