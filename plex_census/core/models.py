"""Pydantic models for the exported library document (data/library.json)."""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Annotated, Dict, List, Literal, Union


class CensusModel(BaseModel):
    # Built with snake_case names, dumped with the camelCase keys the viewer reads
    model_config = ConfigDict(populate_by_name=True)


class Library(CensusModel):
    name: str
    type: str  # movie, show, music_artist
    certification_country: str = Field("Unknown", alias="certificationCountry")


class Episode(CensusModel):
    episode_number: int = Field(alias="episodeNumber")
    title: str
    duration: str
    file_size_gb: str = Field(alias="fileSizeGB")
    w: int = 0


class Season(CensusModel):
    season_number: int = Field(alias="seasonNumber")
    season_duration: str = Field(alias="seasonduration")
    season_file_size_gb: str = Field(alias="seasonFileSizeGB")
    episodes: List[Episode] = Field(default_factory=list)


class Track(CensusModel):
    disc_number: int = Field(1, alias="discNumber")
    track_number: int = Field(alias="trackNumber")
    title: str
    duration: str
    file_size_mb: str = Field(alias="fileSizeMB")


class Album(CensusModel):
    album_number: int = Field(alias="albumNumber")
    rating_key: str = Field(alias="ratingKey")
    album_title: str = Field(alias="albumTitle")
    year: str = ""
    album_duration: str = Field(alias="albumduration")
    album_file_size_gb: str = Field(alias="albumFileSizeGB")
    thumb_url: str
    tracks: List[Track] = Field(default_factory=list)


class MovieItem(CensusModel):
    type: Literal["movie"] = "movie"
    title: str
    tagline: str = ""
    summary: str = ""
    year: str = ""
    studio: str = ""
    content_rating: str = Field("", alias="contentRating")
    duration: str
    file_container: str = Field("N/A", alias="fileContainer")
    file_size_gb: str = Field(alias="fileSizeGB")
    audio_formats: str = Field("Unknown", alias="audioFormats")
    resolution: str = Field("Unknown", alias="Resolution")
    thumb_url: str
    w: int = 0
    library_id: int = Field(alias="libraryId")


class ShowItem(CensusModel):
    type: Literal["show"] = "show"
    title: str
    tagline: str = ""
    summary: str = ""
    year: str = ""
    studio: str = ""
    content_rating: str = Field("", alias="contentRating")
    total_duration: str = Field(alias="totalduration")
    total_file_size_gb: str = Field(alias="totalFileSizeGB")
    total_seasons: int = Field(alias="totalSeasons")
    thumb_url: str
    seasons: List[Season] = Field(default_factory=list)
    w: int = 0
    library_id: int = Field(alias="libraryId")


class ArtistItem(CensusModel):
    type: Literal["music_artist"] = "music_artist"
    title: str
    year: str = ""
    total_duration: str = Field(alias="totalduration")
    total_file_size_gb: str = Field(alias="totalFileSizeGB")
    total_albums: int = Field(alias="totalAlbums")
    thumb_url: str
    albums: List[Album] = Field(default_factory=list)
    w: int = 0  # Plex keeps no artist-level watch state
    library_id: int = Field(alias="libraryId")


Item = Annotated[Union[MovieItem, ShowItem, ArtistItem], Field(discriminator="type")]


class ExportDocument(CensusModel):
    website_header: str = Field(alias="websiteHeader")
    export_date: str = Field(alias="exportDate")
    libraries: Dict[str, Library]  # keyed by str(library id)
    items: List[Item] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_library_ids(self) -> "ExportDocument":
        for item in self.items:
            if str(item.library_id) not in self.libraries:
                raise ValueError(
                    f"Item '{item.title}' references unknown library id {item.library_id}"
                )
        return self

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
