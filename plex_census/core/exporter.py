"""Export orchestration: discover libraries, scrape them, write data/library.json."""
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from plex_census.config import Config, get_config
from plex_census.core.covers import CoverCache
from plex_census.core.formatting import library_slug
from plex_census.core.models import ExportDocument, Library
from plex_census.core.scraper import ExportError, LibraryScraper
from plex_census.services.plex import PlexError, PlexSection, PlexService

logger = logging.getLogger(__name__)

EXPORT_DATE_FORMAT = "%d-%m-%Y %H:%M:%S"
DATA_DIR = "data"
COVERS_DIR = "data/covers"
OUTPUT_FILE = "data/library.json"

__all__ = ["Exporter", "ExportError", "write_document"]


def write_document(document: ExportDocument, output_path: Path) -> None:
    """Write the document next to its target, then swap it in."""
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=output_path.parent, prefix=".library-", suffix=".json.tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document.to_json())
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, output_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ExportError(
            f"Failed to write JSON file to {output_path}: {e}. Check permissions on the web folder."
        ) from e


class Exporter:
    """Runs one full export of the configured libraries."""

    def __init__(self, config: Optional[Config] = None, plex_service: Optional[PlexService] = None):
        self.config = config or get_config()
        self.export_config = self.config.require_export()
        self.web_root = Path(self.export_config.web_root)
        self.plex_service = plex_service or PlexService(
            self.config.require_plex(),
            image_timeout=self.export_config.image_timeout,
        )

    @property
    def output_path(self) -> Path:
        return self.web_root / OUTPUT_FILE

    def close(self) -> None:
        self.plex_service.close()

    def select_libraries(self, discovered: Dict[str, PlexSection]) -> List[Tuple[int, Library, PlexSection]]:
        """Match requested titles to Plex sections and number them from 1."""
        selected = []
        next_id = 1
        for title in self.export_config.libraries:
            section = discovered.get(title)
            if section is None:
                logger.warning(f"Requested library '{title}' not found on Plex server, skipping")
                continue
            if not section.is_supported:
                logger.warning(f"Library '{title}' has unsupported type '{section.plex_type}', skipping")
                continue

            library = Library(
                name=title,
                type=section.internal_type,
                certification_country=self.plex_service.get_certification_country(section.key),
            )
            selected.append((next_id, library, section))
            next_id += 1
        return selected

    def covers_subfolder(self, library_id: int, library: Library, taken: Set[str]) -> str:
        """Web-relative covers folder, unique within one run."""
        slug = library_slug(library.name)
        if slug in taken:
            # "Films" and "films" must not share (and clean) one folder
            slug = f"{slug}-{library_id}"
        taken.add(slug)
        return f"{COVERS_DIR}/{slug}"

    def scrape_library(self, library_id: int, library: Library, section: PlexSection,
                       covers_subfolder: Optional[str] = None) -> list:
        logger.info(f"Processing '{library.name}'... (this might take a while)")

        covers_subfolder = covers_subfolder or f"{COVERS_DIR}/{library_slug(library.name)}"
        covers_dir = self.web_root / covers_subfolder
        try:
            covers_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(f"Failed to create covers directory {covers_dir}: {e}") from e

        covers = CoverCache(
            self.plex_service,
            covers_dir,
            covers_subfolder,
            jpeg_fallback=self.export_config.jpeg_fallback,
            avif_quality=self.export_config.avif_quality,
            jpeg_quality=self.export_config.jpeg_quality,
        )
        scraper = LibraryScraper(
            self.plex_service,
            covers,
            library_id,
            watch_status=self.export_config.watch_status,
            request_delay=self.export_config.request_delay,
        )
        items = scraper.scrape(section.internal_type, section.key)

        deleted = covers.cleanup()
        logger.info(
            f"Finished '{library.name}': {len(items)} items, "
            f"{covers.downloaded} covers downloaded, {deleted} unused covers deleted"
        )
        return items

    def run(self) -> ExportDocument:
        """Run the export and write the JSON document. Returns the document."""
        export_start = datetime.now()
        logger.info("Starting Plex library export...")

        try:
            discovered = self.plex_service.discover_libraries()
        except PlexError as e:
            raise ExportError(f"Library discovery failed: {e}") from e
        logger.debug(f"Library discovery successful, found {len(discovered)} libraries")

        selected = self.select_libraries(discovered)
        if not selected:
            requested = ", ".join(self.export_config.libraries)
            raise ExportError(
                f"No valid Plex libraries were found from the list: '{requested}'. "
                f"Check the titles against your Plex server."
            )

        libraries: Dict[str, Library] = {}
        items = []
        slugs: Set[str] = set()
        for library_id, library, section in selected:
            libraries[str(library_id)] = library
            subfolder = self.covers_subfolder(library_id, library, slugs)
            items.extend(self.scrape_library(library_id, library, section, subfolder))

        document = ExportDocument(
            website_header=self.export_config.website_header,
            export_date=export_start.strftime(EXPORT_DATE_FORMAT),
            libraries=libraries,
            items=items,
        )
        write_document(document, self.output_path)
        logger.info(f"Export written to {self.output_path} ({len(items)} items)")
        return document
