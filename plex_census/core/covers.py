"""Local cache of resized cover art, named by the MD5 of the Plex image path."""
import hashlib
import os
import tempfile
from pathlib import Path
from typing import NamedTuple, Optional, Set
import structlog

logger = structlog.get_logger(__name__)

PLACEHOLDER_URL = "assets/images/placeholder.svg"
CACHED_EXTENSIONS = (".avif", ".jpeg")
PARTIAL_SUFFIX = ".part"


class CoverSpec(NamedTuple):
    """Sub-folder and transcode box for one kind of artwork."""
    folder: str
    width: int
    height: int


POSTER = CoverSpec("poster", 300, 450)
ALBUM = CoverSpec("album", 150, 150)
ARTIST = CoverSpec("artist", 450, 450)


def cover_filename(thumb_path: str) -> str:
    return hashlib.md5(thumb_path.encode("utf-8")).hexdigest()


class CoverCache:
    """Downloads covers once per library and remembers which files are still in use."""

    def __init__(
        self,
        service,
        local_dir: Path,
        web_subfolder: str,
        jpeg_fallback: bool = True,
        avif_quality: int = 30,
        jpeg_quality: int = 70,
    ):
        self.service = service
        self.local_dir = Path(local_dir)
        self.web_subfolder = web_subfolder.rstrip("/")
        self.jpeg_fallback = jpeg_fallback
        self.avif_quality = avif_quality
        self.jpeg_quality = jpeg_quality
        self.used_files: Set[str] = set()  # paths relative to local_dir, e.g. "poster/<md5>.avif"
        self.downloaded = 0

    def cache(self, thumb_path: Optional[str], spec: CoverSpec = POSTER) -> str:
        """Ensure the cover is on disk and return its web-relative AVIF URL."""
        if not thumb_path:
            return PLACEHOLDER_URL

        target_dir = self.local_dir / spec.folder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("cover_dir_create_failed", path=str(target_dir), error=str(e))
            return PLACEHOLDER_URL

        name = cover_filename(thumb_path)
        if not self._ensure(thumb_path, spec, name, "avif", self.avif_quality):
            return PLACEHOLDER_URL

        if self.jpeg_fallback:
            # JPEG is only a fallback for browsers without AVIF, failure is not fatal
            self._ensure(thumb_path, spec, name, "jpeg", self.jpeg_quality)

        return f"{self.web_subfolder}/{spec.folder}/{name}.avif"

    def _ensure(self, thumb_path: str, spec: CoverSpec, name: str, image_format: str, quality: int) -> bool:
        relative = f"{spec.folder}/{name}.{image_format}"
        local_path = self.local_dir / relative

        if local_path.exists():
            self.used_files.add(relative)
            return True

        logger.debug("cover_download", file=relative, source=thumb_path)
        data = self.service.fetch_image(thumb_path, spec.width, spec.height, quality, image_format)
        if not data:
            logger.warning("cover_download_failed", file=relative, source=thumb_path, format=image_format)
            return False

        try:
            # Only complete files ever carry the final name
            fd, tmp_name = tempfile.mkstemp(dir=local_path.parent, prefix=f".{name}.", suffix=PARTIAL_SUFFIX)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, local_path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("cover_write_failed", path=str(local_path), error=str(e))
            return False

        logger.info("cover_downloaded", file=relative)
        self.used_files.add(relative)
        self.downloaded += 1
        return True

    def cleanup(self) -> int:
        """Delete cached covers that were not used in this run."""
        if not self.local_dir.is_dir():
            return 0

        deleted = 0
        for path in sorted(self.local_dir.rglob("*")):
            if not path.is_file() or path.suffix not in CACHED_EXTENSIONS + (PARTIAL_SUFFIX,):
                continue
            relative = path.relative_to(self.local_dir).as_posix()
            if relative in self.used_files:
                continue
            try:
                path.unlink()
                deleted += 1
                logger.debug("cover_deleted", file=relative)
            except OSError as e:
                logger.error("cover_delete_failed", file=relative, error=str(e))

        logger.info("cover_cleanup_complete", directory=str(self.local_dir), deleted=deleted)
        return deleted
