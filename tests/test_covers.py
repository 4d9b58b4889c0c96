import pytest

from plex_census.core import covers as covers_module
from plex_census.core.covers import ALBUM, PLACEHOLDER_URL, POSTER, CoverCache, cover_filename


class FakeService:
    def __init__(self, failing_formats=()):
        self.calls = []
        self.failing_formats = set(failing_formats)

    def fetch_image(self, thumb_path, width, height, quality, image_format):
        self.calls.append((thumb_path, width, height, quality, image_format))
        if image_format in self.failing_formats:
            return None
        return f"{image_format}-data".encode()


@pytest.fixture
def covers_dir(tmp_path):
    path = tmp_path / "data" / "covers" / "films"
    path.mkdir(parents=True)
    return path


def test_cover_filename_is_md5():
    assert cover_filename("abc") == "900150983cd24fb0d6963f7d28e17f72"


def test_cache_downloads_avif_and_jpeg(covers_dir):
    service = FakeService()
    cache = CoverCache(service, covers_dir, "data/covers/films")

    url = cache.cache("abc", POSTER)

    assert url == "data/covers/films/poster/900150983cd24fb0d6963f7d28e17f72.avif"
    assert (covers_dir / "poster" / "900150983cd24fb0d6963f7d28e17f72.avif").read_bytes() == b"avif-data"
    assert (covers_dir / "poster" / "900150983cd24fb0d6963f7d28e17f72.jpeg").read_bytes() == b"jpeg-data"
    assert service.calls == [("abc", 300, 450, 30, "avif"), ("abc", 300, 450, 70, "jpeg")]
    assert cache.downloaded == 2


def test_cache_is_idempotent(covers_dir):
    service = FakeService()
    CoverCache(service, covers_dir, "data/covers/films").cache("abc", ALBUM)

    second = FakeService()
    cache = CoverCache(second, covers_dir, "data/covers/films")
    url = cache.cache("abc", ALBUM)

    assert url.endswith("album/900150983cd24fb0d6963f7d28e17f72.avif")
    assert second.calls == []
    assert cache.used_files == {
        "album/900150983cd24fb0d6963f7d28e17f72.avif",
        "album/900150983cd24fb0d6963f7d28e17f72.jpeg",
    }


def test_jpeg_fallback_disabled(covers_dir):
    service = FakeService()
    cache = CoverCache(service, covers_dir, "data/covers/films", jpeg_fallback=False)
    cache.cache("abc", POSTER)
    assert [call[-1] for call in service.calls] == ["avif"]
    assert not (covers_dir / "poster" / "900150983cd24fb0d6963f7d28e17f72.jpeg").exists()


def test_placeholder_for_missing_thumb_or_failed_avif(covers_dir):
    cache = CoverCache(FakeService(failing_formats={"avif"}), covers_dir, "data/covers/films")
    assert cache.cache("", POSTER) == PLACEHOLDER_URL
    assert cache.cache(None, POSTER) == PLACEHOLDER_URL
    assert cache.cache("abc", POSTER) == PLACEHOLDER_URL
    assert cache.used_files == set()


def test_failed_jpeg_keeps_avif(covers_dir):
    cache = CoverCache(FakeService(failing_formats={"jpeg"}), covers_dir, "data/covers/films")
    assert cache.cache("abc", POSTER).endswith(".avif")
    assert cache.used_files == {"poster/900150983cd24fb0d6963f7d28e17f72.avif"}


def test_cleanup_removes_unused_covers(covers_dir):
    stale_dir = covers_dir / "poster"
    stale_dir.mkdir()
    (stale_dir / "stale.avif").write_bytes(b"old")
    (stale_dir / "stale.jpeg").write_bytes(b"old")
    (stale_dir / "notes.txt").write_text("keep me")

    cache = CoverCache(FakeService(), covers_dir, "data/covers/films")
    cache.cache("abc", POSTER)
    deleted = cache.cleanup()

    assert deleted == 2
    assert not (stale_dir / "stale.avif").exists()
    assert (stale_dir / "notes.txt").exists()
    assert (stale_dir / "900150983cd24fb0d6963f7d28e17f72.avif").exists()


def test_failed_write_leaves_nothing_cached(covers_dir, monkeypatch):
    def disk_full(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(covers_module.os, "replace", disk_full)
    cache = CoverCache(FakeService(), covers_dir, "data/covers/films")

    assert cache.cache("abc", POSTER) == PLACEHOLDER_URL
    assert list((covers_dir / "poster").iterdir()) == []
    assert cache.used_files == set()


def test_cleanup_removes_partial_downloads(covers_dir):
    poster_dir = covers_dir / "poster"
    poster_dir.mkdir()
    (poster_dir / ".900150983cd24fb0d6963f7d28e17f72.x1y2.part").write_bytes(b"trunc")

    cache = CoverCache(FakeService(), covers_dir, "data/covers/films")
    cache.cache("abc", POSTER)

    assert cache.cleanup() == 1
    assert sorted(p.name for p in poster_dir.iterdir()) == [
        "900150983cd24fb0d6963f7d28e17f72.avif",
        "900150983cd24fb0d6963f7d28e17f72.jpeg",
    ]
