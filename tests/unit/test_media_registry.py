"""Tests for media ingestion, metadata and folder management."""

import struct

import pytest

from cms.config import CMSConfig
from cms.core import (
    FileTooLargeError,
    InvalidFileTypeError,
    InvalidUpdateError,
    MediaFileNotFoundError,
    MediaValidationError,
)
from cms.media import MediaRegistry
from cms.media.dimensions import HeaderImageDecoder, read_image_size
from cms.media.registry import MediaFilters, file_type_of, format_file_size

PNG_HEADER = (
    b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + struct.pack(">II", 640, 480)
)
GIF_HEADER = b"GIF89a" + struct.pack("<HH", 32, 16)


def meta(filename, mime_type="image/png", size=100, **extra):
    return {
        "name": filename.split(".")[0],
        "filename": filename,
        "mimeType": mime_type,
        "size": size,
        "url": f"/api/media/{filename}",
        **extra,
    }


class StaticDecoder:
    def __init__(self, dimensions):
        self.dimensions = dimensions
        self.calls = 0

    async def decode(self, data, mime_type):
        self.calls += 1
        return self.dimensions


class TestHelpers:
    def test_format_file_size(self):
        assert format_file_size(0) == "0 Bytes"
        assert format_file_size(500) == "500 Bytes"
        assert format_file_size(1024) == "1 KB"
        assert format_file_size(1536) == "1.5 KB"
        assert format_file_size(10 * 1024 * 1024) == "10 MB"

    def test_file_type_of(self):
        assert file_type_of("image/png") == "image"
        assert file_type_of("video/mp4") == "video"
        assert file_type_of("application/pdf") == "document"

    def test_read_image_size(self):
        assert read_image_size(PNG_HEADER, "image/png") == (640, 480)
        assert read_image_size(GIF_HEADER, "image/gif") == (32, 16)
        assert read_image_size(b"garbage", "image/png") is None


class TestIngestion:
    """Uploads are size and type checked before metadata is recorded."""

    @pytest.mark.asyncio
    async def test_ingest_png_reads_dimensions(self, media):
        uploaded = await media.ingest_upload(PNG_HEADER, "logo.png", "image/png")
        assert uploaded.name == "logo"
        assert uploaded.size == len(PNG_HEADER)
        assert (uploaded.width, uploaded.height) == (640, 480)
        assert uploaded.url == "/api/media/logo.png"
        assert media.get_media_file(uploaded.id) == uploaded

    @pytest.mark.asyncio
    async def test_undecodable_image_has_no_dimensions(self, media):
        uploaded = await media.ingest_upload(b"not an image", "x.png", "image/png")
        assert uploaded.width is None
        assert uploaded.height is None

    @pytest.mark.asyncio
    async def test_documents_skip_decoder(self, store, config, clock, ids):
        decoder = StaticDecoder((10, 10))
        registry = MediaRegistry(store, config, clock=clock, id_factory=ids, image_decoder=decoder)
        uploaded = await registry.ingest_upload(b"%PDF", "doc.pdf", "application/pdf", folder="Docs")
        assert decoder.calls == 0
        assert uploaded.width is None
        assert uploaded.folder == "Docs"

    @pytest.mark.asyncio
    async def test_file_too_large(self, media):
        with pytest.raises(FileTooLargeError, match="10 MB"):
            await media.ingest_upload(
                b"", "huge.mp4", "video/mp4", declared_size=11 * 1024 * 1024
            )
        assert media.file_count() == 0

    @pytest.mark.asyncio
    async def test_configured_size_limit(self, store, clock, ids):
        registry = MediaRegistry(store, CMSConfig(max_file_size=10), clock=clock, id_factory=ids)
        with pytest.raises(FileTooLargeError):
            await registry.ingest_upload(b"x" * 11, "a.txt", "text/plain")

    @pytest.mark.asyncio
    async def test_invalid_file_type(self, media):
        with pytest.raises(InvalidFileTypeError):
            await media.ingest_upload(b"MZ", "setup.exe", "application/x-msdownload")
        assert media.file_count() == 0

    @pytest.mark.asyncio
    async def test_replace_file_keeps_alt_and_folder(self, media):
        original = media.add_media_file(meta("old.png", alt="Logo", folder="Brand"))
        replaced = await media.replace_file(original.id, PNG_HEADER, "new.png", "image/png")
        assert replaced.id == original.id
        assert replaced.filename == "new.png"
        assert replaced.alt == "Logo"
        assert replaced.folder == "Brand"
        assert replaced.width == 640

    @pytest.mark.asyncio
    async def test_replace_missing_file(self, media):
        with pytest.raises(MediaFileNotFoundError):
            await media.replace_file("nope", PNG_HEADER, "new.png", "image/png")

    @pytest.mark.asyncio
    async def test_header_decoder(self):
        assert await HeaderImageDecoder().decode(GIF_HEADER, "image/gif") == (32, 16)


class TestMetadata:
    """CRUD on stored metadata."""

    def test_add_requires_members(self, media):
        with pytest.raises(MediaValidationError):
            media.add_media_file({"name": "x"})

    def test_update(self, media, clock):
        added = media.add_media_file(meta("a.png"))
        clock.advance(minutes=1)
        updated = media.update_media_file(added.id, {"alt": "Alt text"})
        assert updated.alt == "Alt text"
        assert updated.updated_at > added.updated_at
        assert updated.created_at == added.created_at

    def test_update_rejects_identity_keys(self, media):
        added = media.add_media_file(meta("a.png"))
        with pytest.raises(InvalidUpdateError):
            media.update_media_file(added.id, {"createdAt": "2020-01-01T00:00:00Z"})

    def test_update_rejects_negative_size(self, media):
        added = media.add_media_file(meta("a.png"))
        with pytest.raises(InvalidUpdateError):
            media.update_media_file(added.id, {"size": -1})

    def test_delete(self, media):
        added = media.add_media_file(meta("a.png"))
        media.delete_media_file(added.id)
        assert media.get_media_file(added.id) is None
        with pytest.raises(MediaFileNotFoundError):
            media.delete_media_file(added.id)


class TestQueries:
    """Search, filters, folders and stats."""

    @pytest.fixture
    def library(self, media, clock):
        files = []
        for item in (
            meta("cat.png", size=1000, folder="Pets", caption="A sleepy cat"),
            meta("intro.mp4", "video/mp4", size=3000, folder="Pets"),
            meta("report.pdf", "application/pdf", size=2000),
        ):
            clock.advance(minutes=1)
            files.append(media.add_media_file(item))
        return files

    def test_by_type_and_folder(self, media, library):
        assert [f.filename for f in media.files_by_type("video")] == ["intro.mp4"]
        assert len(media.files_by_type("all")) == 3
        assert {f.filename for f in media.files_by_folder("Pets")} == {"cat.png", "intro.mp4"}
        assert media.folders() == ["Pets"]

    def test_search_matches_caption(self, media, library):
        assert [f.filename for f in media.search_files("SLEEPY")] == ["cat.png"]

    def test_filter(self, media, library):
        found = media.filter_files(MediaFilters(type="image", folder="Pets"))
        assert [f.filename for f in found] == ["cat.png"]

    def test_recent_and_totals(self, media, library):
        assert [f.filename for f in media.recent_files(2)] == ["report.pdf", "intro.mp4"]
        assert media.recent_files(0) == []
        assert media.total_size() == 6000
        assert media.file_count() == 3

    def test_move_and_delete_folder(self, media, library):
        report = library[2]
        media.move_files_to_folder([report.id], "Pets")
        assert media.delete_folder("Pets") == 3
        assert media.file_count() == 0

    def test_move_checks_all_ids(self, media, library):
        with pytest.raises(MediaFileNotFoundError):
            media.move_files_to_folder([library[0].id, "nope"], "Other")
        assert media.get_media_file(library[0].id).folder == "Pets"

    def test_stats(self, media, library):
        stats = media.media_stats()
        assert stats.total == 3
        assert stats.by_type == {"image": 1, "video": 1, "document": 1}
        assert stats.by_folder == {"Pets": 2, "Root": 1}
        assert stats.average_size == 2000
        assert stats.recent_count == 3
