"""Tests for blob storage."""

from pathlib import Path
from uuid import uuid4

import pytest

from sendo.core.modules.blob.storage import delete_blob_file, new_blob_path, reset_blobs_root
from sendo.errors import FileTooLargeError, UnsupportedMediaTypeError, ValidationError


@pytest.fixture
def blob(core):
    return core.services.blob


class TestValidateUpload:
    """Tests for the gates checked before writing."""

    def test_accepts_allowed(self, blob):
        assert blob.validate_upload("book.epub", 10) == "book.epub"

    def test_missing_name(self, blob):
        with pytest.raises(ValidationError, match="No file"):
            blob.validate_upload(None)
        with pytest.raises(ValidationError, match="No file"):
            blob.validate_upload("  ")

    def test_type_not_allowed(self, blob):
        with pytest.raises(UnsupportedMediaTypeError, match=r"\.epub"):
            blob.validate_upload("setup.exe")

    def test_declared_size_limit(self, blob, config):
        assert blob.validate_upload("a.pdf", config.max_file_bytes) == "a.pdf"
        with pytest.raises(FileTooLargeError):
            blob.validate_upload("a.pdf", config.max_file_bytes + 1)


class TestWrite:
    """Tests for streaming writes."""

    @pytest.mark.asyncio
    async def test_write_stores_bytes(self, blob, config, make_chunks):
        path, size = await blob.write("s1", "../book.epub", make_chunks(b"0123456789"))

        assert size == 10
        assert path.read_bytes() == b"0123456789"
        assert path.name.endswith("__book.epub")
        assert path.parent == blob.location_for("s1")

    @pytest.mark.asyncio
    async def test_limit_enforced_while_streaming(self, blob, config, make_chunks):
        """Test that an undeclared oversized stream is cut off and removed."""
        with pytest.raises(FileTooLargeError):
            await blob.write("s1", "big.pdf", make_chunks(b"x" * (config.max_file_bytes + 1), 128 * 1024))
        assert not (blob.location_for("s1") / "big.pdf").exists()
        assert list(blob.location_for("s1").iterdir()) == []

    @pytest.mark.asyncio
    async def test_exact_limit_allowed(self, blob, config, make_chunks):
        _, size = await blob.write("s1", "max.pdf", make_chunks(b"x" * config.max_file_bytes, 128 * 1024))
        assert size == config.max_file_bytes

    @pytest.mark.asyncio
    async def test_empty_content_removed(self, blob, make_chunks):
        with pytest.raises(ValidationError):
            await blob.write("s1", "empty.txt", make_chunks(b""))
        assert list(blob.location_for("s1").iterdir()) == []

    @pytest.mark.asyncio
    async def test_failing_stream_removed(self, blob):
        """Test that a stream failing midway leaves no partial blob."""

        async def broken():
            yield b"partial"
            raise ConnectionResetError

        with pytest.raises(ConnectionResetError):
            await blob.write("s1", "book.epub", broken())
        assert list(blob.location_for("s1").iterdir()) == []

    @pytest.mark.asyncio
    async def test_iter_chunks(self, blob, make_chunks):
        path, _ = await blob.write("s1", "a.txt", make_chunks(b"abcdefghij"))
        chunks = [chunk async for chunk in blob.iter_chunks(path, 4)]
        assert chunks == [b"abcd", b"efgh", b"ij"]


class TestDelete:
    """Tests for deletion."""

    def test_delete_removes_empty_session_dir(self, tmp_path):
        path = new_blob_path(str(tmp_path), "s1", "a.txt")
        path.write_bytes(b"x")

        assert delete_blob_file(path) is True
        assert not path.exists()
        assert not path.parent.exists()
        assert delete_blob_file(path) is False

    def test_delete_keeps_nonempty_session_dir(self, tmp_path):
        first = new_blob_path(str(tmp_path), "s1", "a.txt")
        second = new_blob_path(str(tmp_path), "s1", "a.txt")
        first.write_bytes(b"1")
        second.write_bytes(b"2")

        assert first != second
        delete_blob_file(first)
        assert second.read_bytes() == b"2"

    def test_service_delete_is_best_effort(self, blob, tmp_path):
        blob.delete(None)
        blob.delete(tmp_path / "missing" / "file.txt")


class TestReset:
    """Tests for startup cleanup."""

    def test_reset_removes_session_dirs(self, tmp_path):
        root = tmp_path / "blobs"
        first = new_blob_path(str(root), str(uuid4()), "a.txt")
        second = new_blob_path(str(root), str(uuid4()), "b.pdf")
        first.write_bytes(b"x")
        second.write_bytes(b"y")

        assert reset_blobs_root(str(root)) == 2
        assert root.is_dir()
        assert list(root.iterdir()) == []

    def test_reset_keeps_foreign_entries(self, tmp_path):
        """Test that a misconfigured root never loses files the service did not create."""
        root = tmp_path / "home"
        (root / "projects").mkdir(parents=True)
        (root / "projects" / "thesis.tex").write_text("draft")
        (root / "notes.txt").write_text("keep me")
        (root / "12345").mkdir()
        session_blob = new_blob_path(str(root), str(uuid4()), "a.txt")
        session_blob.write_bytes(b"x")

        assert reset_blobs_root(str(root)) == 1
        assert not session_blob.exists()
        assert (root / "notes.txt").read_text() == "keep me"
        assert (root / "projects" / "thesis.tex").read_text() == "draft"
        assert (root / "12345").is_dir()

    def test_reset_creates_missing_root(self, tmp_path):
        root = tmp_path / "nested" / "blobs"
        assert reset_blobs_root(str(root)) == 0
        assert root.is_dir()

    @pytest.mark.asyncio
    async def test_service_start_wipes_only_session_dirs(self, app, config):
        leftover = new_blob_path(config.blobs_path, str(uuid4()), "a.txt")
        leftover.write_bytes(b"x")
        foreign = Path(config.blobs_path) / "notes.txt"
        foreign.write_text("keep me")

        async with app.lifespan():
            assert not leftover.exists()
            assert foreign.read_text() == "keep me"
