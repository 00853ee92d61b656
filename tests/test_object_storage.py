"""
Unit tests for the filesystem object store
"""

import re

import pytest

from app.core.object_storage import (
    LocalObjectStorage,
    ObjectNotFoundError,
    build_document_key,
    sanitize_filename,
)


class TestKeys:
    def test_sanitize_filename(self):
        assert sanitize_filename("my cv (final).pdf") == "my_cv__final_.pdf"
        assert sanitize_filename("") == "file"

    def test_build_document_key(self):
        key = build_document_key("user-1", "resume", "cv.pdf")

        assert re.fullmatch(r"experts/user-1/resume/\d{13}_cv\.pdf", key)

    def test_traversal_is_neutralised_in_keys(self):
        key = build_document_key("user-1", "../..", "../../etc/passwd")

        assert ".." not in key.split("/")


class TestLocalObjectStorage:
    @pytest.mark.asyncio
    async def test_put_get_delete(self, tmp_path):
        storage = LocalObjectStorage(str(tmp_path))

        await storage.put("experts/u/resume/1_cv.pdf", b"%PDF", "application/pdf")
        data, content_type = await storage.get("experts/u/resume/1_cv.pdf")
        await storage.delete("experts/u/resume/1_cv.pdf")

        assert data == b"%PDF"
        assert content_type == "application/pdf"
        with pytest.raises(ObjectNotFoundError):
            await storage.get("experts/u/resume/1_cv.pdf")

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults(self, tmp_path):
        storage = LocalObjectStorage(str(tmp_path))
        (tmp_path / "loose.bin").write_bytes(b"\x00")

        _, content_type = await storage.get("loose.bin")

        assert content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_delete_missing_is_quiet(self, tmp_path):
        await LocalObjectStorage(str(tmp_path)).delete("never/stored")

    @pytest.mark.asyncio
    async def test_key_cannot_escape_root(self, tmp_path):
        storage = LocalObjectStorage(str(tmp_path / "root"))

        with pytest.raises(ValueError, match="escapes storage root"):
            await storage.put("../outside.txt", b"x", "text/plain")
