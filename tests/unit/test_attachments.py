import base64

import pytest

from streamfold.attachments import (
    AttachmentError,
    AttachmentType,
    accept_string,
    create_attachment,
    create_attachment_from_path,
    format_file_size,
    get_attachment_type,
    is_supported_mime_type,
)


class TestMimeTypes:
    def test_supported(self):
        assert is_supported_mime_type("image/png")
        assert is_supported_mime_type("application/pdf")
        assert not is_supported_mime_type("text/plain")

    def test_attachment_type(self):
        assert get_attachment_type("image/jpeg") is AttachmentType.IMAGE
        assert get_attachment_type("application/pdf") is AttachmentType.FILE

    def test_accept_string(self):
        assert "image/webp" in accept_string().split(",")


class TestFormatFileSize:
    @pytest.mark.parametrize("size, expected", [
        (512, "512 B"),
        (2048, "2.0 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
    ])
    def test_units(self, size, expected):
        assert format_file_size(size) == expected


class TestCreateAttachment:
    def test_encodes_base64(self):
        attachment = create_attachment("a.png", b"\x89PNG", "image/png")
        assert attachment.type is AttachmentType.IMAGE
        assert base64.b64decode(attachment.base64) == b"\x89PNG"
        assert attachment.size == 4
        assert attachment.data_url.startswith("data:image/png;base64,")
        assert attachment.id.startswith("attach_")

    def test_unsupported_type(self):
        with pytest.raises(AttachmentError, match="Unsupported"):
            create_attachment("a.txt", b"hi", "text/plain")

    def test_size_limit(self):
        with pytest.raises(AttachmentError, match="limit"):
            create_attachment("a.pdf", b"x" * 2048, "application/pdf", max_size=1024)

    def test_from_path(self, tmp_path):
        path = tmp_path / "doc.pdf"
        path.write_bytes(b"%PDF-1.7")
        attachment = create_attachment_from_path(path)
        assert attachment.name == "doc.pdf"
        assert attachment.mime_type == "application/pdf"
        assert attachment.type is AttachmentType.FILE

    def test_from_missing_path(self, tmp_path):
        with pytest.raises(AttachmentError, match="Failed to read"):
            create_attachment_from_path(tmp_path / "missing.png")

    def test_serialises_type_as_value(self):
        attachment = create_attachment("a.png", b"x", "image/png")
        assert attachment.model_dump()["type"] == "image"
