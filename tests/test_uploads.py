"""Tests for invoice upload checks."""

import fitz
import pytest

from reimburse_assistant.core.exceptions import OcrFailure, UploadRejectedError
from reimburse_assistant.core.uploads import (
    check_file_size,
    check_pdf_readable,
    guess_mime_type,
    validate_upload,
)


@pytest.fixture
def valid_pdf(tmp_path):
    """Two-page PDF written with PyMuPDF."""
    path = tmp_path / "invoice.pdf"
    doc = fitz.open()
    doc.new_page()
    doc.new_page()
    doc.save(path)
    doc.close()
    return path


class TestUploadValidation:
    """Test class for upload validation."""

    def test_valid_pdf(self, valid_pdf):
        assert check_pdf_readable(valid_pdf) == 2
        assert validate_upload(valid_pdf) == "application/pdf"

    def test_image_types(self, tmp_path):
        for name, expected in [("a.jpg", "image/jpeg"), ("b.PNG", "image/png"), ("c.heic", "image/heic")]:
            path = tmp_path / name
            path.write_bytes(b"\xff" * 32)
            assert validate_upload(path) == expected, f"Unexpected MIME type for {name}"

    def test_disallowed_extension(self, tmp_path):
        path = tmp_path / "invoice.txt"
        path.write_text("发票")
        with pytest.raises(UploadRejectedError, match="not allowed"):
            validate_upload(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(UploadRejectedError, match="cannot read file"):
            validate_upload(tmp_path / "missing.pdf")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.png"
        path.write_bytes(b"")
        with pytest.raises(UploadRejectedError, match="file is empty"):
            check_file_size(path)

    def test_oversized_file(self, tmp_path):
        path = tmp_path / "big.jpg"
        path.write_bytes(b"\x00" * (1024 * 1024 + 1))
        with pytest.raises(UploadRejectedError, match="exceeds maximum allowed size"):
            validate_upload(path, max_size_mb=1)
        assert check_file_size(path, max_size_mb=2) > 1

    def test_corrupted_pdf(self, tmp_path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"this is not a pdf at all")
        with pytest.raises(UploadRejectedError) as exc_info:
            validate_upload(path)
        assert isinstance(exc_info.value, OcrFailure)
        assert exc_info.value.file_path == path

    def test_unknown_mime_type(self):
        assert guess_mime_type("scan.unknownext") == "application/octet-stream"
