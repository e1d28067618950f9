"""Checks run on an uploaded invoice file before it is sent for recognition."""

import logging
import mimetypes
from pathlib import Path

import fitz  # PyMuPDF

from .exceptions import UploadRejectedError

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".heic", ".heif", ".gif", ".bmp")
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS + (".pdf",)

logger = logging.getLogger(__name__)


def check_file_size(file_path: Path | str, max_size_mb: float = 20.0) -> float:
    """Return the file size in MB, raising if the file is missing or too large.

    Raises:
        UploadRejectedError: If the file does not exist or exceeds max_size_mb
    """
    file_path = Path(file_path)
    try:
        file_size_mb = file_path.stat().st_size / (1024 * 1024)
    except OSError as e:
        raise UploadRejectedError(file_path, f"cannot read file: {e}")

    logger.debug(f"Upload size check: {file_path.name} = {file_size_mb:.1f}MB")
    if file_size_mb == 0:
        raise UploadRejectedError(file_path, "file is empty")
    if file_size_mb > max_size_mb:
        raise UploadRejectedError(
            file_path,
            f"file size ({file_size_mb:.1f}MB) exceeds maximum allowed size ({max_size_mb}MB)"
        )
    return file_size_mb


def check_pdf_readable(file_path: Path | str) -> int:
    """Open a PDF and return its page count.

    Raises:
        UploadRejectedError: If the PDF is corrupted or has no pages
    """
    file_path = Path(file_path)
    try:
        with fitz.open(file_path) as doc:
            page_count = doc.page_count
    except fitz.FileDataError as e:
        raise UploadRejectedError(file_path, f"PDF file is corrupted: {e}")
    except (RuntimeError, ValueError) as e:
        raise UploadRejectedError(file_path, f"unable to read PDF: {e}")

    if page_count == 0:
        raise UploadRejectedError(file_path, "PDF has no pages")
    return page_count


def guess_mime_type(file_path: Path | str) -> str:
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix in (".heic", ".heif"):
        return f"image/{suffix[1:]}"
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return mime_type or "application/octet-stream"


def validate_upload(file_path: Path | str, max_size_mb: float = 20.0) -> str:
    """Validate an invoice upload and return its MIME type.

    Accepts images and PDFs. PDFs must open and contain at least one page.

    Raises:
        UploadRejectedError: If the file type, size or content is unacceptable
    """
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix not in ALLOWED_EXTENSIONS:
        raise UploadRejectedError(
            file_path,
            f"file extension '{file_path.suffix}' not allowed. Allowed: {ALLOWED_EXTENSIONS}"
        )

    check_file_size(file_path, max_size_mb)
    if suffix == ".pdf":
        pages = check_pdf_readable(file_path)
        logger.debug(f"{file_path.name}: {pages} PDF page(s)")
    return guess_mime_type(file_path)
