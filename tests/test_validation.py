"""
Tests for upload validation.
"""

import pytest

from clauseguard.document_processor.validation import validate_upload
from clauseguard.models import FileType
from clauseguard.utils.errors import ValidationError
from tests.conftest import DOCX_MIME, PDF_MIME

MAX_SIZE = 10 * 1024 * 1024


class TestValidateUpload:
    def test_accepts_pdf_and_docx(self):
        assert validate_upload(b"%PDF-1.4", PDF_MIME, "a.pdf", MAX_SIZE) is FileType.PDF
        assert validate_upload(b"PK\x03\x04", DOCX_MIME, "a.docx", MAX_SIZE) is FileType.DOCX

    def test_generic_mime_uses_extension(self):
        assert validate_upload(b"%PDF", "application/octet-stream", "a.pdf", MAX_SIZE) is FileType.PDF

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError, match="Please upload a PDF or DOCX file only."):
            validate_upload(b"hello", "text/plain", "notes.txt", MAX_SIZE)

    def test_rejects_zero_bytes(self):
        with pytest.raises(ValidationError, match="File appears to be empty."):
            validate_upload(b"", PDF_MIME, "empty.pdf", MAX_SIZE)

    def test_rejects_oversized(self):
        with pytest.raises(ValidationError, match="File size must be less than 10MB."):
            validate_upload(b"x" * (MAX_SIZE + 1), PDF_MIME, "big.pdf", MAX_SIZE)

    def test_size_limit_is_inclusive(self):
        assert validate_upload(b"x" * 16, PDF_MIME, "a.pdf", 16) is FileType.PDF
