"""Upload checks run before any text extraction or persistence."""

from typing import Optional

from clauseguard.document_processor.extractor import detect_file_type
from clauseguard.models import FileType
from clauseguard.utils.errors import ValidationError


def validate_upload(
    data: bytes,
    mime_type: Optional[str],
    file_name: str,
    max_size_bytes: int,
) -> FileType:
    """
    Reject uploads that can never be analysed.

    Returns:
        The resolved file type

    Raises:
        ValidationError: Wrong type, empty file, or file too large
    """
    file_type = detect_file_type(mime_type, file_name)
    if file_type is None:
        raise ValidationError(
            "Please upload a PDF or DOCX file only.",
            {"file_name": file_name, "mime_type": mime_type},
        )

    size = len(data)
    if size == 0:
        raise ValidationError("File appears to be empty.", {"file_name": file_name})

    if size > max_size_bytes:
        limit_mb = max_size_bytes / (1024 * 1024)
        raise ValidationError(
            f"File size must be less than {limit_mb:g}MB.",
            {"file_name": file_name, "file_size": size, "max_size": max_size_bytes},
        )

    return file_type
