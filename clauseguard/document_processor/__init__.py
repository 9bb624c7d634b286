"""
Document processing for uploaded contracts.

Upload validation and layered text extraction for PDF and DOCX files.
"""

from clauseguard.document_processor.extractor import (
    DocumentExtractor,
    create_document_extractor,
    detect_file_type,
)
from clauseguard.document_processor.validation import validate_upload

__all__ = [
    "DocumentExtractor",
    "create_document_extractor",
    "detect_file_type",
    "validate_upload",
]
