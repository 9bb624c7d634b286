"""
Text extraction from uploaded PDF and DOCX contracts.

PDF pages go through three strategies in order (word items, character-level
traversal, form fields and annotations) and pages that yield nothing are
skipped, which is how scanned or image-only pages show up. DOCX files are
read as raw text first and, if the package cannot be parsed that way, as
stripped document markup.
"""

import io
import math
import re
import zipfile
from pathlib import PurePath
from typing import Callable, List, Optional, Tuple

import docx
import fitz  # PyMuPDF
from bs4 import BeautifulSoup

from clauseguard.config import get_settings
from clauseguard.models import MIME_TYPES, ExtractedText, FileType
from clauseguard.utils.errors import (
    CorruptedFileError,
    EmptyDocumentError,
    EmptyFileError,
    ExtractionError,
    InvalidFormatError,
    NoTextExtractedError,
    PasswordProtectedError,
    UnsupportedFormatError,
)
from clauseguard.utils.logging import get_logger, log_performance

logger = get_logger(__name__)

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

EXTENSION_TYPES = {
    ".pdf": FileType.PDF,
    ".docx": FileType.DOCX,
}

# Non-breaking, typographic and zero-width spaces plus line/paragraph separators
UNICODE_SPACES = re.compile(r"[\u00a0\u2000-\u200b\u2028\u2029]")
WHITESPACE = re.compile(r"\s+")
PUNCTUATION = re.compile(r"[^\w\s]")

# OLE compound file header: password-protected Office files are wrapped in one
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# (pattern, exception class, user-facing message) checked in order
FAILURE_PATTERNS = [
    (
        re.compile(r"password|encrypt", re.IGNORECASE),
        PasswordProtectedError,
        "This {kind} is password protected. Please upload an unprotected version.",
    ),
    (
        re.compile(r"corrupt|damaged|broken|repair", re.IGNORECASE),
        CorruptedFileError,
        "The {kind} file appears to be corrupted. Please try uploading a different file.",
    ),
    (
        re.compile(r"not a zip|invalid|format|no objects found|not a (pdf|docx)", re.IGNORECASE),
        InvalidFormatError,
        "The uploaded file is not a valid {kind} document.",
    ),
]

OcrHook = Callable[[bytes], str]


def detect_file_type(mime_type: Optional[str], file_name: str) -> Optional[FileType]:
    """
    Resolve the upload format from its declared MIME type.

    Generic or missing MIME types fall back to the filename extension.
    """
    declared = (mime_type or "").split(";")[0].strip().lower()
    for file_type, known_mime in MIME_TYPES.items():
        if declared == known_mime:
            return file_type

    if declared in GENERIC_MIME_TYPES:
        return EXTENSION_TYPES.get(PurePath(file_name).suffix.lower())

    return None


def normalize_whitespace(text: str) -> str:
    """Replace unicode space variants and collapse runs of whitespace."""
    return WHITESPACE.sub(" ", UNICODE_SPACES.sub(" ", text)).strip()


def count_words(text: str) -> int:
    """Count words after replacing punctuation with spaces ("don't" counts as two)."""
    return len(PUNCTUATION.sub(" ", text).split())


class DocumentExtractor:
    """Extract plain text, word counts and page counts from PDF and DOCX bytes."""

    def __init__(
        self,
        words_per_page: Optional[int] = None,
        ocr_hook: Optional[OcrHook] = None,
    ) -> None:
        """
        Initialize the document extractor.

        Args:
            words_per_page: Words per estimated page for formats without pages
            ocr_hook: Optional callable turning a rendered page (PNG bytes)
                into text, consulted only for pages with no extractable text
        """
        self.settings = get_settings()
        self.words_per_page = words_per_page or self.settings.words_per_page
        self.ocr_hook = ocr_hook

    @log_performance
    async def extract(
        self,
        data: bytes,
        mime_type: Optional[str],
        file_name: str,
    ) -> ExtractedText:
        """
        Extract text from an uploaded file.

        Args:
            data: Raw file bytes
            mime_type: Declared MIME type (may be generic)
            file_name: Original file name, used for type inference

        Returns:
            Extracted text with word and page counts

        Raises:
            UnsupportedFormatError: If the type is neither PDF nor DOCX
            EmptyFileError: If the file has no bytes
            NoTextExtractedError: If no readable words were found
            ExtractionError: For format-specific failures
        """
        file_type = detect_file_type(mime_type, file_name)
        if file_type is None:
            raise UnsupportedFormatError(mime_type, file_name)

        if not data:
            raise EmptyFileError(
                f"{file_type.value.upper()} file appears to be empty",
                {"file_name": file_name},
            )

        logger.info(
            f"Extracting {file_type.value.upper()}: {file_name} ({len(data) / 1024:.1f} KB)",
            extra={"file_type": file_type.value, "file_size": len(data)},
        )

        if file_type is FileType.PDF:
            raw_text, page_count = self._extract_pdf(data, file_name)
        else:
            raw_text, page_count = self._extract_docx(data, file_name)

        text = normalize_whitespace(raw_text)
        word_count = count_words(text)
        if not text or word_count == 0:
            raise NoTextExtractedError(
                "No readable words found in the document. Please check if the file contains text content.",
                {"file_name": file_name},
            )

        if word_count < 10:
            logger.warning(f"Very few words extracted from {file_name} ({word_count})")

        if file_type is FileType.DOCX:
            page_count = self.estimate_page_count(word_count)

        logger.info(
            f"Extracted {word_count} words from {file_name}",
            extra={"word_count": word_count, "page_count": page_count},
        )

        return ExtractedText(
            text=text,
            word_count=word_count,
            page_count=page_count,
            file_type=file_type,
        )

    def estimate_page_count(self, word_count: int) -> int:
        return max(1, math.ceil(word_count / self.words_per_page))

    # -------------------------------------------------------------------------
    # PDF
    # -------------------------------------------------------------------------

    def _extract_pdf(self, data: bytes, file_name: str) -> Tuple[str, int]:
        """Return page texts joined by newlines and the real page count."""
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                if doc.needs_pass:
                    raise PasswordProtectedError(
                        "This PDF is password protected. Please upload an unprotected version.",
                        {"file_name": file_name},
                    )

                page_count = doc.page_count
                if page_count == 0:
                    raise EmptyDocumentError("PDF contains no pages", {"file_name": file_name})

                page_texts: List[str] = []
                for page_index in range(page_count):
                    try:
                        page_text = self._extract_page_text(doc[page_index])
                    except Exception as e:
                        logger.warning(f"Error processing page {page_index + 1} of {file_name}: {e}")
                        continue

                    if page_text:
                        page_texts.append(page_text)
                    else:
                        logger.debug(f"Page {page_index + 1} yielded no text, likely image-only")

        except ExtractionError:
            raise
        except fitz.FileDataError as e:
            raise classify_failure(e, "PDF", file_name, default=CorruptedFileError)
        except Exception as e:
            raise classify_failure(e, "PDF", file_name)

        if not page_texts:
            raise NoTextExtractedError(
                "No text could be extracted from the PDF. This may be a scanned document "
                "or image-based PDF that requires OCR processing.",
                {"file_name": file_name, "page_count": page_count},
            )

        return "\n".join(page_texts), page_count

    def _extract_page_text(self, page: "fitz.Page") -> str:
        """Try each page strategy in order and keep the first non-empty result."""
        strategies = (self._text_from_words, self._text_from_chars, self._text_from_fields)
        for strategy in strategies:
            text = strategy(page)
            if text:
                return text

        if self.ocr_hook is not None:
            return self._text_from_ocr_hook(page)
        return ""

    @staticmethod
    def _text_from_words(page: "fitz.Page") -> str:
        """Concatenate normalized word items."""
        parts = []
        for word in page.get_text("words"):
            item = normalize_whitespace(word[4]) if len(word) > 4 and isinstance(word[4], str) else ""
            if item:
                parts.append(item)
        return " ".join(parts)

    @staticmethod
    def _text_from_chars(page: "fitz.Page") -> str:
        """Rebuild spans from their per-character records."""
        parts = []
        raw = page.get_text("rawdict")
        for block in raw.get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    if span.get("text"):
                        chunk = span["text"]
                    else:
                        chunk = "".join(char.get("c", "") for char in span.get("chars", []))
                    chunk = normalize_whitespace(chunk)
                    if chunk:
                        parts.append(chunk)
        return " ".join(parts)

    @staticmethod
    def _text_from_fields(page: "fitz.Page") -> str:
        """Read form field values and annotation contents."""
        parts = []
        try:
            for widget in page.widgets() or []:
                value = widget.field_value
                if isinstance(value, str) and value.strip():
                    parts.append(normalize_whitespace(value))
            for annot in page.annots() or []:
                content = (annot.info or {}).get("content", "")
                if content and content.strip():
                    parts.append(normalize_whitespace(content))
        except Exception as e:
            logger.warning(f"Form field extraction failed on page {page.number + 1}: {e}")
        return " ".join(parts)

    def _text_from_ocr_hook(self, page: "fitz.Page") -> str:
        pix = page.get_pixmap(matrix=fitz.Matrix(2, 2))  # 2x zoom for legibility
        try:
            return normalize_whitespace(self.ocr_hook(pix.tobytes("png")) or "")
        except Exception as e:
            logger.warning(f"OCR hook failed on page {page.number + 1}: {e}")
            return ""

    # -------------------------------------------------------------------------
    # DOCX
    # -------------------------------------------------------------------------

    def _extract_docx(self, data: bytes, file_name: str) -> Tuple[str, int]:
        """Return document text; page count is estimated later from words."""
        if data.startswith(OLE_SIGNATURE):
            raise PasswordProtectedError(
                "This DOCX file may be password protected. Please upload an unprotected version.",
                {"file_name": file_name},
            )

        try:
            text = self._docx_raw_text(data)
            method = "raw text"
        except Exception as raw_error:
            logger.warning(f"Raw text extraction failed for {file_name}, trying markup: {raw_error}")
            try:
                text = self._docx_markup_text(data)
                method = "markup conversion"
            except Exception as markup_error:
                raise classify_failure(markup_error, "DOCX", file_name)

        logger.debug(f"DOCX processed using {method}", extra={"text_length": len(text)})

        if not text.strip():
            raise NoTextExtractedError(
                "No text could be extracted from the DOCX document. "
                "The file may be corrupted or contain only images.",
                {"file_name": file_name},
            )

        return text, 1

    @staticmethod
    def _docx_raw_text(data: bytes) -> str:
        document = docx.Document(io.BytesIO(data))
        parts = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                parts.append(" ".join(cell.text for cell in row.cells))
        return "\n".join(part for part in parts if part.strip())

    @staticmethod
    def _docx_markup_text(data: bytes) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            markup = archive.read("word/document.xml").decode("utf-8", errors="replace")

        # Paragraph and break boundaries become newlines before tags are dropped
        markup = re.sub(r"</w:p>|<w:br\s*/>|<w:tab\s*/>", "\n", markup)
        return BeautifulSoup(markup, "html.parser").get_text()


def classify_failure(
    error: Exception,
    kind: str,
    file_name: str,
    default: type = ExtractionError,
) -> ExtractionError:
    """Map an underlying parser error onto the extraction taxonomy by message."""
    message = str(error)
    for pattern, error_class, template in FAILURE_PATTERNS:
        if pattern.search(message):
            return error_class(template.format(kind=kind), {"file_name": file_name, "cause": message})

    if default is ExtractionError:
        return ExtractionError(f"Failed to process {kind}: {message}", {"file_name": file_name})
    return default(
        f"The {kind} file appears to be corrupted. Please try uploading a different file.",
        {"file_name": file_name, "cause": message},
    )


def create_document_extractor(ocr_hook: Optional[OcrHook] = None) -> DocumentExtractor:
    """Create a document extractor instance with settings."""
    settings = get_settings()
    return DocumentExtractor(words_per_page=settings.words_per_page, ocr_hook=ocr_hook)
