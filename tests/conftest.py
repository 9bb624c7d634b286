"""
Shared fixtures: generated PDF/DOCX files, contract texts, a scripted model
backend and an in-memory analysis service.
"""

import asyncio
import io
import json
from typing import Any, Dict, List, Optional, Sequence, Union

import docx
import fitz  # PyMuPDF
import pytest

from clauseguard.analysis.local_analyzer import LocalAnalyzer
from clauseguard.analysis.orchestrator import ContractAnalysisService
from clauseguard.config import Settings
from clauseguard.document_processor.extractor import DocumentExtractor
from clauseguard.llm.backends import ModelBackend
from clauseguard.llm.client import ModelClient
from clauseguard.models import MIME_TYPES, FileType
from clauseguard.storage import ContractRepository, InMemoryRecordStore, LocalObjectStore

PDF_MIME = MIME_TYPES[FileType.PDF]
DOCX_MIME = MIME_TYPES[FileType.DOCX]

FULL_CONTRACT = (
    "SERVICE AGREEMENT. This Service Agreement is made between Acme Corp and Beta LLC. "
    "1. Payment. Client shall pay the fee of $5,000 within 30 days of invoice. "
    "2. Termination. Either party may terminate this Agreement with 30 days notice. "
    "3. Liability. Neither party shall be liable for indirect damages. "
    "4. Warranties. Provider warrants that services will be performed professionally. "
    "5. Notices. All notices shall be in writing and sent to the addresses above. "
    "6. Governing Law. This Agreement shall be governed by the laws of the State of New York."
)

# No clause keyword occurs anywhere in this text, not even inside a word
BARE_TEXT = (
    "The gardener will water the roses every Tuesday morning. "
    "The owner supplies hoses and buckets. "
    "Both people agree to keep the gate closed and the dog inside the yard."
)


def make_pdf(pages: Sequence[str], encrypt: bool = False) -> bytes:
    """Build a PDF with one page per entry; empty entries make blank pages."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_textbox(fitz.Rect(72, 72, 540, 770), text, fontsize=10)

    if encrypt:
        data = doc.tobytes(
            encryption=fitz.PDF_ENCRYPT_AES_256,
            user_pw="user-secret",
            owner_pw="owner-secret",
        )
    else:
        data = doc.tobytes()
    doc.close()
    return data


def make_docx(paragraphs: Sequence[str], table_rows: Optional[List[List[str]]] = None) -> bytes:
    document = docx.Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)

    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for row, values in zip(table.rows, table_rows):
            for cell, value in zip(row.cells, values):
                cell.text = value

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


Reply = Union[str, Exception]


class FakeBackend(ModelBackend):
    """Backend returning scripted replies in order, optionally after a delay."""

    name = "fake"

    def __init__(self, replies: Sequence[Reply] = (), delay: float = 0.0) -> None:
        self.replies = list(replies)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.cancelled = False
        self.closed = False

    async def create_message(self, model, system, messages, temperature, max_tokens) -> str:
        self.calls.append({"model": model, "system": system, "messages": messages})
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise

        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def full_contract() -> str:
    return FULL_CONTRACT


@pytest.fixture
def bare_text() -> str:
    return BARE_TEXT


@pytest.fixture
def local_analyzer() -> LocalAnalyzer:
    return LocalAnalyzer()


@pytest.fixture
def model_analysis(local_analyzer) -> Dict[str, Any]:
    """A schema-complete analysis as a model would return it."""
    analysis = local_analyzer.analyze(FULL_CONTRACT)
    analysis["metadata"]["contractType"] = "Master Services Agreement"
    analysis["executive_summary"]["key_metrics"]["risk_score"] = 55
    analysis["executive_summary"]["key_metrics"]["safety_rating"] = "Moderate"
    analysis["risk_assessment"]["overall_score"] = 55
    return analysis


@pytest.fixture
def model_reply(model_analysis) -> str:
    return "```json\n" + json.dumps(model_analysis) + "\n```"


@pytest.fixture
def settings(tmp_path) -> Settings:
    settings = Settings()
    settings.analysis_timeout_seconds = 2.0
    settings.max_upload_size_bytes = 1024 * 1024
    settings.storage_dir = tmp_path / "uploads"
    return settings


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def repository(store) -> ContractRepository:
    return ContractRepository(store)


@pytest.fixture
def make_service(repository, settings):
    """Build a service around the shared in-memory store and a fake backend."""

    def _make(backend: Optional[FakeBackend] = None, **overrides) -> ContractAnalysisService:
        model_client = ModelClient(backend, models=["model-a", "model-b"]) if backend else None
        return ContractAnalysisService(
            repository=repository,
            object_store=LocalObjectStore(settings.storage_dir),
            extractor=DocumentExtractor(words_per_page=settings.words_per_page),
            model_client=model_client,
            local_analyzer=LocalAnalyzer(),
            settings=settings,
            **overrides,
        )

    return _make
