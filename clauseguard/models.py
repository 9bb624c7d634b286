"""
Core data models for the ClauseGuard contract analysis service.

This module defines the Pydantic models used throughout the application
for data validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# Enums
# =============================================================================


class ProcessingStatus(str, Enum):
    """Status of contract analysis."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "ProcessingStatus", restart: bool = False) -> bool:
        """
        Check a status change against the processing state machine.

        pending -> processing -> {completed, failed}. A finished contract may
        only go back to processing through an explicit restart.
        """
        if self is ProcessingStatus.PENDING:
            return target is ProcessingStatus.PROCESSING
        if self is ProcessingStatus.PROCESSING:
            return target in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)
        return restart and target is ProcessingStatus.PROCESSING


class FileType(str, Enum):
    """Supported upload formats."""

    PDF = "pdf"
    DOCX = "docx"

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self]


MIME_TYPES = {
    FileType.PDF: "application/pdf",
    FileType.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


# =============================================================================
# Base Models
# =============================================================================


class TimestampedModel(BaseModel):
    """Base model with timestamp fields."""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = utcnow()


# =============================================================================
# Document Models
# =============================================================================


class ExtractedText(BaseModel):
    """Plain text recovered from an uploaded file."""

    text: str = Field(..., min_length=1, description="Whitespace-collapsed text")
    word_count: int = Field(..., ge=1, description="Countable words in text")
    page_count: int = Field(..., ge=1, description="Real or estimated page count")
    file_type: FileType


class Document(BaseModel):
    """Uploaded file metadata together with its extracted text."""

    file_name: str = Field(..., min_length=1)
    title: str = Field(..., description="File name without extension")
    mime_type: str
    file_type: FileType
    file_size: int = Field(..., ge=1, description="File size in bytes")
    storage_path: Optional[str] = Field(None, description="Object storage location")
    text: str = Field(..., min_length=1)
    word_count: int = Field(..., ge=1)
    page_count: int = Field(..., ge=1)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Analysis is never attempted on blank text."""
        if not v.strip():
            raise ValueError("Document text cannot be empty or just whitespace")
        return v


class AnalysisRequest(BaseModel):
    """Input to one analysis run."""

    text: str = Field(..., min_length=1)
    timeout_seconds: float = Field(..., gt=0)
    contract_id: str
    user_id: str
    page_count: int = Field(1, ge=1)
    word_count: int = Field(0, ge=0)


# =============================================================================
# Persistence Models
# =============================================================================


class ContractRecord(TimestampedModel):
    """Row of the contracts table: one uploaded document and its analysis state."""

    id: str = Field(default_factory=new_id)
    user_id: str
    title: str
    file_name: str
    file_size: int = Field(..., ge=0)
    mime_type: str
    storage_path: Optional[str] = None
    extracted_text: str
    word_count: int = Field(0, ge=0)
    page_count: int = Field(1, ge=1)
    status: ProcessingStatus = ProcessingStatus.PENDING
    current_analysis_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_document(
        cls,
        document: Document,
        user_id: str,
        status: ProcessingStatus = ProcessingStatus.PROCESSING,
    ) -> "ContractRecord":
        return cls(
            user_id=user_id,
            title=document.title,
            file_name=document.file_name,
            file_size=document.file_size,
            mime_type=document.mime_type,
            storage_path=document.storage_path,
            extracted_text=document.text,
            word_count=document.word_count,
            page_count=document.page_count,
            status=status,
        )


class AnalysisRecord(TimestampedModel):
    """Row of the analysis_results table."""

    id: str = Field(default_factory=new_id)
    contract_id: str
    user_id: str
    schema_version: int = Field(..., ge=1)
    analysis: Dict[str, Any] = Field(..., description="Current six-section analysis")
    legacy: Dict[str, Any] = Field(default_factory=dict, description="Flat legacy view")
    risk_score: int = Field(..., ge=0, le=100)


class AnalysisOutcome(BaseModel):
    """What an orchestration run hands back to its caller."""

    contract: ContractRecord
    analysis: AnalysisRecord


class ChatMessage(TimestampedModel):
    """Row of the chat_messages table: one question about a contract and its answer."""

    id: str = Field(default_factory=new_id)
    contract_id: str
    user_id: str
    message: str = Field(..., min_length=1, description="User question")
    response: str = Field(..., description="Model answer")
