"""
End-to-end contract analysis.

Upload validation, text extraction, record creation, the model-versus-timeout
race with deterministic local fallback, and persistence of the versioned
analysis payload. Every run that gets past record creation ends with the
contract either completed (with a current analysis) or failed.
"""

import asyncio
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from clauseguard.analysis.legacy_adapter import build_payload, read_payload
from clauseguard.analysis.local_analyzer import LocalAnalyzer, detect_contract_type
from clauseguard.analysis.sanitizer import parse_model_output
from clauseguard.analysis.validator import find_violations
from clauseguard.config import Settings, get_settings
from clauseguard.document_processor.extractor import DocumentExtractor, create_document_extractor
from clauseguard.document_processor.validation import validate_upload
from clauseguard.llm.client import ModelClient, create_model_client
from clauseguard.llm.prompts import (
    CHAT_HISTORY_TURNS,
    build_analysis_messages,
    build_chat_messages,
    build_chat_system_prompt,
)
from clauseguard.models import (
    AnalysisOutcome,
    AnalysisRecord,
    AnalysisRequest,
    ChatMessage,
    ContractRecord,
    Document,
    ProcessingStatus,
    new_id,
    utcnow,
)
from clauseguard.storage import (
    CONTRACTS,
    ContractRepository,
    LocalObjectStore,
    ObjectStore,
    create_record_store,
)
from clauseguard.utils.errors import (
    MissingConfigurationError,
    NoTextExtractedError,
    RecordNotFoundError,
    ResponseParseError,
    SchemaValidationError,
    ValidationError,
)
from clauseguard.utils.logging import LogContext, get_logger, log_performance

logger = get_logger(__name__)

MODEL = "model"
LOCAL = "local"


def _consume_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


def _risk_score(analysis: Dict[str, Any]) -> int:
    score = analysis["executive_summary"]["key_metrics"]["risk_score"]
    return int(max(0, min(100, round(score))))


class ContractAnalysisService:
    """
    Orchestrates contract analysis.

    This class provides high-level methods for:
    - Uploading a contract and analysing it in one call
    - Re-running analysis for a stored contract
    - Reading contracts and their current analysis
    - Answering questions about a stored contract
    """

    def __init__(
        self,
        repository: ContractRepository,
        object_store: ObjectStore,
        extractor: Optional[DocumentExtractor] = None,
        model_client: Optional[ModelClient] = None,
        local_analyzer: Optional[LocalAnalyzer] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the service with its collaborators.

        Without a model client every analysis comes from the local analyzer.
        """
        self.settings = settings or get_settings()
        self.repository = repository
        self.object_store = object_store
        self.extractor = extractor or create_document_extractor()
        self.model_client = model_client
        self.local_analyzer = local_analyzer or LocalAnalyzer()
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.repository.initialize()
        self._initialized = True
        logger.info(
            "Contract analysis service initialized",
            extra={"model_enabled": self.model_client is not None},
        )

    async def close(self) -> None:
        await self.repository.close()
        if self.model_client is not None:
            await self.model_client.close()
        self._initialized = False

    # =========================================================================
    # Write side
    # =========================================================================

    @log_performance
    async def upload_and_analyze(
        self,
        data: bytes,
        file_name: str,
        mime_type: Optional[str],
        user_id: str,
    ) -> AnalysisOutcome:
        """
        Validate, extract, store and analyse an uploaded contract.

        Args:
            data: Uploaded file bytes
            file_name: Original file name
            mime_type: Declared MIME type
            user_id: Owner of the contract

        Returns:
            The completed contract and its analysis

        Raises:
            ValidationError: Upload rejected; nothing is stored
            ExtractionError: No usable text; nothing is stored
            PersistenceError: Storage failed; the contract is marked failed
                when it already exists
        """
        await self.initialize()

        file_type = validate_upload(data, mime_type, file_name, self.settings.max_upload_size_bytes)
        extracted = await self.extractor.extract(data, mime_type, file_name)
        storage_path = await self.object_store.put(user_id, file_name, data)

        document = Document(
            file_name=file_name,
            title=Path(file_name).stem or file_name,
            mime_type=mime_type or file_type.mime_type,
            file_type=file_type,
            file_size=len(data),
            storage_path=storage_path,
            text=extracted.text,
            word_count=extracted.word_count,
            page_count=extracted.page_count,
        )
        contract = await self.repository.create_contract(
            ContractRecord.from_document(document, user_id, status=ProcessingStatus.PROCESSING)
        )

        with LogContext(contract_id=contract.id):
            try:
                return await self._analyze_and_store(contract)
            except Exception as e:
                await self._mark_failed(contract.id, e)
                raise

    @log_performance
    async def reanalyze(self, contract_id: str) -> AnalysisOutcome:
        """
        Run analysis again for a stored contract using its extracted text.

        Raises:
            RecordNotFoundError: Unknown contract
            InvalidStatusTransitionError: Contract is already processing
            NoTextExtractedError: Stored contract has no text
        """
        await self.initialize()

        contract = await self.repository.get_contract(contract_id)
        if not contract.extracted_text.strip():
            raise NoTextExtractedError(
                "No text content available for analysis", {"contract_id": contract_id}
            )

        contract = await self.repository.update_status(
            contract_id, ProcessingStatus.PROCESSING, restart=True
        )

        with LogContext(contract_id=contract_id):
            try:
                return await self._analyze_and_store(contract)
            except Exception as e:
                await self._mark_failed(contract_id, e)
                raise

    async def _analyze_and_store(self, contract: ContractRecord) -> AnalysisOutcome:
        request = AnalysisRequest(
            text=contract.extracted_text,
            timeout_seconds=self.settings.analysis_timeout_seconds,
            contract_id=contract.id,
            user_id=contract.user_id,
            page_count=contract.page_count,
            word_count=contract.word_count,
        )
        analysis_id = new_id()
        analysis, source = await self.run_analysis(request, analysis_id)

        payload = build_payload(analysis)
        record = AnalysisRecord(
            id=analysis_id,
            contract_id=contract.id,
            user_id=contract.user_id,
            schema_version=payload["schema_version"],
            analysis=payload["analysis"],
            legacy=payload["legacy"],
            risk_score=_risk_score(analysis),
        )
        updated = await self.repository.save_analysis(record)

        logger.info(
            f"Contract {contract.id} analysed",
            extra={"source": source, "risk_score": record.risk_score},
        )
        return AnalysisOutcome(contract=updated, analysis=record)

    async def _mark_failed(self, contract_id: str, error: Exception) -> None:
        """Best-effort move to failed; a failure here is logged, never raised."""
        try:
            await self.repository.update_status(
                contract_id, ProcessingStatus.FAILED, error_message=str(error)[:1000]
            )
            logger.warning(
                f"Contract {contract_id} marked failed: {type(error).__name__}",
                extra={"error": str(error)},
            )
        except Exception as mark_error:
            logger.error(
                f"Could not mark contract {contract_id} as failed: {mark_error}",
                extra={"original_error": str(error)},
            )

    # =========================================================================
    # Analysis
    # =========================================================================

    async def run_analysis(self, request: AnalysisRequest, analysis_id: str) -> Tuple[Dict[str, Any], str]:
        """
        Race the model path against the timeout; fall back to local analysis.

        Returns:
            (stamped analysis, "model" or "local")
        """
        started = time.perf_counter()
        analysis: Optional[Dict[str, Any]] = None

        if self.model_client is not None:
            analysis = await self._race_model(request)

        source = MODEL if analysis is not None else LOCAL
        if analysis is None:
            analysis = self.local_analyzer.analyze(request.text)

        self._stamp_metadata(analysis, request, analysis_id, time.perf_counter() - started)
        return analysis, source

    async def _race_model(self, request: AnalysisRequest) -> Optional[Dict[str, Any]]:
        task = asyncio.create_task(self._model_analysis(request))
        try:
            done, _ = await asyncio.wait({task}, timeout=request.timeout_seconds)
        finally:
            if not task.done():
                task.cancel()
                task.add_done_callback(_consume_outcome)

        if task not in done:
            logger.warning(
                f"Model analysis exceeded {request.timeout_seconds}s; using local analysis",
                extra={"timeout_seconds": request.timeout_seconds},
            )
            return None
        if task.cancelled():
            return None

        error = task.exception()
        if error is not None:
            logger.warning(
                f"Model analysis failed ({type(error).__name__}); using local analysis",
                extra={"error": str(error)},
            )
            return None
        return task.result()

    async def _model_analysis(self, request: AnalysisRequest) -> Dict[str, Any]:
        messages = build_analysis_messages(request.text, self.settings.max_contract_chars)
        raw = await self.model_client.complete(messages, force_json=True)

        parsed = parse_model_output(raw)
        if parsed is None:
            raise ResponseParseError("Model output is not a JSON object", {"response_length": len(raw)})

        violations = find_violations(parsed)
        if violations:
            raise SchemaValidationError(violations)
        return parsed

    @staticmethod
    def _stamp_metadata(
        analysis: Dict[str, Any],
        request: AnalysisRequest,
        analysis_id: str,
        processing_time: float,
    ) -> None:
        metadata = analysis.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        if not metadata.get("contractType"):
            metadata["contractType"] = detect_contract_type(request.text)

        metadata.update(
            analysisId=analysis_id,
            contractId=request.contract_id,
            userId=request.user_id,
            analysisDate=utcnow().isoformat(),
            pageCount=request.page_count,
            wordCount=request.word_count,
            processingTime=round(processing_time, 3),
        )
        analysis["metadata"] = metadata

    # =========================================================================
    # Read side
    # =========================================================================

    async def get_contract(self, contract_id: str) -> ContractRecord:
        await self.initialize()
        return await self.repository.get_contract(contract_id)

    async def get_analysis(self, contract_id: str, legacy: bool = False) -> Optional[Dict[str, Any]]:
        """
        Current analysis of a contract, upgraded to the current schema.

        Args:
            contract_id: Contract to read
            legacy: Return the flat legacy view instead of the six sections

        Returns:
            Analysis dict, or None if the contract has never completed
        """
        await self.initialize()
        record = await self.repository.get_current_analysis(contract_id)
        if record is None:
            return None

        if record.schema_version == 1:
            stored = record.analysis
        else:
            stored = {
                "schema_version": record.schema_version,
                "analysis": record.analysis,
                "legacy": record.legacy,
            }
        payload = read_payload(stored)
        return payload["legacy"] if legacy else payload["analysis"]

    async def list_contracts(self, user_id: str) -> List[ContractRecord]:
        await self.initialize()
        return await self.repository.list_contracts(user_id)

    async def count_contracts(self, user_id: str, status: Optional[ProcessingStatus] = None) -> int:
        await self.initialize()
        return await self.repository.count_contracts(user_id, status)

    # =========================================================================
    # Contract Q&A
    # =========================================================================

    async def _owned_contract(self, contract_id: str, user_id: str) -> ContractRecord:
        contract = await self.repository.get_contract(contract_id)
        if contract.user_id != user_id:
            raise RecordNotFoundError(CONTRACTS, contract_id)
        return contract

    @log_performance
    async def ask(self, contract_id: str, user_id: str, question: str) -> ChatMessage:
        """
        Answer a free-text question about a stored contract and record the exchange.

        The contract text goes into the system prompt; the most recent earlier
        exchanges are replayed as conversation turns.

        Raises:
            ValidationError: Blank question
            RecordNotFoundError: Unknown contract, or one owned by another user
            NoTextExtractedError: Contract has no text to answer from
            MissingConfigurationError: No model is configured
            ModelError: Every candidate model failed; nothing is recorded
        """
        await self.initialize()

        question = question.strip()
        if not question:
            raise ValidationError("Question cannot be empty", {"contract_id": contract_id})

        contract = await self._owned_contract(contract_id, user_id)
        if not contract.extracted_text.strip():
            raise NoTextExtractedError(
                "No text content available to answer from", {"contract_id": contract_id}
            )
        if self.model_client is None:
            raise MissingConfigurationError(f"{self.settings.llm_provider.upper()}_API_KEY")

        with LogContext(contract_id=contract_id):
            history = await self.repository.get_chat_history(
                contract_id, user_id, limit=CHAT_HISTORY_TURNS
            )
            answer = await self.model_client.complete(
                build_chat_messages([(m.message, m.response) for m in history], question),
                system_prompt=build_chat_system_prompt(
                    contract.title, contract.extracted_text, self.settings.max_contract_chars
                ),
            )
            return await self.repository.save_chat_message(
                ChatMessage(
                    contract_id=contract_id,
                    user_id=user_id,
                    message=question,
                    response=answer.strip(),
                )
            )

    async def get_chat_history(self, contract_id: str, user_id: str) -> List[ChatMessage]:
        await self.initialize()
        await self._owned_contract(contract_id, user_id)
        return await self.repository.get_chat_history(contract_id, user_id)

    async def clear_chat_history(self, contract_id: str, user_id: str) -> int:
        """Delete a user's exchanges about a contract; returns how many were removed."""
        await self.initialize()
        await self._owned_contract(contract_id, user_id)
        return await self.repository.clear_chat_history(contract_id, user_id)


def create_analysis_service(settings: Optional[Settings] = None) -> ContractAnalysisService:
    """
    Create an analysis service with default components.

    A missing API key disables the model path instead of failing.
    """
    settings = settings or get_settings()

    try:
        model_client = create_model_client(settings)
    except MissingConfigurationError as e:
        logger.warning(f"{e.message}; analyses will use the local analyzer only")
        model_client = None

    return ContractAnalysisService(
        repository=ContractRepository(create_record_store(settings)),
        object_store=LocalObjectStore(settings.storage_dir),
        extractor=DocumentExtractor(words_per_page=settings.words_per_page),
        model_client=model_client,
        local_analyzer=LocalAnalyzer(),
        settings=settings,
    )
