"""
End-to-end tests for the contract analysis service.
"""

import asyncio
import json

import pytest
import pytest_asyncio

from clauseguard.analysis.orchestrator import create_analysis_service
from clauseguard.models import AnalysisRecord, AnalysisRequest, ProcessingStatus
from clauseguard.storage.base import ANALYSIS_RESULTS, CHAT_MESSAGES, CONTRACTS
from clauseguard.utils.errors import (
    InvalidStatusTransitionError,
    MissingConfigurationError,
    ModelError,
    NoTextExtractedError,
    PersistenceError,
    RecordNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from tests.conftest import FULL_CONTRACT, PDF_MIME, FakeBackend, make_pdf


@pytest.fixture
def contract_pdf() -> bytes:
    return make_pdf([FULL_CONTRACT])


class TestUploadAndAnalyze:
    @pytest.mark.asyncio
    async def test_model_result_is_stored(self, make_service, contract_pdf, model_reply):
        backend = FakeBackend([model_reply])
        service = make_service(backend)

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.contract.current_analysis_id == outcome.analysis.id
        assert outcome.analysis.risk_score == 55
        metadata = outcome.analysis.analysis["metadata"]
        assert metadata["contractType"] == "Master Services Agreement"
        assert metadata["analysisId"] == outcome.analysis.id
        assert metadata["contractId"] == outcome.contract.id
        assert metadata["userId"] == "user-1"
        assert metadata["pageCount"] == 1
        assert metadata["wordCount"] == outcome.contract.word_count
        assert metadata["analysisDate"]
        assert outcome.analysis.legacy["riskScore"] == 55
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_model_failure_falls_back_to_local(self, make_service, contract_pdf):
        backend = FakeBackend([ModelError("overloaded", status_code=503)] * 2)
        service = make_service(backend)

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.analysis.analysis["metadata"]["contractType"] == "Service Agreement"
        assert outcome.analysis.risk_score == 20
        assert len(backend.calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_falls_back_and_cancels_model_call(self, make_service, settings, contract_pdf, model_reply):
        settings.analysis_timeout_seconds = 0.1
        backend = FakeBackend([model_reply], delay=5)
        service = make_service(backend)

        outcome = await asyncio.wait_for(
            service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1"), timeout=3
        )
        await asyncio.sleep(0.01)

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.analysis.analysis["metadata"]["contractType"] == "Service Agreement"
        assert backend.cancelled

    @pytest.mark.asyncio
    async def test_unusable_reply_falls_back(self, make_service, contract_pdf):
        service = make_service(FakeBackend(['```json\n{"a":1,}\n```']))

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.analysis.analysis["metadata"]["contractType"] == "Service Agreement"
        assert "executive_summary" in outcome.analysis.analysis

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", ["NaN", "Infinity", "1e999"])
    async def test_non_finite_risk_score_falls_back(self, make_service, contract_pdf, model_analysis, score):
        reply = json.dumps(model_analysis).replace('"risk_score": 55', f'"risk_score": {score}')
        assert score in reply
        service = make_service(FakeBackend([reply]))

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.analysis.risk_score == 20
        assert outcome.analysis.analysis["metadata"]["contractType"] == "Service Agreement"

    @pytest.mark.asyncio
    async def test_prose_reply_falls_back(self, make_service, contract_pdf):
        service = make_service(FakeBackend(["I cannot analyze this document."]))

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.analysis.risk_score == 20

    @pytest.mark.asyncio
    async def test_without_model_client(self, make_service, contract_pdf):
        outcome = await make_service().upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.analysis.risk_score == 20

    @pytest.mark.asyncio
    async def test_original_file_is_stored(self, make_service, contract_pdf):
        service = make_service()

        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        assert outcome.contract.storage_path == "user-1/msa.pdf"
        assert await service.object_store.get(outcome.contract.storage_path) == contract_pdf
        assert outcome.contract.title == "msa"


class TestRejectedUploads:
    @pytest.mark.asyncio
    async def test_empty_file_creates_nothing(self, make_service, store):
        with pytest.raises(ValidationError):
            await make_service().upload_and_analyze(b"", "empty.pdf", PDF_MIME, "user-1")

        assert await store.count(CONTRACTS) == 0

    @pytest.mark.asyncio
    async def test_oversized_file(self, make_service, settings, store):
        data = b"%PDF" + b"0" * settings.max_upload_size_bytes

        with pytest.raises(ValidationError):
            await make_service().upload_and_analyze(data, "big.pdf", PDF_MIME, "user-1")

        assert await store.count(CONTRACTS) == 0

    @pytest.mark.asyncio
    async def test_text_file_rejected(self, make_service, store):
        with pytest.raises(ValidationError):
            await make_service().upload_and_analyze(b"hello", "notes.txt", "text/plain", "user-1")

    @pytest.mark.asyncio
    async def test_blank_pdf_creates_nothing(self, make_service, store):
        with pytest.raises(NoTextExtractedError):
            await make_service().upload_and_analyze(make_pdf([""]), "scan.pdf", PDF_MIME, "user-1")

        assert await store.count(CONTRACTS) == 0


class TestFailureHandling:
    @pytest.mark.asyncio
    async def test_persistence_failure_marks_contract_failed(self, make_service, repository, store, contract_pdf):
        async def broken_save(analysis):
            raise PersistenceError("disk full")

        repository.save_analysis = broken_save
        service = make_service()

        with pytest.raises(PersistenceError, match="disk full"):
            await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        [row] = await store.select_by(CONTRACTS, "user_id", "user-1")
        assert row["status"] == ProcessingStatus.FAILED.value
        assert row["error_message"] == "disk full"
        assert await store.count(ANALYSIS_RESULTS) == 0

    @pytest.mark.asyncio
    async def test_failure_to_mark_failed_is_swallowed(self, make_service, repository, contract_pdf):
        async def broken_save(analysis):
            raise PersistenceError("disk full")

        async def broken_update(*args, **kwargs):
            raise PersistenceError("connection lost")

        repository.save_analysis = broken_save
        repository.update_status = broken_update

        with pytest.raises(PersistenceError, match="disk full"):
            await make_service().upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")


class TestReanalyze:
    @pytest.mark.asyncio
    async def test_rerun_moves_current_analysis(self, make_service, repository, contract_pdf, model_reply):
        service = make_service(FakeBackend([ModelError("down", status_code=500)] * 2 + [model_reply]))
        first = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        second = await service.reanalyze(first.contract.id)

        assert second.analysis.id != first.analysis.id
        assert second.contract.current_analysis_id == second.analysis.id
        assert second.analysis.risk_score == 55
        assert len(await repository.list_analyses(first.contract.id)) == 2
        assert (await service.get_analysis(first.contract.id))["metadata"]["analysisId"] == second.analysis.id

    @pytest.mark.asyncio
    async def test_rerun_of_failed_contract(self, make_service, repository, contract_pdf):
        async def broken_save(analysis):
            raise PersistenceError("disk full")

        original_save = repository.save_analysis
        repository.save_analysis = broken_save
        service = make_service()
        with pytest.raises(PersistenceError):
            await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")
        [contract] = await service.list_contracts("user-1")
        repository.save_analysis = original_save

        outcome = await service.reanalyze(contract.id)

        assert outcome.contract.status is ProcessingStatus.COMPLETED
        assert outcome.contract.error_message is None

    @pytest.mark.asyncio
    async def test_unknown_contract(self, make_service):
        with pytest.raises(RecordNotFoundError):
            await make_service().reanalyze("missing")

    @pytest.mark.asyncio
    async def test_contract_already_processing(self, make_service, repository, contract_pdf):
        service = make_service()
        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")
        await repository.update_status(outcome.contract.id, ProcessingStatus.PROCESSING, restart=True)

        with pytest.raises(InvalidStatusTransitionError):
            await service.reanalyze(outcome.contract.id)

        assert (await service.get_contract(outcome.contract.id)).status is ProcessingStatus.PROCESSING


class TestReadSide:
    @pytest.mark.asyncio
    async def test_legacy_view(self, make_service, contract_pdf, model_reply):
        service = make_service(FakeBackend([model_reply]))
        outcome = await service.upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")

        legacy = await service.get_analysis(outcome.contract.id, legacy=True)

        assert legacy["riskScore"] == 55
        assert legacy["overall_risk_level"] == "Medium"

    @pytest.mark.asyncio
    async def test_version_one_row_is_upgraded(self, make_service, repository, store, local_analyzer):
        service = make_service()
        outcome = await service.upload_and_analyze(make_pdf([FULL_CONTRACT]), "msa.pdf", PDF_MIME, "user-1")
        await repository.update_status(outcome.contract.id, ProcessingStatus.PROCESSING, restart=True)
        bare = local_analyzer.analyze(FULL_CONTRACT)
        old = AnalysisRecord(
            contract_id=outcome.contract.id,
            user_id="user-1",
            schema_version=1,
            analysis=bare,
            risk_score=20,
        )
        await repository.save_analysis(old)

        analysis = await service.get_analysis(outcome.contract.id)
        legacy = await service.get_analysis(outcome.contract.id, legacy=True)

        assert analysis == bare
        assert legacy["riskScore"] == 20
        assert legacy["overall_risk_level"] == "Low"

    @pytest.mark.asyncio
    async def test_no_analysis_yet(self, make_service, repository, store):
        await store.insert(
            CONTRACTS,
            {
                "id": "c-1",
                "user_id": "user-1",
                "title": "t",
                "file_name": "t.pdf",
                "file_size": 1,
                "mime_type": PDF_MIME,
                "extracted_text": "Payment due.",
                "status": "pending",
            },
        )

        assert await make_service().get_analysis("c-1") is None

    @pytest.mark.asyncio
    async def test_list_and_count(self, make_service, contract_pdf):
        service = make_service()
        await service.upload_and_analyze(contract_pdf, "a.pdf", PDF_MIME, "user-1")
        await service.upload_and_analyze(contract_pdf, "b.pdf", PDF_MIME, "user-1")
        await service.upload_and_analyze(contract_pdf, "c.pdf", PDF_MIME, "user-2")

        assert len(await service.list_contracts("user-1")) == 2
        assert await service.count_contracts("user-1") == 2
        assert await service.count_contracts("user-1", ProcessingStatus.COMPLETED) == 2
        assert await service.count_contracts("user-1", ProcessingStatus.FAILED) == 0


class TestRunAnalysis:
    @pytest.mark.asyncio
    async def test_reports_source(self, make_service, model_reply):
        request = AnalysisRequest(
            text=FULL_CONTRACT, timeout_seconds=1.0, contract_id="c-1", user_id="u-1", word_count=90
        )

        _, model_source = await make_service(FakeBackend([model_reply])).run_analysis(request, "a-1")
        analysis, local_source = await make_service().run_analysis(request, "a-2")

        assert model_source == "model"
        assert local_source == "local"
        assert analysis["metadata"]["analysisId"] == "a-2"
        assert analysis["metadata"]["wordCount"] == 90

    @pytest.mark.asyncio
    async def test_missing_contract_type_is_detected(self, make_service, model_analysis):
        model_analysis["metadata"] = {}
        service = make_service(FakeBackend([json.dumps(model_analysis)]))
        request = AnalysisRequest(text=FULL_CONTRACT, timeout_seconds=1.0, contract_id="c", user_id="u")

        analysis, source = await service.run_analysis(request, "a-1")

        assert source == "model"
        assert analysis["metadata"]["contractType"] == "Service Agreement"


def test_factory_without_api_key_uses_local_only(settings):
    settings.llm_provider = "anthropic"
    settings.anthropic_api_key = None
    settings.database_url = None

    service = create_analysis_service(settings)

    assert service.model_client is None


class TestChat:
    @pytest_asyncio.fixture
    async def contract(self, make_service, contract_pdf):
        outcome = await make_service().upload_and_analyze(contract_pdf, "msa.pdf", PDF_MIME, "user-1")
        return outcome.contract

    @pytest.mark.asyncio
    async def test_answer_is_recorded(self, make_service, contract):
        backend = FakeBackend(["  Either party may terminate with 30 days notice.  "])
        service = make_service(backend)

        exchange = await service.ask(contract.id, "user-1", "  How do I terminate?  ")

        assert exchange.message == "How do I terminate?"
        assert exchange.response == "Either party may terminate with 30 days notice."
        assert exchange.contract_id == contract.id
        assert backend.calls[0]["messages"] == [{"role": "user", "content": "How do I terminate?"}]
        system = backend.calls[0]["system"]
        assert "Contract title: msa" in system
        assert contract.extracted_text in system
        assert "respond ONLY with valid JSON" not in system

    @pytest.mark.asyncio
    async def test_earlier_exchanges_are_replayed(self, make_service, contract):
        backend = FakeBackend(["Thirty days.", "New York law."])
        service = make_service(backend)

        await service.ask(contract.id, "user-1", "Notice period?")
        await service.ask(contract.id, "user-1", "Which law applies?")

        assert backend.calls[1]["messages"] == [
            {"role": "user", "content": "Notice period?"},
            {"role": "assistant", "content": "Thirty days."},
            {"role": "user", "content": "Which law applies?"},
        ]
        history = await service.get_chat_history(contract.id, "user-1")
        assert [m.response for m in history] == ["Thirty days.", "New York law."]

    @pytest.mark.asyncio
    async def test_model_failure_records_nothing(self, make_service, contract, store):
        service = make_service(FakeBackend([ModelError("overloaded", status_code=503)] * 2))

        with pytest.raises(ServiceUnavailableError):
            await service.ask(contract.id, "user-1", "Notice period?")

        assert await store.count(CHAT_MESSAGES) == 0

    @pytest.mark.asyncio
    async def test_requires_model(self, make_service, contract):
        with pytest.raises(MissingConfigurationError):
            await make_service().ask(contract.id, "user-1", "Notice period?")

    @pytest.mark.asyncio
    async def test_blank_question(self, make_service, contract):
        backend = FakeBackend(["unused"])

        with pytest.raises(ValidationError):
            await make_service(backend).ask(contract.id, "user-1", "   ")
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_other_users_contract_is_not_found(self, make_service, contract):
        service = make_service(FakeBackend(["unused"]))

        with pytest.raises(RecordNotFoundError):
            await service.ask(contract.id, "user-2", "Notice period?")
        with pytest.raises(RecordNotFoundError):
            await service.get_chat_history(contract.id, "user-2")
        with pytest.raises(RecordNotFoundError):
            await service.clear_chat_history(contract.id, "user-2")

    @pytest.mark.asyncio
    async def test_clear_history(self, make_service, contract):
        service = make_service(FakeBackend(["One.", "Two."]))
        await service.ask(contract.id, "user-1", "First?")
        await service.ask(contract.id, "user-1", "Second?")

        assert await service.clear_chat_history(contract.id, "user-1") == 2
        assert await service.get_chat_history(contract.id, "user-1") == []
