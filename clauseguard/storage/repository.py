"""
Contract and analysis persistence on top of a record store.

Enforces the processing state machine and keeps exactly one current
analysis per contract through ``current_analysis_id``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from clauseguard.models import AnalysisRecord, ChatMessage, ContractRecord, ProcessingStatus, utcnow
from clauseguard.storage.base import ANALYSIS_RESULTS, CHAT_MESSAGES, CONTRACTS, RecordStore, Row
from clauseguard.utils.errors import InvalidStatusTransitionError, RecordNotFoundError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)


def _to_row(model: BaseModel) -> Row:
    row = model.model_dump()
    return {key: value.value if isinstance(value, Enum) else value for key, value in row.items()}


class ContractRepository:
    """Typed access to the contracts, analysis_results and chat_messages tables."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def initialize(self) -> None:
        await self.store.initialize()

    async def close(self) -> None:
        await self.store.close()

    # Contracts

    async def create_contract(self, contract: ContractRecord) -> ContractRecord:
        row = await self.store.insert(CONTRACTS, _to_row(contract))
        logger.info(
            f"Created contract {contract.id}",
            extra={"contract_id": contract.id, "status": contract.status.value},
        )
        return ContractRecord.model_validate(row)

    async def get_contract(self, contract_id: str) -> ContractRecord:
        """
        Raises:
            RecordNotFoundError: If the contract does not exist
        """
        row = await self.store.get(CONTRACTS, contract_id)
        if row is None:
            raise RecordNotFoundError(CONTRACTS, contract_id)
        return ContractRecord.model_validate(row)

    async def list_contracts(self, user_id: str) -> List[ContractRecord]:
        rows = await self.store.select_by(CONTRACTS, "user_id", user_id)
        return [ContractRecord.model_validate(row) for row in rows]

    async def count_contracts(self, user_id: str, status: Optional[ProcessingStatus] = None) -> int:
        filters: Dict[str, Any] = {"user_id": user_id}
        if status is not None:
            filters["status"] = status.value
        return await self.store.count(CONTRACTS, filters)

    async def update_status(
        self,
        contract_id: str,
        status: ProcessingStatus,
        error_message: Optional[str] = None,
        restart: bool = False,
    ) -> ContractRecord:
        """
        Move a contract to a new status.

        Args:
            contract_id: Contract to update
            status: Target status
            error_message: Stored with failed; cleared otherwise
            restart: Allow completed/failed -> processing for an explicit re-run

        Raises:
            InvalidStatusTransitionError: If the state machine forbids the change
            RecordNotFoundError: If the contract does not exist
        """
        contract = await self.get_contract(contract_id)
        if not contract.status.can_transition_to(status, restart=restart):
            raise InvalidStatusTransitionError(contract.status.value, status.value)

        row = await self.store.update(
            CONTRACTS,
            contract_id,
            {"status": status.value, "error_message": error_message, "updated_at": utcnow()},
        )
        logger.debug(
            f"Contract {contract_id}: {contract.status.value} -> {status.value}",
            extra={"contract_id": contract_id},
        )
        return ContractRecord.model_validate(row)

    # Analyses

    async def save_analysis(self, analysis: AnalysisRecord) -> ContractRecord:
        """
        Store an analysis and make it the contract's current one.

        The contract must be processing; it ends up completed.
        """
        contract = await self.get_contract(analysis.contract_id)
        if not contract.status.can_transition_to(ProcessingStatus.COMPLETED):
            raise InvalidStatusTransitionError(contract.status.value, ProcessingStatus.COMPLETED.value)

        await self.store.insert(ANALYSIS_RESULTS, _to_row(analysis))
        row = await self.store.update(
            CONTRACTS,
            analysis.contract_id,
            {
                "status": ProcessingStatus.COMPLETED.value,
                "current_analysis_id": analysis.id,
                "error_message": None,
                "updated_at": utcnow(),
            },
        )
        logger.info(
            f"Saved analysis {analysis.id} for contract {analysis.contract_id}",
            extra={"contract_id": analysis.contract_id, "risk_score": analysis.risk_score},
        )
        return ContractRecord.model_validate(row)

    async def get_analysis(self, analysis_id: str) -> AnalysisRecord:
        row = await self.store.get(ANALYSIS_RESULTS, analysis_id)
        if row is None:
            raise RecordNotFoundError(ANALYSIS_RESULTS, analysis_id)
        return AnalysisRecord.model_validate(row)

    async def get_current_analysis(self, contract_id: str) -> Optional[AnalysisRecord]:
        contract = await self.get_contract(contract_id)
        if contract.current_analysis_id is None:
            return None
        return await self.get_analysis(contract.current_analysis_id)

    async def list_analyses(self, contract_id: str) -> List[AnalysisRecord]:
        rows = await self.store.select_by(ANALYSIS_RESULTS, "contract_id", contract_id)
        return [AnalysisRecord.model_validate(row) for row in rows]

    # Chat

    async def save_chat_message(self, message: ChatMessage) -> ChatMessage:
        row = await self.store.insert(CHAT_MESSAGES, _to_row(message))
        logger.debug(
            f"Saved chat message {message.id}",
            extra={"contract_id": message.contract_id},
        )
        return ChatMessage.model_validate(row)

    async def get_chat_history(
        self, contract_id: str, user_id: str, limit: Optional[int] = None
    ) -> List[ChatMessage]:
        """
        A user's exchanges about a contract, oldest first.

        Args:
            limit: Keep only the most recent exchanges
        """
        rows = await self.store.select_by(CHAT_MESSAGES, "contract_id", contract_id, newest_first=False)
        history = [ChatMessage.model_validate(row) for row in rows if row["user_id"] == user_id]
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    async def clear_chat_history(self, contract_id: str, user_id: str) -> int:
        deleted = await self.store.delete(CHAT_MESSAGES, {"contract_id": contract_id, "user_id": user_id})
        logger.info(
            f"Cleared {deleted} chat message(s) for contract {contract_id}",
            extra={"contract_id": contract_id},
        )
        return deleted
