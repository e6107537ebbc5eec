"""Document status state machine."""

from typing import Dict, FrozenSet, List, Optional

from knowledge_ingestion.models.document import DocumentStatus
from knowledge_ingestion.repositories.document_repository import DocumentRepository
from knowledge_ingestion.services.processing_log_service import ProcessingLogService
from knowledge_ingestion.utils.errors import IllegalTransitionError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("state_machine")

S = DocumentStatus

# Terminal states may only be re-entered through TypeDetecting (re-ingestion).
TRANSITIONS: Dict[DocumentStatus, FrozenSet[DocumentStatus]] = {
    S.PENDING: frozenset([S.UPLOADING, S.TYPE_DETECTING, S.FAILED]),
    S.UPLOADING: frozenset([S.UPLOADED, S.FAILED]),
    S.UPLOADED: frozenset([S.TYPE_DETECTING, S.FAILED]),
    S.TYPE_DETECTING: frozenset([S.TYPE_DETECTION_SUCCESS, S.TYPE_DETECTION_FAILED, S.FAILED]),
    S.TYPE_DETECTION_SUCCESS: frozenset([S.PROCESSING, S.FAILED]),
    S.PROCESSING: frozenset([S.PROCESSING_CHUNKS, S.FAILED]),
    S.PROCESSING_CHUNKS: frozenset([S.SUMMARIZING, S.STORING_EMBEDDINGS, S.FAILED]),
    S.SUMMARIZING: frozenset([S.STORING_EMBEDDINGS, S.FAILED]),
    S.STORING_EMBEDDINGS: frozenset([S.COMPLETED, S.FAILED]),
    S.COMPLETED: frozenset([S.TYPE_DETECTING]),
    S.FAILED: frozenset([S.TYPE_DETECTING]),
    S.TYPE_DETECTION_FAILED: frozenset([S.TYPE_DETECTING]),
}


def is_transition_allowed(current: DocumentStatus, requested: DocumentStatus) -> bool:
    return requested in TRANSITIONS.get(current, frozenset())


class StatusStateMachine:
    """
    Writes document status changes.

    transition() is the raw write: it overwrites status, message and the
    updated timestamp without consulting the transition table. Validation
    happens in DocumentLifecycle, which tracks a single run.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        processing_log: Optional[ProcessingLogService] = None,
    ):
        self._repository = repository
        self._processing_log = processing_log

    async def transition(
        self,
        document_id: str,
        new_status: DocumentStatus,
        message: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> bool:
        """
        Overwrite a document's status.

        Returns:
            True if a record was updated, False if the document does not exist
        """
        rows = await self._repository.update_status(document_id, new_status, message)
        if rows == 0:
            logger.warning(
                f"Status update to {new_status.value} affected no rows; document {document_id} not found"
            )
            return False

        logger.info(f"Document {document_id} -> {new_status.value}: {message}")
        if self._processing_log is not None:
            level = "ERROR" if new_status in (S.FAILED, S.TYPE_DETECTION_FAILED) else "INFO"
            await self._processing_log.log(
                document_id, level, f"Status {new_status.value}: {message}", tenant_id
            )
        return True

    def lifecycle(
        self,
        document_id: str,
        current: DocumentStatus,
        tenant_id: Optional[str] = None,
    ) -> "DocumentLifecycle":
        return DocumentLifecycle(self, document_id, current, tenant_id)


class DocumentLifecycle:
    """Tracks one document's status through a single ingestion run."""

    def __init__(
        self,
        machine: StatusStateMachine,
        document_id: str,
        current: DocumentStatus,
        tenant_id: Optional[str] = None,
    ):
        self._machine = machine
        self.document_id = document_id
        self.tenant_id = tenant_id
        self.current = current
        self.history: List[DocumentStatus] = []

    @property
    def is_terminal(self) -> bool:
        return self.current.is_terminal

    async def advance(self, new_status: DocumentStatus, message: Optional[str] = None) -> bool:
        """
        Move to new_status after checking the transition table.

        Raises:
            IllegalTransitionError: If the table does not allow the move
        """
        if not is_transition_allowed(self.current, new_status):
            raise IllegalTransitionError(
                current=self.current.value,
                requested=new_status.value,
                document_id=self.document_id,
            )
        written = await self._machine.transition(
            self.document_id, new_status, message, tenant_id=self.tenant_id
        )
        self.current = new_status
        self.history.append(new_status)
        return written

    async def fail(self, message: str) -> bool:
        """Write Failed unless the run already reached a terminal state."""
        if self.is_terminal:
            logger.info(
                f"Document {self.document_id} already {self.current.value}; not marking Failed ({message})"
            )
            return False
        return await self.advance(S.FAILED, message)

    async def begin(self, message: Optional[str] = None) -> bool:
        """
        Start a run by moving to TypeDetecting from any status.

        A document left in an in-flight status by a crashed or abandoned
        run is restarted here instead of being rejected.
        """
        if not self.current.is_terminal and self.current not in (S.PENDING, S.UPLOADED):
            logger.warning(
                f"Document {self.document_id} was left in {self.current.value}; restarting ingestion"
            )
        written = await self._machine.transition(
            self.document_id, S.TYPE_DETECTING, message, tenant_id=self.tenant_id
        )
        self.current = S.TYPE_DETECTING
        self.history.append(S.TYPE_DETECTING)
        return written
