"""Ingestion worker for processing document ingestion jobs."""

import json

from aio_pika.abc import AbstractIncomingMessage
from pydantic import ValidationError

from knowledge_ingestion.models.message import IngestionMessage
from knowledge_ingestion.services.ingestion_service import IngestionService
from knowledge_ingestion.utils.errors import IngestionException
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("ingestion_worker")


def parse_message(body: bytes) -> IngestionMessage:
    """
    Decode a queue message body.

    Raises:
        IngestionException: If the body is not a valid ingestion message
    """
    try:
        return IngestionMessage(**json.loads(body.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError, ValidationError) as e:
        raise IngestionException(
            f"Invalid message format: {e}",
            status_code=400,
            code="INVALID_MESSAGE",
        ) from e


class IngestionWorker:
    """
    Worker for processing document ingestion jobs from RabbitMQ.

    Each message names a document; the pipeline itself records success
    or failure on the document, so only malformed messages are rejected.
    """

    def __init__(self, ingestion_service: IngestionService):
        self.ingestion_service = ingestion_service

    async def handle_message(self, incoming_message: AbstractIncomingMessage) -> None:
        """
        Handle incoming message from RabbitMQ queue.

        The message is acknowledged when processing returns and rejected
        without requeue (to the dead-letter queue) when it raises.

        Raises:
            IngestionException: If the message cannot be parsed
        """
        async with incoming_message.process(requeue=False):
            message = parse_message(incoming_message.body)
            logger.info(f"Received ingestion job: document_id={message.document_id}")
            await self.ingestion_service.process_document(message.document_id)
            logger.debug(f"Message processed and acknowledged: document_id={message.document_id}")
