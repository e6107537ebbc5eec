"""Queue consumer for RabbitMQ message processing."""

from typing import Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractIncomingMessage, AbstractQueue

from knowledge_ingestion.config import RabbitMQSettings, get_settings
from knowledge_ingestion.utils.errors import IngestionException
from knowledge_ingestion.utils.logging import get_logger
from knowledge_ingestion.workers.ingestion_worker import IngestionWorker

logger = get_logger("queue_consumer")


class QueueConsumer:
    """
    RabbitMQ queue consumer for document ingestion jobs.

    Handles:
    - Consuming messages from the queue
    - Dispatching them to the IngestionWorker
    - Logging failures (the worker acks, or rejects to the dead-letter queue)

    The channel prefetch count bounds how many documents are ingested
    concurrently by this process.
    """

    def __init__(
        self,
        connection: AbstractConnection,
        worker: IngestionWorker,
        rabbitmq: Optional[RabbitMQSettings] = None,
    ):
        self.connection = connection
        self.worker = worker
        self._rabbitmq = rabbitmq or get_settings().rabbitmq
        self.channel: Optional[AbstractChannel] = None
        self.queue: Optional[AbstractQueue] = None
        self._consumer_tag: Optional[str] = None
        self._running = False

    async def start(self) -> None:
        """Start consuming messages from the queue."""
        if self._running:
            logger.warning("Queue consumer is already running")
            return

        try:
            self.channel = await self.connection.channel()
            await self.channel.set_qos(prefetch_count=self._rabbitmq.prefetch_count)
            logger.info(f"Set channel QoS prefetch_count={self._rabbitmq.prefetch_count}")

            self.queue = await self.channel.declare_queue(
                name=self._rabbitmq.queue_name,
                passive=True,  # declared by setup_queues
            )
            logger.info(f"Connected to queue: {self._rabbitmq.queue_name}")

            self._running = True
            self._consumer_tag = await self.queue.consume(self._on_message)
            logger.info("Started consuming messages from queue")
        except aio_pika.exceptions.AMQPError as e:
            logger.error(f"Failed to start queue consumer: {e}", exc_info=True)
            self._running = False
            raise

    async def stop(self) -> None:
        """Stop consuming messages."""
        if not self._running:
            return

        logger.info("Stopping queue consumer...")
        self._running = False

        if self.queue and self._consumer_tag:
            try:
                await self.queue.cancel(self._consumer_tag)
                logger.info("Cancelled queue consumer")
            except aio_pika.exceptions.AMQPError as e:
                logger.error(f"Error cancelling queue consumer: {e}", exc_info=True)
            finally:
                self._consumer_tag = None

        if self.channel and not self.channel.is_closed:
            await self.channel.close()
            logger.info("Closed consumer channel")

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        try:
            await self.worker.handle_message(message)
        except IngestionException as e:
            logger.error(f"Failed to process message: {e.message} (status_code={e.status_code})")
        except Exception as e:
            logger.error(f"Unexpected error processing message: {e}", exc_info=True)

    @property
    def is_running(self) -> bool:
        """Check if consumer is running."""
        return self._running
