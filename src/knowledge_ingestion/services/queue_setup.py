"""RabbitMQ queue setup service.

This module declares the exchanges, queues and dead-letter routing used
to deliver ingestion jobs.
"""

from typing import Any, Dict, Optional

import aio_pika
from aio_pika import ExchangeType
from aio_pika.exceptions import AMQPError

from knowledge_ingestion.config import RabbitMQSettings, get_settings
from knowledge_ingestion.utils.errors import QueueError
from knowledge_ingestion.utils.logging import get_logger

logger = get_logger("queue_setup")


def dead_letter_exchange_name(rabbitmq: RabbitMQSettings) -> str:
    return f"{rabbitmq.exchange_name}-dlx"


async def setup_queues(
    connection: aio_pika.abc.AbstractConnection,
    rabbitmq: Optional[RabbitMQSettings] = None,
) -> None:
    """
    Set up RabbitMQ queues, exchanges, and dead-letter queues.

    Creates:
    1. Dead-letter exchange (direct) and durable dead-letter queue
    2. Main exchange (direct)
    3. Main queue routed to the dead-letter exchange on rejection

    Raises:
        QueueError: If any declaration fails
    """
    rabbitmq = rabbitmq or get_settings().rabbitmq
    dlx_name = dead_letter_exchange_name(rabbitmq)

    try:
        channel = await connection.channel()

        dlx = await channel.declare_exchange(name=dlx_name, type=ExchangeType.DIRECT, durable=True)
        dlq = await channel.declare_queue(
            name=rabbitmq.dead_letter_queue_name,
            durable=rabbitmq.queue_durable,
        )
        await dlq.bind(dlx, routing_key=rabbitmq.routing_key)
        logger.info(f"Declared dead-letter exchange {dlx_name} and queue {rabbitmq.dead_letter_queue_name}")

        exchange = await channel.declare_exchange(
            name=rabbitmq.exchange_name,
            type=ExchangeType.DIRECT,
            durable=True,
        )

        queue_arguments: Dict[str, Any] = {
            "x-dead-letter-exchange": dlx_name,
            "x-dead-letter-routing-key": rabbitmq.routing_key,
        }
        if rabbitmq.message_ttl:
            queue_arguments["x-message-ttl"] = rabbitmq.message_ttl
            logger.info(f"Configured message TTL: {rabbitmq.message_ttl}ms")

        queue = await channel.declare_queue(
            name=rabbitmq.queue_name,
            durable=rabbitmq.queue_durable,
            arguments=queue_arguments,
        )
        await queue.bind(exchange, routing_key=rabbitmq.routing_key)

        await channel.close()
        logger.info(
            f"RabbitMQ queue setup completed: exchange={rabbitmq.exchange_name}, "
            f"queue={rabbitmq.queue_name}, dlx={dlx_name}, dlq={rabbitmq.dead_letter_queue_name}"
        )
    except AMQPError as e:
        logger.error(f"Failed to set up RabbitMQ queues: {e}", exc_info=True)
        raise QueueError(f"Failed to set up RabbitMQ queues: {e}") from e


async def _check_queue(connection: aio_pika.abc.AbstractConnection, name: str) -> Dict[str, Any]:
    # A failed passive declare closes the channel, so each check gets its own.
    channel = await connection.channel()
    try:
        queue = await channel.declare_queue(name=name, passive=True)
        return {"exists": True, "name": name, "message_count": queue.declaration_result.message_count}
    except AMQPError:
        return {"exists": False, "name": name, "message_count": None}
    finally:
        if not channel.is_closed:
            await channel.close()


async def _check_exchange(connection: aio_pika.abc.AbstractConnection, name: str) -> Dict[str, Any]:
    channel = await connection.channel()
    try:
        await channel.declare_exchange(name=name, type=ExchangeType.DIRECT, passive=True)
        return {"exists": True, "name": name}
    except AMQPError:
        return {"exists": False, "name": name}
    finally:
        if not channel.is_closed:
            await channel.close()


async def verify_queues(
    connection: aio_pika.abc.AbstractConnection,
    rabbitmq: Optional[RabbitMQSettings] = None,
) -> Dict[str, Any]:
    """
    Verify that queues and exchanges exist.

    Returns:
        dict: Existence and message counts of the queues and exchanges
    """
    rabbitmq = rabbitmq or get_settings().rabbitmq
    return {
        "main_queue": await _check_queue(connection, rabbitmq.queue_name),
        "dead_letter_queue": await _check_queue(connection, rabbitmq.dead_letter_queue_name),
        "main_exchange": await _check_exchange(connection, rabbitmq.exchange_name),
        "dead_letter_exchange": await _check_exchange(connection, dead_letter_exchange_name(rabbitmq)),
    }
