"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Exception handlers
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (database, HTTP client, RabbitMQ consumer)
"""

from contextlib import asynccontextmanager

import aio_pika
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from knowledge_ingestion.api.v1 import health
from knowledge_ingestion.api.v1.router import router as v1_router
from knowledge_ingestion.config import get_settings
from knowledge_ingestion.database.models import Base
from knowledge_ingestion.database.session import close_database, get_engine
from knowledge_ingestion.dependencies import ServiceContainer
from knowledge_ingestion.middleware import RequestIDMiddleware, TimingMiddleware
from knowledge_ingestion.services.queue_setup import setup_queues
from knowledge_ingestion.utils.errors import IngestionException, QueueError
from knowledge_ingestion.utils.logging import get_logger, log_error, setup_logging
from knowledge_ingestion.workers.ingestion_worker import IngestionWorker
from knowledge_ingestion.workers.queue_consumer import QueueConsumer

setup_logging()
logger = get_logger("main")

settings = get_settings()


async def connect_rabbitmq() -> aio_pika.abc.AbstractRobustConnection:
    """Connect to RabbitMQ, retrying while the broker comes up."""
    max_retries = 10 if settings.is_development else 3
    async for attempt in AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max_retries),
        wait=wait_fixed(3),
        retry=retry_if_exception_type((ConnectionError, OSError, aio_pika.exceptions.AMQPError)),
    ):
        with attempt:
            connection = await aio_pika.connect_robust(settings.rabbitmq.url)
            logger.info(
                f"RabbitMQ connection successful on attempt {attempt.retry_state.attempt_number}"
            )
            return connection
    raise QueueError("Failed to create RabbitMQ connection after all retries")


async def start_consumer(app: FastAPI, services: ServiceContainer) -> None:
    connection = await connect_rabbitmq()
    app.state.rabbitmq_connection = connection
    await setup_queues(connection, settings.rabbitmq)

    consumer = QueueConsumer(connection, IngestionWorker(services.ingestion), settings.rabbitmq)
    await consumer.start()
    app.state.queue_consumer = consumer
    logger.info("Queue consumer started successfully")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Handles startup and shutdown of:
    - Database engine
    - Shared HTTP client and services
    - RabbitMQ connection and queue consumer
    """
    logger.info("Starting Knowledge Ingestion service...")
    app.state.rabbitmq_connection = None
    app.state.queue_consumer = None

    if settings.is_development:
        # Document records are owned by the management service; create
        # tables locally so a development database works out of the box.
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    services = ServiceContainer(settings)
    app.state.services = services
    await services.processing_log.cleanup_old_logs()

    if settings.rabbitmq.enabled:
        try:
            await start_consumer(app, services)
        except (QueueError, ConnectionError, OSError, aio_pika.exceptions.AMQPError) as e:
            logger.error(f"Failed to start RabbitMQ consumer: {e}", exc_info=True)
            if settings.is_production:
                raise  # Fail fast in production
            logger.warning(
                "RabbitMQ unavailable in development mode. Service will continue; "
                "documents can still be processed through the HTTP API."
            )

    logger.info("Knowledge Ingestion service started successfully")
    try:
        yield
    finally:
        logger.info("Shutting down Knowledge Ingestion service...")

        if app.state.queue_consumer is not None:
            await app.state.queue_consumer.stop()
            logger.info("Queue consumer stopped")

        connection = app.state.rabbitmq_connection
        if connection is not None and not connection.is_closed:
            await connection.close()
            logger.info("RabbitMQ connection closed")

        await services.close()
        await close_database()
        logger.info("Knowledge Ingestion service shut down")


app = FastAPI(
    title="Knowledge Ingestion Service",
    description="Ingests documents into searchable collections and retrieves relevant chunks",
    version="0.1.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure via environment in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)
app.add_middleware(TimingMiddleware)
app.add_middleware(RequestIDMiddleware)


# Exception handlers
@app.exception_handler(IngestionException)
async def ingestion_exception_handler(request: Request, exc: IngestionException):
    """Handle IngestionException."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "code": "HTTP_ERROR",
                "status_code": exc.status_code,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "message": "Validation error",
                "code": "VALIDATION_ERROR",
                "status_code": 422,
                "details": jsonable_errors(exc),
            }
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    log_error(exc, context={"path": request.url.path, "method": request.method})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "Internal server error",
                "code": "INTERNAL_ERROR",
                "status_code": 500,
            }
        },
    )


app.include_router(v1_router)


# Root-level health checks for container orchestration; also under /api/v1
@app.get("/health", tags=["health"], include_in_schema=False)
async def root_health_check():
    return await health.health_check()


@app.get("/ready", tags=["health"], include_in_schema=False)
async def root_readiness_check(request: Request):
    return await health.readiness_check(request)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "service": "knowledge-ingestion",
        "version": "0.1.0",
        "status": "running",
        "environment": settings.environment.value,
    }


def run() -> None:
    import uvicorn

    uvicorn.run(
        "knowledge_ingestion.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload and settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
