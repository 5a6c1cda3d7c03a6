import asyncio
import random
import sys

import asyncpg
from fastapi import FastAPI
from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .alembic_helper import run_alembic_migrations
from .settings import DEVELOPMENT_ENVIRONMENTS, bloodwave_settings


def setup_logging() -> None:
    """Configure Loguru for consistent, structured service logs."""
    logger.remove()
    logger.add(
        sink=sys.stdout,
        level=bloodwave_settings().log_level.upper(),
        backtrace=False,
        diagnose=False,
        colorize=False,
        serialize=False,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
    )
    logger.info("🪵 Logging configured successfully.")


def setup_instrumentation(app: FastAPI) -> None:
    """Attach OpenTelemetry tracing to the FastAPI app. This function is idempotent."""
    settings = bloodwave_settings()
    if not settings.tracing_enabled:
        logger.info("📈 Tracing disabled by configuration.")
        return
    if getattr(app.state, "tracer_provider", None) is not None:
        logger.info("📈 OpenTelemetry instrumentation already initialized. Skipping reconfiguration.")
        return

    resource = Resource(attributes={SERVICE_NAME: settings.service_name})
    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint, insecure=True))
    )
    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    app.state.tracer_provider = tracer_provider
    logger.info("📈 OpenTelemetry instrumentation configured.")


async def _check_database_ready(dsn: str, max_retries: int = 5, base_delay: int = 2) -> None:
    """Poll the database connection until ready with exponential backoff and jitter."""
    if not dsn.startswith("postgresql"):
        logger.info(f"Skipping readiness probe for non-PostgreSQL database ({dsn.split(':', 1)[0]}).")
        return
    # Normalize SQLAlchemy async URL to asyncpg-compatible DSN
    if dsn.startswith("postgresql+asyncpg://"):
        dsn = dsn.replace("postgresql+asyncpg://", "postgresql://", 1)

    for attempt in range(max_retries):
        try:
            conn = await asyncpg.connect(dsn=dsn)
            await conn.close()
            logger.info("✅ Database connection successful.")
            return
        except (OSError, asyncpg.PostgresError) as e:
            wait_time = base_delay * (2 ** attempt)
            jitter = random.uniform(0, 0.5)
            total_wait = wait_time + jitter
            logger.warning(f"Database not ready (attempt {attempt + 1}/{max_retries}): {e}. Retrying in {total_wait:.2f}s...")
            await asyncio.sleep(total_wait)
    raise RuntimeError("❌ Database not ready after multiple attempts.")


async def init_service_startup(app: FastAPI) -> None:
    """Check the database, apply migrations and mark the service ready."""
    app.state.is_ready = False
    settings = bloodwave_settings()
    tracer = trace.get_tracer(__name__, tracer_provider=getattr(app.state, "tracer_provider", None))
    logger.info(f"🚀 Initializing {settings.service_name} ({settings.environment})...")

    for key, value in settings.safe_dict().items():
        logger.info(f"    {key}: {value}")

    if settings.uses_default_secret and settings.environment not in DEVELOPMENT_ENVIRONMENTS:
        logger.warning(
            "⚠️ The development signing key is in use outside development. "
            "Any deployment sharing it can forge access tokens; set BLOODWAVE_SECRET_KEY."
        )

    with tracer.start_as_current_span("db.readiness_check"):
        await _check_database_ready(settings.async_db_url)

    with tracer.start_as_current_span("db.run_migrations"):
        await run_alembic_migrations(settings.sync_db_url)

    app.state.is_ready = True
    logger.info(f"✅ {settings.service_name} startup completed successfully.")


async def shutdown_instrumentation(app: FastAPI) -> None:
    """Flush and shut down the OpenTelemetry tracer provider."""
    tracer_provider = getattr(app.state, "tracer_provider", None)
    if tracer_provider is None:
        return
    await asyncio.to_thread(tracer_provider.shutdown)
    logger.info("🧹 OpenTelemetry instrumentation shut down gracefully.")
