"""
FastAPI application for the FAQ Desk bot.
This module wires the bot services together and exposes the messaging endpoint.
"""

import logging
import sys
from contextlib import asynccontextmanager

from faqdesk.channels.router import ActivityRouter
from faqdesk.channels.transport import BotConnectorClient
from faqdesk.core.config import Settings, get_settings
from faqdesk.core.error_handlers import base_exception_handler, unhandled_exception_handler
from faqdesk.core.exceptions import BaseAppException
from faqdesk.routes import health, messages
from faqdesk.services.batch.batch_pipeline import BatchQuestionPipeline
from faqdesk.services.batch.batch_result_repository import BatchResultRepository
from faqdesk.services.batch.file_consent import FileConsentService
from faqdesk.services.knowledge_base.qna_maker_client import QnaMakerClient
from faqdesk.services.membership.membership_cache import MembershipCache
from faqdesk.services.membership.sme_authorizer import SmeAuthorizer
from faqdesk.services.qna.activity_repository import ActivityRepository
from faqdesk.services.qna.answer_service import AnswerService
from faqdesk.services.qna.expert_extension import ExpertExtensionHandler
from faqdesk.services.qna.qna_edit_workflow import QnaEditWorkflow
from faqdesk.services.tickets.ticket_repository import TicketRepository
from faqdesk.services.tickets.ticket_service import TicketService
from faqdesk.services.translation.translator_service import TranslatorService
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("faqdesk.main")


async def build_router(settings: Settings, app: FastAPI) -> ActivityRouter:
    """Create every service, store them on app.state and return the router."""
    logger.info("Initializing stores...")
    ticket_repository = TicketRepository(settings.TICKETS_DB_PATH)
    activity_repository = ActivityRepository(settings.ACTIVITY_INDEX_DB_PATH)
    result_repository = BatchResultRepository(settings.BATCH_RESULTS_DB_PATH)
    await ticket_repository.initialize()
    await activity_repository.initialize()
    await result_repository.initialize()

    logger.info("Initializing clients...")
    transport = BotConnectorClient(settings)
    knowledge_base = QnaMakerClient(settings)
    translator = TranslatorService(settings)

    membership_cache = MembershipCache(
        ttl_days=settings.ACCESS_CACHE_EXPIRY_DAYS,
        negative_ttl_seconds=settings.ACCESS_CACHE_NEGATIVE_TTL_SECONDS,
        max_size=settings.ACCESS_CACHE_MAX_SIZE,
    )
    authorizer = SmeAuthorizer(membership_cache, transport, settings)

    logger.info("Initializing services...")
    workflow = QnaEditWorkflow(knowledge_base, activity_repository, authorizer, settings)
    activity_router = ActivityRouter(
        settings=settings,
        transport=transport,
        answers=AnswerService(knowledge_base),
        tickets=TicketService(ticket_repository, settings),
        workflow=workflow,
        extension=ExpertExtensionHandler(
            workflow, ticket_repository, knowledge_base, settings
        ),
        batch=BatchQuestionPipeline(knowledge_base, translator, result_repository, settings),
        file_consent=FileConsentService(result_repository, settings),
    )

    app.state.transport = transport
    app.state.knowledge_base = knowledge_base
    app.state.translator = translator
    app.state.membership_cache = membership_cache
    app.state.activity_router = activity_router
    return activity_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Application startup...")

    settings = get_settings()
    app.state.settings = settings

    # Create data directories (avoid import-time I/O)
    logger.info("Creating data directories...")
    settings.ensure_data_dirs()

    await build_router(settings, app)
    logger.info(
        f"FAQ Desk ready - environment: {settings.ENVIRONMENT}, "
        f"tenant check: {settings.tenant_check_enabled}"
    )

    # Yield control to the application
    yield

    # Shutdown
    logger.info("Application shutdown...")
    for name in ("transport", "knowledge_base", "translator"):
        client = getattr(app.state, name, None)
        if client is not None:
            await client.close()


# Create FastAPI application
app = FastAPI(
    title=get_settings().PROJECT_NAME,
    docs_url="/api/docs",
    lifespan=lifespan,
)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(messages.router, tags=["Messages"])


# Register exception handlers
# Register specific application exceptions first
app.add_exception_handler(BaseAppException, base_exception_handler)  # type: ignore[arg-type]
# Then register generic exception handler as fallback
app.add_exception_handler(Exception, unhandled_exception_handler)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # Bind to 0.0.0.0 only in DEBUG mode (container/development)
    # Otherwise bind to 127.0.0.1 for local security
    host = "0.0.0.0" if settings.DEBUG else "127.0.0.1"

    uvicorn.run(
        "faqdesk.main:app",
        host=host,
        port=3978,
        reload=settings.DEBUG,
    )
