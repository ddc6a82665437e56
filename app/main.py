from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.errors import register_exception_handlers
from app.api.routes import auth, metrics, notifications, ping, projects, teams, tickets, users
from app.core.config import Settings, get_settings
from app.core.logging import configure_logging, init_tracer, shutdown_tracer
from app.directory.repository import DirectoryRepository
from app.directory.service import DirectoryService
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.repository import NotificationRepository
from app.notifications.service import NotificationService
from app.security.policy import AuthorizationGate
from app.services.database import Database
from app.tickets.events import EventBus
from app.tickets.repository import TicketRepository
from app.tickets.service import TicketService
from app.tickets.workflow import WorkflowEngine


def build_services(app: FastAPI, database: Database, settings: Settings) -> None:
    """Wire repositories, services and the notification dispatcher onto ``app.state``."""

    session_factory = database.session_factory
    gate = AuthorizationGate()
    events = EventBus()

    directory_repository = DirectoryRepository(session_factory)
    ticket_repository = TicketRepository(session_factory)
    notification_repository = NotificationRepository(session_factory)

    NotificationDispatcher(
        directory_repository,
        notification_repository,
        notify_admins_on_approval=settings.notify_admins_on_approval,
        notify_admins_on_proposal=settings.notify_admins_on_proposal,
    ).subscribe(events)

    app.state.database = database
    app.state.events = events
    app.state.directory_service = DirectoryService(directory_repository, gate=gate)
    app.state.ticket_service = TicketService(ticket_repository, directory_repository, events=events, gate=gate)
    app.state.workflow_engine = WorkflowEngine(ticket_repository, events=events, gate=gate)
    app.state.notification_service = NotificationService(notification_repository)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    database = Database(url=settings.database_url, echo=settings.database_echo)
    try:
        if settings.create_schema_on_startup:
            await database.ensure_schema()
        build_services(app, database, settings)
        logger.info("%s started in %s environment", settings.app_name, settings.environment)
        yield
    finally:
        await database.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(ping.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(teams.router)
    app.include_router(projects.router)
    app.include_router(tickets.router)
    app.include_router(notifications.router)
    app.include_router(metrics.router)
    return app


app = create_app()
