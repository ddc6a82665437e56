from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import packages.db.models  # noqa: F401
from app.directory.models import Actor, Project, Team
from app.directory.repository import DirectoryRepository
from app.directory.service import DirectoryService
from app.metrics import metrics_registry
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.repository import NotificationRepository
from app.tickets.events import EventBus
from app.tickets.models import TicketDraft
from app.tickets.repository import TicketRepository
from app.tickets.service import TicketService
from app.tickets.workflow import WorkflowEngine


@dataclass
class Org:
    """A small registered hierarchy used across the integration tests."""

    super_admin: Actor
    admin: Actor
    team: Team
    manager: Actor
    user: Actor
    teammate: Actor
    other_team: Team
    other_manager: Actor
    outsider: Actor
    project: Project
    tokens: dict[str, str]


@dataclass
class Services:
    directory: DirectoryService
    directory_repository: DirectoryRepository
    tickets: TicketService
    ticket_repository: TicketRepository
    workflow: WorkflowEngine
    notifications: NotificationRepository
    events: EventBus


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_registry.reset()
    yield
    metrics_registry.reset()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncEngine:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ticketing.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def services(session_factory) -> Services:
    events = EventBus()
    directory_repository = DirectoryRepository(session_factory)
    ticket_repository = TicketRepository(session_factory)
    notifications = NotificationRepository(session_factory)
    NotificationDispatcher(directory_repository, notifications).subscribe(events)
    return Services(
        directory=DirectoryService(directory_repository),
        directory_repository=directory_repository,
        tickets=TicketService(ticket_repository, directory_repository, events=events),
        ticket_repository=ticket_repository,
        workflow=WorkflowEngine(ticket_repository, events=events),
        notifications=notifications,
        events=events,
    )


@pytest_asyncio.fixture
async def org(services: Services) -> Org:
    directory = services.directory
    root = await directory.register_super_admin(name="Root", email="root@example.com")
    admin = await directory.register_admin(name="Ada Admin", email="ada@example.com", super_admin_id=root.actor.id)
    platform = await directory.register_team(team_name="Platform", manager_name="Mia Manager", email="mia@example.com")
    user = await directory.register_user(name="Uma User", email="uma@example.com", team_id=platform.team.id)
    teammate = await directory.register_user(name="Tom Teammate", email="tom@example.com", team_id=platform.team.id)
    billing = await directory.register_team(team_name="Billing", manager_name="Bob Manager", email="bob@example.com")
    outsider = await directory.register_user(name="Olga Outsider", email="olga@example.com", team_id=billing.team.id)
    project = await directory.create_project(platform.actor, name="Portal", code="PORTAL")

    registrations = {
        "super_admin": root,
        "admin": admin,
        "manager": platform,
        "user": user,
        "teammate": teammate,
        "other_manager": billing,
        "outsider": outsider,
    }
    return Org(
        super_admin=root.actor,
        admin=admin.actor,
        team=platform.team,
        manager=platform.actor,
        user=user.actor,
        teammate=teammate.actor,
        other_team=billing.team,
        other_manager=billing.actor,
        outsider=outsider.actor,
        project=project,
        tokens={name: registration.token for name, registration in registrations.items()},
    )


@pytest.fixture
def make_draft(org: Org):
    def factory(**overrides) -> TicketDraft:
        fields = dict(
            title="VPN access for contractors",
            type="requirement",
            category="infrastructure",
            project_id=org.project.id,
            team_id=org.team.id,
            due_date=(date.today() + timedelta(days=14)).isoformat(),
            description="Two contractors need VPN access",
            priority="HIGH",
        )
        fields.update(overrides)
        return TicketDraft(**fields)

    return factory
