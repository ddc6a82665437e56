import pytest

from app.core.errors import ForbiddenError, NotFoundError
from app.notifications.service import NotificationService
from app.tickets.state import Decision


@pytest.fixture
def inbox(services) -> NotificationService:
    return NotificationService(services.notifications)


@pytest.mark.asyncio
async def test_unread_count_and_mark_read(services, org, make_draft, inbox):
    first = await services.tickets.propose(make_draft(), org.user)
    await services.tickets.propose(make_draft(title="Second"), org.user)

    assert await inbox.unread_count(org.admin) == 2
    notifications = await inbox.list_for(org.admin)
    assert {item.ticket_id for item in notifications} >= {first.id}

    marked = await inbox.mark_read(notifications[0].id, org.admin)
    assert marked.is_read is True
    assert await inbox.unread_count(org.admin) == 1
    assert len(await inbox.list_for(org.admin, unread_only=True)) == 1


@pytest.mark.asyncio
async def test_mark_read_is_limited_to_recipient(services, org, make_draft, inbox):
    await services.tickets.propose(make_draft(), org.user)
    [notification] = await inbox.list_for(org.manager)

    with pytest.raises(ForbiddenError):
        await inbox.mark_read(notification.id, org.admin)
    with pytest.raises(NotFoundError):
        await inbox.mark_read("missing", org.manager)


@pytest.mark.asyncio
async def test_mark_all_read(services, org, make_draft, inbox):
    ticket = await services.tickets.propose(make_draft(), org.user)
    await services.workflow.decide(ticket.id, Decision.APPROVE, org.super_admin)

    assert await inbox.unread_count(org.admin) == 2
    assert await inbox.mark_all_read(org.admin) == 2
    assert await inbox.unread_count(org.admin) == 0
    assert await inbox.mark_all_read(org.admin) == 0
    assert await inbox.unread_count(org.super_admin) == 1


@pytest.mark.asyncio
async def test_list_is_paginated_newest_first(services, org, make_draft, inbox):
    for index in range(3):
        await services.tickets.propose(make_draft(title=f"Ticket {index}"), org.user)

    page = await inbox.list_for(org.admin, limit=2)
    rest = await inbox.list_for(org.admin, limit=2, offset=2)

    assert len(page) == 2
    assert len(rest) == 1
    assert page[0].created_at >= page[1].created_at >= rest[0].created_at
