"""Unit tests for support tickets and user reports."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from src.models.support import ReportStatus, Ticket, TicketStatus, UserReport
from src.models.user import User
from src.services.errors import AuthorizationError, ConflictError, NotFoundError
from src.services.support_desk import SupportDesk


@pytest.fixture
def ticket_repo():
    return AsyncMock()


@pytest.fixture
def report_repo():
    return AsyncMock()


@pytest.fixture
def user_repo():
    return AsyncMock()


@pytest.fixture
def attachments():
    processor = AsyncMock()
    processor.process.return_value = []
    return processor


@pytest.fixture
def desk(ticket_repo, report_repo, user_repo, attachments, mock_dispatcher):
    return SupportDesk(ticket_repo, report_repo, user_repo, attachments, mock_dispatcher)


@pytest.fixture
def ticket(owner):
    return Ticket(user_id=owner.id, subject="Card charged twice", body="Please check ORD-1")


@pytest.fixture
def report(owner):
    return UserReport(
        reported_user_id=303,
        reported_by=owner.id,
        subject="Blocking my stall",
        description="Goods stacked in the walkway",
    )


@pytest.mark.asyncio
async def test_create_ticket_stores_processed_attachments(desk, ticket_repo, attachments, owner):
    await desk.create_ticket(owner, "Subject", "Body", uploads=[])

    attachments.process.assert_awaited_once_with([])
    entity = ticket_repo.create.call_args.args[0]
    assert entity.user_id == owner.id
    assert entity.attachments == []


@pytest.mark.asyncio
async def test_list_tickets_requires_support_role(desk, admin):
    with pytest.raises(AuthorizationError):
        await desk.list_tickets(admin)


@pytest.mark.asyncio
async def test_assign_ticket_moves_to_in_progress(
    desk, ticket_repo, support_agent, ticket, mock_dispatcher
):
    ticket_repo.get_by_id.return_value = ticket
    ticket_repo.assign.return_value = True

    await desk.assign_ticket(support_agent, ticket.id)

    ticket_repo.assign.assert_awaited_once_with(ticket.id, support_agent.id)
    assert mock_dispatcher.notify.call_args.kwargs["recipient_id"] == ticket.user_id


@pytest.mark.asyncio
async def test_assign_ticket_twice_is_conflict(desk, ticket_repo, support_agent, ticket):
    ticket_repo.get_by_id.return_value = ticket
    ticket_repo.assign.return_value = False

    with pytest.raises(ConflictError, match="already assigned"):
        await desk.assign_ticket(support_agent, ticket.id)


@pytest.mark.asyncio
async def test_resolve_ticket_stamps_resolution(
    desk, ticket_repo, support_agent, ticket, mock_dispatcher
):
    in_progress = ticket.model_copy(update={"status": TicketStatus.IN_PROGRESS})
    ticket_repo.get_by_id.return_value = in_progress
    ticket_repo.set_status.return_value = True
    now = datetime(2024, 4, 2, 15, 30)

    await desk.update_ticket_status(
        support_agent, ticket.id, TicketStatus.RESOLVED, comment="Refunded", now=now
    )

    args = ticket_repo.set_status.call_args.args
    assert args[:3] == (ticket.id, TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED)
    resolution = args[3]
    assert resolution.comment == "Refunded"
    assert resolution.resolved_by == support_agent.id
    assert resolution.resolved_at == now
    mock_dispatcher.notify.assert_awaited_once()


@pytest.mark.asyncio
async def test_archive_does_not_notify(desk, ticket_repo, support_agent, ticket, mock_dispatcher):
    ticket_repo.get_by_id.return_value = ticket.model_copy(update={"status": TicketStatus.RESOLVED})
    ticket_repo.set_status.return_value = True

    await desk.update_ticket_status(support_agent, ticket.id, TicketStatus.ARCHIVED)

    assert ticket_repo.set_status.call_args.args[3] is None
    mock_dispatcher.notify.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "current, requested",
    [
        (TicketStatus.RESOLVED, TicketStatus.IN_PROGRESS),
        (TicketStatus.IN_PROGRESS, TicketStatus.IN_PROGRESS),
        (TicketStatus.ARCHIVED, TicketStatus.PENDING),
    ],
)
async def test_ticket_status_never_moves_backward(
    desk, ticket_repo, support_agent, ticket, current, requested
):
    ticket_repo.get_by_id.return_value = ticket.model_copy(update={"status": current})

    with pytest.raises(ConflictError):
        await desk.update_ticket_status(support_agent, ticket.id, requested)

    ticket_repo.set_status.assert_not_called()


@pytest.mark.asyncio
async def test_unanswered_count_allowed_for_admin(desk, ticket_repo, admin):
    ticket_repo.count_by_status.return_value = 4

    assert await desk.unanswered_count(admin) == 4
    ticket_repo.count_by_status.assert_awaited_once_with(TicketStatus.PENDING)


@pytest.mark.asyncio
async def test_unanswered_count_denied_for_owner(desk, owner):
    with pytest.raises(AuthorizationError):
        await desk.unanswered_count(owner)


@pytest.mark.asyncio
async def test_report_against_unknown_user(desk, user_repo, report_repo, owner):
    user_repo.get_by_id.return_value = None

    with pytest.raises(NotFoundError):
        await desk.create_report(owner, 404, "Subject", "Description")

    report_repo.create.assert_not_called()


@pytest.mark.asyncio
async def test_create_report(desk, user_repo, report_repo, owner):
    user_repo.get_by_id.return_value = User(id=303, username="neighbour", email="n@example.com")

    await desk.create_report(owner, 303, "Blocking my stall", "Goods in the walkway")

    entity = report_repo.create.call_args.args[0]
    assert entity.reported_user_id == 303
    assert entity.reported_by == owner.id


@pytest.mark.asyncio
async def test_report_review_notifies_reporter(
    desk, report_repo, support_agent, report, mock_dispatcher
):
    report_repo.get_by_id.return_value = report
    report_repo.set_status.return_value = True

    await desk.update_report_status(
        support_agent, report.id, ReportStatus.UNDER_REVIEW, comment="Inspector sent"
    )

    notify = mock_dispatcher.notify.call_args.kwargs
    assert notify["recipient_id"] == report.reported_by
    assert notify["title"] == "Feedback on user report"
    assert "Inspector sent" in notify["message"]
