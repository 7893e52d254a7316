"""Unit tests for location creation, assignment and deletion."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.models.business import ApplicationStatus
from src.models.location import Location
from src.services.errors import (
    AuthorizationError,
    ConflictError,
    LocationInUseError,
    LocationUnavailableError,
    NotFoundError,
)
from src.services.location_allocator import LocationAllocator


@pytest.fixture
def location_repo():
    repo = AsyncMock()
    repo.session = AsyncMock()
    return repo


@pytest.fixture
def business_repo():
    return AsyncMock()


@pytest.fixture
def allocator(location_repo, business_repo):
    return LocationAllocator(location_repo, business_repo)


@pytest.fixture
def stall():
    return Location(name="Stall-12")


@pytest.mark.asyncio
async def test_create_trims_name(allocator, location_repo, admin, stall):
    location_repo.get_by_name.return_value = None
    location_repo.create.return_value = stall

    result = await allocator.create(admin, "  Stall-12 ")

    assert result is stall
    assert location_repo.create.call_args.args[0].name == "Stall-12"


@pytest.mark.asyncio
async def test_create_duplicate_name(allocator, location_repo, admin, stall):
    location_repo.get_by_name.return_value = stall

    with pytest.raises(ConflictError):
        await allocator.create(admin, "Stall-12")


@pytest.mark.asyncio
async def test_create_requires_admin(allocator, owner):
    with pytest.raises(AuthorizationError):
        await allocator.create(owner, "Stall-1")


@pytest.mark.asyncio
async def test_apply_assigns_location(
    allocator, location_repo, business_repo, owner, stall, approved_business
):
    located = approved_business.model_copy(update={"location": "Stall-12"})
    location_repo.get_by_id.return_value = stall
    business_repo.get_by_owner_id.return_value = approved_business
    location_repo.assign_to_business.return_value = True
    business_repo.get_by_id.return_value = located

    result = await allocator.apply(owner, stall.id)

    assert result.location == "Stall-12"
    location_repo.assign_to_business.assert_awaited_once_with(stall.id, approved_business.id)


@pytest.mark.asyncio
async def test_apply_to_taken_location(allocator, location_repo, business_repo, owner, stall):
    location_repo.get_by_id.return_value = stall.model_copy(update={"available": False})

    with pytest.raises(LocationUnavailableError):
        await allocator.apply(owner, stall.id)

    business_repo.get_by_owner_id.assert_not_called()


@pytest.mark.asyncio
async def test_apply_unknown_location(allocator, location_repo, owner, stall):
    location_repo.get_by_id.return_value = None

    with pytest.raises(NotFoundError):
        await allocator.apply(owner, stall.id)


@pytest.mark.asyncio
async def test_apply_requires_approved_business(
    allocator, location_repo, business_repo, owner, stall, approved_business
):
    location_repo.get_by_id.return_value = stall
    business_repo.get_by_owner_id.return_value = approved_business.model_copy(
        update={"status": ApplicationStatus.PENDING, "rent_fee": Decimal("0")}
    )

    with pytest.raises(ConflictError):
        await allocator.apply(owner, stall.id)

    location_repo.assign_to_business.assert_not_called()


@pytest.mark.asyncio
async def test_apply_when_business_already_located(
    allocator, location_repo, business_repo, owner, stall, approved_business
):
    location_repo.get_by_id.return_value = stall
    business_repo.get_by_owner_id.return_value = approved_business.model_copy(
        update={"location": "Stall-3"}
    )

    with pytest.raises(ConflictError, match="Stall-3"):
        await allocator.apply(owner, stall.id)


@pytest.mark.asyncio
async def test_apply_losing_race_is_unavailable(
    allocator, location_repo, business_repo, owner, stall, approved_business
):
    location_repo.get_by_id.return_value = stall
    business_repo.get_by_owner_id.return_value = approved_business
    location_repo.assign_to_business.return_value = False

    with pytest.raises(LocationUnavailableError):
        await allocator.apply(owner, stall.id)


@pytest.mark.asyncio
async def test_delete_available_location(allocator, location_repo, admin, stall):
    location_repo.get_by_id.return_value = stall
    location_repo.delete_if_available.return_value = True

    await allocator.delete(admin, stall.id)

    location_repo.delete_if_available.assert_awaited_once_with(stall.id)


@pytest.mark.asyncio
async def test_delete_occupied_location(allocator, location_repo, admin, stall):
    location_repo.get_by_id.return_value = stall.model_copy(update={"available": False})

    with pytest.raises(LocationInUseError):
        await allocator.delete(admin, stall.id)

    location_repo.delete_if_available.assert_not_called()
