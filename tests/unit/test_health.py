"""Unit tests for the worker health check."""

import pytest

from src.worker.health import get_http_status_code, perform_health_check


async def up() -> bool:
    return True


async def down() -> bool:
    return False


async def broken() -> bool:
    raise ConnectionError("refused")


@pytest.mark.asyncio
async def test_all_dependencies_healthy():
    result = await perform_health_check(up, up)

    assert result.status == "healthy"
    assert result.dependencies["database"].status == "healthy"
    assert result.dependencies["redis"].response_time_ms is not None
    assert get_http_status_code(result.status) == 200


@pytest.mark.asyncio
async def test_one_dependency_down_is_degraded():
    result = await perform_health_check(up, broken)

    assert result.status == "degraded"
    assert "refused" in result.dependencies["redis"].error
    assert get_http_status_code(result.status) == 200


@pytest.mark.asyncio
async def test_all_dependencies_down_is_unhealthy():
    result = await perform_health_check(down, None)

    body = result.to_dict()
    assert body["status"] == "unhealthy"
    assert body["dependencies"]["redis"]["error"] == "Not configured"
    assert body["errors"]
    assert get_http_status_code(result.status) == 503
