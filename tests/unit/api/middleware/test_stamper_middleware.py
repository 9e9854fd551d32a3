import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import Request, Response

from userstamp.core.context import get_current_stamper, set_current_stamper
from userstamp.infrastructure.api.middleware.stamper_middleware import (
    StamperMiddleware,
    resolve_current_actor,
)


def _request(session=None):
    request = MagicMock(spec=Request)
    request.scope = {} if session is None else {"session": session}
    request.session = session
    return request


@pytest.mark.asyncio
async def test_resolve_without_session_middleware():
    """Test that a request without a session has no actor."""
    assert await resolve_current_actor(_request()) is None


@pytest.mark.asyncio
async def test_resolve_from_session():
    """Test that the actor id is read from the default session key."""
    assert await resolve_current_actor(_request({"user_id": 7})) == 7


@pytest.mark.asyncio
async def test_resolve_with_custom_session_key():
    request = _request({"user_id": 7, "account_id": "acc_1"})

    assert await resolve_current_actor(request, session_key="account_id") == "acc_1"


@pytest.mark.asyncio
async def test_resolve_anonymous_session():
    loader = MagicMock()

    assert await resolve_current_actor(_request({}), actor_loader=loader) is None
    loader.assert_not_called()


@pytest.mark.asyncio
async def test_resolve_with_sync_loader(models):
    """Test that a loaded model instance is reduced to its primary key."""
    loader = MagicMock(return_value=models.User(id=7, name="alice"))

    assert await resolve_current_actor(_request({"user_id": 7}), actor_loader=loader) == 7
    loader.assert_called_once_with(7)


@pytest.mark.asyncio
async def test_resolve_with_async_loader():
    loader = AsyncMock(return_value=9)

    assert await resolve_current_actor(_request({"user_id": 9}), actor_loader=loader) == 9


@pytest.mark.asyncio
async def test_resolve_loader_returning_none():
    loader = AsyncMock(return_value=None)

    assert await resolve_current_actor(_request({"user_id": 404}), actor_loader=loader) is None


@pytest.mark.asyncio
async def test_resolve_loader_failure_is_not_fatal():
    loader = MagicMock(side_effect=LookupError("no such user"))

    assert await resolve_current_actor(_request({"user_id": 7}), actor_loader=loader) is None


@pytest.mark.asyncio
async def test_middleware_sets_and_clears_stamper():
    """Test that the stamper is available during the request and cleared after."""
    async def side_effect(req):
        assert get_current_stamper() == 7
        return Response()

    call_next = AsyncMock(side_effect=side_effect)

    middleware = StamperMiddleware(MagicMock())
    await middleware.dispatch(_request({"user_id": 7}), call_next)

    call_next.assert_awaited_once()
    assert get_current_stamper() is None


@pytest.mark.asyncio
async def test_middleware_clears_stamper_on_error():
    set_current_stamper(3)
    call_next = AsyncMock(side_effect=RuntimeError("boom"))

    middleware = StamperMiddleware(MagicMock())
    with pytest.raises(RuntimeError):
        await middleware.dispatch(_request({"user_id": 7}), call_next)

    assert get_current_stamper() is None


@pytest.mark.asyncio
async def test_middleware_anonymous_request_overwrites_stale_stamper():
    """Test that a request without a user never sees a previous stamper."""
    set_current_stamper(3)

    async def side_effect(req):
        assert get_current_stamper() is None
        return Response()

    middleware = StamperMiddleware(MagicMock())
    await middleware.dispatch(_request({}), AsyncMock(side_effect=side_effect))


@pytest.mark.asyncio
async def test_middleware_named_stamper_and_loader():
    loader = AsyncMock(return_value="adm_1")

    async def side_effect(req):
        assert get_current_stamper("admin") == "adm_1"
        assert get_current_stamper() is None
        return Response()

    middleware = StamperMiddleware(
        MagicMock(), actor_loader=loader, session_key="admin_id", stamper_name="admin"
    )
    await middleware.dispatch(_request({"admin_id": 1}), AsyncMock(side_effect=side_effect))

    loader.assert_awaited_once_with(1)
    assert get_current_stamper("admin") is None
