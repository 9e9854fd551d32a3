"""Middleware setting the current stamper from the session.

The acting user's id is read from the session (populated by Starlette's
SessionMiddleware), optionally loaded through an ``actor_loader``, and stored
as the current stamper for the duration of the request. The stamper is
cleared when the request finishes so pooled workers never reuse it.
"""

from inspect import isawaitable
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.sessions import SessionMiddleware

from userstamp.core.config import get_settings
from userstamp.core.context import (
    clear_current_stamper,
    set_current_stamper,
    stamper_identity,
)
from userstamp.core.logging import LoggingContext, get_logger

logger = get_logger(__name__)

ActorLoader = Callable[[Any], Union[Any, Awaitable[Any]]]


async def resolve_current_actor(
    request: Request,
    session_key: Optional[str] = None,
    actor_loader: Optional[ActorLoader] = None,
) -> Any:
    """Resolve the acting user's identity from the request session.

    Args:
        request: The incoming request.
        session_key: Session key holding the actor id. Defaults to the
            ``session_key`` setting.
        actor_loader: Optional sync or async callable loading the actor for
            an id (e.g. a database lookup). A mapped instance is reduced to
            its primary key.

    Returns:
        The actor identity, or None if there is no acting user.
    """
    if "session" not in request.scope:
        logger.debug("No session on request, is SessionMiddleware installed?")
        return None

    actor_id = request.session.get(session_key or get_settings().session_key)
    if actor_id is None or actor_loader is None:
        return actor_id

    # Best-effort: an unknown or broken actor must not fail the request
    try:
        actor = actor_loader(actor_id)
        if isawaitable(actor):
            actor = await actor
    except Exception as e:
        logger.warning("Failed to load stamper from session", actor_id=actor_id, error=str(e))
        return None

    return stamper_identity(actor)


class StamperMiddleware(BaseHTTPMiddleware):
    """Middleware setting the current stamper for every request."""

    def __init__(
        self,
        app: Any,
        actor_loader: Optional[ActorLoader] = None,
        session_key: Optional[str] = None,
        stamper_name: Optional[str] = None,
    ) -> None:
        super().__init__(app)
        settings = get_settings()
        self.actor_loader = actor_loader
        self.session_key = session_key or settings.session_key
        self.stamper_name = stamper_name or settings.default_stamper_name

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Set the current stamper, process the request, then clear it.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint to call.

        Returns:
            The response from the application.
        """
        stamper = await resolve_current_actor(request, self.session_key, self.actor_loader)
        set_current_stamper(stamper, self.stamper_name)

        try:
            with LoggingContext(stamper=stamper):
                return await call_next(request)
        finally:
            # Cleanup to prevent stamper leakage
            clear_current_stamper(self.stamper_name)


def register_stamper_middleware(
    app: FastAPI,
    actor_loader: Optional[ActorLoader] = None,
    session_key: Optional[str] = None,
    stamper_name: Optional[str] = None,
    secret_key: Optional[str] = None,
) -> None:
    """Register the stamper middleware on an application.

    Args:
        app: FastAPI application instance.
        actor_loader: Optional callable loading the actor for a session id.
        session_key: Session key holding the actor id.
        stamper_name: Registry name of the stamper to set.
        secret_key: When given, also install SessionMiddleware signed with
            this key. Omit it if the application already installs sessions.
    """
    app.add_middleware(
        StamperMiddleware,
        actor_loader=actor_loader,
        session_key=session_key,
        stamper_name=stamper_name,
    )
    # Added last so it runs first and the session is loaded for the stamper
    if secret_key is not None:
        app.add_middleware(SessionMiddleware, secret_key=secret_key)

    logger.info("Stamper middleware registered", sessions=secret_key is not None)
