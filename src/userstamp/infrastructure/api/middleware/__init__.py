"""Stamper middleware package."""

from userstamp.infrastructure.api.middleware.stamper_middleware import (
    StamperMiddleware,
    register_stamper_middleware,
    resolve_current_actor,
)

__all__ = [
    "StamperMiddleware",
    "register_stamper_middleware",
    "resolve_current_actor",
]
