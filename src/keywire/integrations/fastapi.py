from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from keywire._internal.container import Container
from keywire._internal.providers import ServiceKey

try:
    from fastapi import Depends, FastAPI, Request
except ModuleNotFoundError as exc:  # pragma: no cover - exercised in optional import scenarios
    message = "FastAPI integration requires fastapi. Install with 'keywire[fastapi]'."
    raise ModuleNotFoundError(message) from exc

_KEYWIRE_CONTAINER_STATE = "keywire_container"


def setup_keywire(app: FastAPI, container: Container) -> None:
    """Attach ``container`` to ``app`` so request dependencies can resolve from it.

    Examples:
        .. code-block:: python

            app = FastAPI()
            setup_keywire(app, container)


            @app.get("/users/{user_id}")
            async def read_user(user_id: int, users: UserService = Provide("users")) -> dict:
                return users.get(user_id)

    """
    setattr(app.state, _KEYWIRE_CONTAINER_STATE, container)


def get_container(app: FastAPI) -> Container:
    """Return the container attached by ``setup_keywire``."""
    container = getattr(app.state, _KEYWIRE_CONTAINER_STATE, None)
    if container is None:
        msg = "No keywire container attached to this app. Call setup_keywire(app, container)."
        raise RuntimeError(msg)
    return container


async def request_scope(request: Request) -> AsyncIterator[Container]:
    """Yield a scope of the app container that lives for one request.

    FastAPI caches this dependency per request, so every ``Provide`` of one
    request shares the scope. The scope is disposed after the response.
    """
    scope = get_container(request.app).create_scope()
    try:
        yield scope
    finally:
        await scope.dispose()


def Provide(key: ServiceKey) -> Any:  # noqa: N802
    """Declare a FastAPI dependency resolving ``key`` from the request scope."""

    async def resolve_from_scope(scope: Container = Depends(request_scope)) -> Any:  # noqa: B008
        return scope.resolve(key)

    return Depends(resolve_from_scope)


__all__ = ["Provide", "get_container", "request_scope", "setup_keywire"]
