from __future__ import annotations

import asyncio
import functools
import inspect
from collections.abc import Callable, Iterator
from typing import Any, cast

import pytest

from keywire._internal.container import Container
from keywire._internal.injection import InjectedCallableInspector, InjectedParameter

_KEYWIRE_CONTAINER_ATTR = "_keywire_container"
_KEYWIRE_INJECTED_PARAMETERS_ATTR = "__keywire_pytest_injected_parameters__"
_INJECTED_CALLABLE_INSPECTOR = InjectedCallableInspector()


@pytest.fixture()
def keywire_container() -> Container:
    """Provide the container ``Inject(...)`` test parameters resolve from.

    Override this fixture in a ``conftest.py`` to supply the application's
    service map. Every test resolves from its own scope of this container, and
    the scope is disposed when the test finishes.

    Returns:
        An empty ``Container``.

    """
    return Container()


@pytest.fixture(autouse=True)
def _keywire_state(
    request: pytest.FixtureRequest,
    keywire_container: Container,
) -> None:
    """Store plugin state on the test node for hook access."""
    node = cast("Any", request.node)
    setattr(node, _KEYWIRE_CONTAINER_ATTR, keywire_container)


def pytest_pycollect_makeitem(
    collector: Any,
    name: str,
    obj: object,
) -> Any | None:
    """Hide ``Inject(...)`` parameters from pytest fixture name matching.

    Pytest treats test function parameters as fixture names. This hook rewrites
    the signature of test functions with injected parameters so pytest only
    requests the remaining ones as fixtures.

    Returns:
        ``None`` to continue default collection flow.

    """
    if not callable(obj):
        return None
    if not collector.istestfunction(obj, name):
        return None

    callable_obj = cast("Callable[..., Any]", obj)
    inspection = _INJECTED_CALLABLE_INSPECTOR.inspect_callable(callable_obj)
    if not inspection.injected_parameters:
        return None

    obj_as_any = cast("Any", obj)
    obj_as_any.__dict__[_KEYWIRE_INJECTED_PARAMETERS_ATTR] = inspection.injected_parameters
    obj_as_any.__signature__ = inspection.public_signature
    return None


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Iterator[None]:
    """Wrap test function execution to resolve ``Inject(...)`` parameters.

    The test runs against a fresh scope of the node's container, disposed
    once the test returns. Items without injected parameters or without plugin
    state are left untouched.

    Yields:
        Control back to pytest around test execution.

    """
    original_callable = cast("Callable[..., Any]", pyfuncitem.obj)
    injected_parameters = cast(
        "tuple[InjectedParameter, ...] | None",
        getattr(original_callable, _KEYWIRE_INJECTED_PARAMETERS_ATTR, None),
    )
    container = cast("Container | None", getattr(pyfuncitem, _KEYWIRE_CONTAINER_ATTR, None))
    if not injected_parameters or container is None:
        yield
        return

    pyfuncitem.obj = inject_into(container, original_callable, injected_parameters)
    try:
        yield
    finally:
        pyfuncitem.obj = original_callable


def inject_into(
    container: Container,
    func: Callable[..., Any],
    injected_parameters: tuple[InjectedParameter, ...],
) -> Callable[..., Any]:
    """Wrap ``func`` so injected parameters resolve from a per-call scope."""

    def resolve_injected(scope: Container) -> dict[str, Any]:
        return {parameter.name: scope.resolve(parameter.key) for parameter in injected_parameters}

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            scope = container.create_scope()
            try:
                return await func(*args, **kwargs, **resolve_injected(scope))
            finally:
                await scope.dispose()

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        scope = container.create_scope()
        try:
            return func(*args, **kwargs, **resolve_injected(scope))
        finally:
            _dispose_blocking(scope)

    return wrapper


def _dispose_blocking(scope: Container) -> None:
    # private loop so an event loop owned by pytest-asyncio is left alone
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(scope.dispose())
    finally:
        loop.close()
