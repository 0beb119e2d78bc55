from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Annotated, Any, cast
from unittest.mock import Mock

from keywire import Container, Inject, constant, scoped
from keywire._internal.injection import InjectedParameter
from keywire.integrations.pytest_plugin import (
    inject_into,
    pytest_pycollect_makeitem,
    pytest_pyfunc_call,
)


class _Service:
    def __init__(self, value: str = "service") -> None:
        self.value = value


class _DummyCollector:
    def __init__(self, *, is_test_function: bool) -> None:
        self._is_test_function = is_test_function

    def istestfunction(self, obj: object, name: str) -> bool:
        _ = obj, name
        return self._is_test_function


class _DummyPyFuncItem:
    def __init__(self, *, obj: Callable[..., Any], container: Container | None) -> None:
        self.obj = obj
        if container is not None:
            self._keywire_container = container


def test_pycollect_makeitem_ignores_non_callable_objects() -> None:
    collector = _DummyCollector(is_test_function=True)

    result = pytest_pycollect_makeitem(collector=collector, name="test_value", obj=1)

    assert result is None


def test_pycollect_makeitem_ignores_non_test_callables() -> None:
    collector = _DummyCollector(is_test_function=False)

    def helper(value: int, service: Annotated[_Service, Inject("service")]) -> None:
        _ = value, service

    original_signature = inspect.signature(helper)
    result = pytest_pycollect_makeitem(collector=collector, name="helper", obj=helper)

    assert result is None
    assert inspect.signature(helper) == original_signature


def test_pycollect_makeitem_rewrites_signature_for_injected_parameters() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(
        value: int,
        service: Annotated[_Service, Inject("service")],
    ) -> tuple[int, _Service]:
        return value, service

    assert tuple(inspect.signature(test_handler).parameters) == ("value", "service")
    result = pytest_pycollect_makeitem(
        collector=collector,
        name="test_handler",
        obj=test_handler,
    )

    assert result is None
    assert tuple(inspect.signature(test_handler).parameters) == ("value",)


def test_pycollect_makeitem_leaves_plain_annotated_parameters_alone() -> None:
    collector = _DummyCollector(is_test_function=True)

    def test_handler(value: Annotated[int, "metadata"]) -> int:
        return value

    pytest_pycollect_makeitem(collector=collector, name="test_handler", obj=test_handler)

    assert tuple(inspect.signature(test_handler).parameters) == ("value",)
    assert "__keywire_pytest_injected_parameters__" not in test_handler.__dict__


def test_pyfunc_call_passes_through_when_no_injected_parameters() -> None:
    def test_handler(value: int) -> int:
        return value

    item = _DummyPyFuncItem(obj=test_handler, container=Container())
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    assert item.obj is test_handler
    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_wraps_injected_callable_and_restores_original() -> None:
    default_dependency = _Service("container")
    container = Container({"service": constant(default_dependency)})

    def test_handler(service: Annotated[_Service, Inject("service")]) -> _Service:
        return service

    pytest_pycollect_makeitem(
        collector=_DummyCollector(is_test_function=True),
        name="test_handler",
        obj=test_handler,
    )
    item = _DummyPyFuncItem(obj=test_handler, container=container)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    wrapped = cast("Callable[..., _Service]", item.obj)
    assert wrapped is not test_handler
    assert wrapped() is default_dependency

    next(hook, None)
    assert item.obj is test_handler


def test_pyfunc_call_passes_through_when_container_state_is_missing() -> None:
    def test_handler(service: Annotated[_Service, Inject("service")]) -> _Service:
        return service

    pytest_pycollect_makeitem(
        collector=_DummyCollector(is_test_function=True),
        name="test_handler",
        obj=test_handler,
    )
    item = _DummyPyFuncItem(obj=test_handler, container=None)
    hook = pytest_pyfunc_call(cast("Any", item))
    next(hook)

    assert item.obj is test_handler
    next(hook, None)
    assert item.obj is test_handler


def test_inject_into_uses_a_fresh_scope_per_call_and_disposes_it() -> None:
    close = Mock()

    class Session:
        def close(self) -> None:
            close()

    container = Container({"session": scoped(Session)})
    seen: list[Any] = []

    def test_handler(session: Any) -> None:
        seen.append(session)

    parameters = (InjectedParameter(name="session", key="session"),)
    wrapped = inject_into(container, test_handler, parameters)

    wrapped()
    wrapped()

    first, second = seen
    assert first is not second
    assert close.call_count == 2


def test_inject_into_supports_coroutine_functions() -> None:
    close = Mock()

    class Session:
        def close(self) -> None:
            close()

    container = Container({"session": scoped(Session)})

    async def test_handler(session: Any) -> Any:
        return session

    parameters = (InjectedParameter(name="session", key="session"),)
    wrapped = inject_into(container, test_handler, parameters)

    session = asyncio.run(wrapped())

    assert isinstance(session, Session)
    close.assert_called_once_with()

