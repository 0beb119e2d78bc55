"""Tests for singleton, transient and background lifecycles."""

from __future__ import annotations

import asyncio
import gc
from typing import Any
from unittest.mock import Mock

import pytest

from keywire import (
    Container,
    Dependencies,
    KeywireInjectionError,
    Lifecycle,
    background,
    scoped,
    singleton,
    transient,
)


def _factories() -> tuple[Mock, Mock]:
    service_a = Mock(side_effect=lambda _deps: {"value": "a"})
    service_b = Mock(side_effect=lambda deps: {"value": deps.get("service_a")["value"] + "b"})
    return service_a, service_b


class TestSingleton:
    def test_singleton_is_built_once(self) -> None:
        service_a, service_b = _factories()
        container = Container({"service_a": singleton(service_a), "service_b": singleton(service_b)})

        service_b1 = container.resolve("service_b")
        service_b2 = container.resolve("service_b")
        service_a1 = container.resolve("service_a")
        service_a2 = container.resolve("service_a")

        assert service_b1 is service_b2
        assert service_a1 is service_a2
        assert service_a.call_count == 1
        assert service_b.call_count == 1

    def test_bare_registrations_default_to_singleton(self) -> None:
        service_a, _ = _factories()
        container = Container({"service_a": service_a})

        assert container.resolve("service_a") is container.resolve("service_a")
        assert service_a.call_count == 1

    def test_default_lifecycle_is_configurable(self) -> None:
        service_a, _ = _factories()
        container = Container({"service_a": service_a}, default_lifecycle=Lifecycle.TRANSIENT)

        assert container.resolve("service_a") is not container.resolve("service_a")
        assert service_a.call_count == 2

    def test_explicit_tag_wins_over_default_lifecycle(self) -> None:
        service_a, _ = _factories()
        container = Container(
            {"service_a": singleton(service_a)},
            default_lifecycle=Lifecycle.TRANSIENT,
        )

        assert container.resolve("service_a") is container.resolve("service_a")


class TestTransient:
    def test_transient_builds_every_time(self) -> None:
        service_a, service_b = _factories()
        container = Container({"service_a": transient(service_a), "service_b": transient(service_b)})

        service_b1 = container.resolve("service_b")
        service_b2 = container.resolve("service_b")
        service_a1 = container.resolve("service_a")
        service_a2 = container.resolve("service_a")

        assert service_b1 is not service_b2
        assert service_a1 is not service_a2
        assert service_a.call_count == 4
        assert service_b.call_count == 2

    def test_transient_dependency_of_singleton_is_captured_once(self) -> None:
        service_a, service_b = _factories()
        container = Container({"service_a": transient(service_a), "service_b": singleton(service_b)})

        container.resolve("service_b")
        container.resolve("service_b")

        assert service_a.call_count == 1


class TestScoped:
    def test_scoped_is_cached_within_the_container(self) -> None:
        service_a, _ = _factories()
        container = Container({"service_a": scoped(service_a)})

        assert container.resolve("service_a") is container.resolve("service_a")
        assert service_a.call_count == 1


class TestBackground:
    def test_background_is_built_and_started_with_the_container(self) -> None:
        start = Mock()

        class Worker:
            def __init__(self) -> None:
                self.start = start

        Container({"worker": background(Worker)})

        start.assert_called_once_with()

    def test_background_is_not_restarted_on_resolve(self) -> None:
        built: list[Any] = []

        class Worker:
            def __init__(self) -> None:
                self.starts = 0
                built.append(self)

            def start(self) -> None:
                self.starts += 1

        container = Container({"worker": background(Worker)})

        worker = container.resolve("worker")
        assert container.resolve("worker") is worker
        assert built == [worker]
        assert worker.starts == 1

    def test_background_services_start_in_declaration_order(self) -> None:
        started: list[str] = []

        def worker(name: str) -> Any:
            def build() -> Mock:
                return Mock(start=lambda: started.append(name))

            return build

        Container(
            {
                "second": background(worker("second")),
                "plain": worker("plain"),
                "first": background(worker("first")),
            },
        )

        assert started == ["second", "first"]

    def test_background_dependencies_are_built_eagerly_too(self) -> None:
        dependency = Mock(side_effect=lambda _deps: object())

        def worker(deps: Dependencies) -> Any:
            return deps.get("dependency")

        container = Container({"dependency": dependency, "worker": background(worker)})

        assert dependency.call_count == 1
        assert container.resolve("worker") is container.resolve("dependency")

    def test_eager_startup_can_be_disabled(self) -> None:
        worker = Mock(side_effect=lambda _deps: object())

        container = Container({"worker": background(worker)}, start_background=False)

        assert worker.call_count == 0
        container.resolve("worker")
        assert worker.call_count == 1

    def test_background_build_failure_fails_container_construction(self) -> None:
        def broken() -> None:
            msg = "cannot connect"
            raise ConnectionError(msg)

        with pytest.raises(KeywireInjectionError, match="Injection error for worker: cannot connect"):
            Container({"worker": background(broken)})

    def test_background_build_failure_tears_down_built_services(self) -> None:
        close = Mock()

        class Worker:
            def close(self) -> None:
                close()

        def broken() -> None:
            msg = "cannot connect"
            raise ConnectionError(msg)

        with pytest.raises(KeywireInjectionError, match="Injection error for broken: cannot connect"):
            Container({"worker": background(Worker), "broken": background(broken)})

        close.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_background_build_failure_tears_down_on_the_running_loop(self) -> None:
        closed = asyncio.Event()

        class Worker:
            async def aclose(self) -> None:
                closed.set()

        def broken() -> None:
            msg = "cannot connect"
            raise ConnectionError(msg)

        with pytest.raises(KeywireInjectionError):
            Container({"worker": background(Worker), "broken": background(broken)})

        await asyncio.wait_for(closed.wait(), timeout=1)

    def test_start_runs_for_every_lifecycle(self) -> None:
        starts = Mock()

        class Service:
            def start(self) -> None:
                starts(self)

        container = Container({"service": transient(Service)})

        first = container.resolve("service")
        second = container.resolve("service")

        assert [call.args[0] for call in starts.call_args_list] == [first, second]

    def test_transient_constant_is_started_once(self) -> None:
        start = Mock()
        value = Mock(start=start)
        container = Container({"value": transient(lambda: value)})

        container.resolve("value")
        container.resolve("value")

        start.assert_called_once_with()

    def test_started_transients_are_not_kept_alive(self) -> None:
        class Worker:
            def start(self) -> None:
                pass

        container = Container({"worker": transient(Worker)})
        for _ in range(10):
            container.resolve("worker")
        gc.collect()

        assert len(container._starter) == 0
