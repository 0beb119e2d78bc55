"""Shared pytest fixtures for keywire tests."""

from __future__ import annotations

from typing import Any

import pytest

from keywire import Container, Dependencies


class ServiceA:
    def __init__(self) -> None:
        self.value = "a"


class ServiceB:
    def __init__(self, deps: Dependencies) -> None:
        self.service_a: ServiceA = deps.get("service_a")
        self.value = self.service_a.value + "b"


@pytest.fixture()
def services() -> dict[str, Any]:
    """Minimal two-service map where ``service_b`` depends on ``service_a``."""
    return {"service_a": ServiceA, "service_b": ServiceB}


@pytest.fixture()
def container(services: dict[str, Any]) -> Container:
    """Container built from the ``services`` fixture."""
    return Container(services)
