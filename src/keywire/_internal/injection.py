from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, get_type_hints

from keywire._internal.providers import ServiceKey
from keywire.markers import extract_inject_marker


@dataclass(frozen=True, slots=True)
class InjectedParameter:
    """A callable parameter resolved from a container key."""

    name: str
    key: ServiceKey


@dataclass(frozen=True, slots=True)
class InjectedCallableInspection:
    """Injection metadata derived from a callable signature and annotations."""

    signature: inspect.Signature
    injected_parameters: tuple[InjectedParameter, ...]
    public_signature: inspect.Signature


@dataclass(slots=True)
class InjectedCallableInspector:
    """Inspect callables for ``Annotated[..., Inject(key)]`` parameters."""

    def inspect_callable(self, callable_obj: Callable[..., Any]) -> InjectedCallableInspection:
        """Build injection metadata and a public signature for a callable."""
        signature = inspect.signature(callable_obj)
        injected_parameters = self.extract_injected_parameters(
            callable_obj=callable_obj,
            signature=signature,
        )
        public_signature = signature.replace(
            parameters=[
                parameter
                for parameter in signature.parameters.values()
                if parameter.name not in {injected.name for injected in injected_parameters}
            ],
        )
        return InjectedCallableInspection(
            signature=signature,
            injected_parameters=injected_parameters,
            public_signature=public_signature,
        )

    def extract_injected_parameters(
        self,
        *,
        callable_obj: Callable[..., Any],
        signature: inspect.Signature,
    ) -> tuple[InjectedParameter, ...]:
        resolved_annotations = self.resolved_annotations_for_injection(callable_obj=callable_obj)
        injected_parameters: list[InjectedParameter] = []
        for parameter in signature.parameters.values():
            annotation = resolved_annotations.get(parameter.name, parameter.annotation)
            marker = extract_inject_marker(annotation)
            if marker is None:
                continue
            injected_parameters.append(InjectedParameter(name=parameter.name, key=marker.key))
        return tuple(injected_parameters)

    def resolved_annotations_for_injection(
        self,
        *,
        callable_obj: Callable[..., Any],
    ) -> dict[str, Any]:
        """Resolve callable annotations with extras, falling back to an empty mapping."""
        try:
            return get_type_hints(callable_obj, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return {}


__all__ = [
    "InjectedCallableInspection",
    "InjectedCallableInspector",
    "InjectedParameter",
]
