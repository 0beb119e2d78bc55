from __future__ import annotations

import inspect
import types
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from enum import Enum
from inspect import Parameter
from typing import TYPE_CHECKING, Any, TypeAlias, TypeVar

from keywire._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from keywire.exceptions import KeywireInvalidRegistrationError

if TYPE_CHECKING:
    from keywire._internal.dependencies import Dependencies

T = TypeVar("T")

ServiceKey: TypeAlias = Hashable
"""A key naming a declared service, usually a string."""

UserProviderObject: TypeAlias = Any
"""A class, function, constant, chain or descriptor supplied in a service map."""


class Lifecycle(Enum):
    """Defines how instances of a service are cached and shared."""

    SINGLETON = "singleton"
    """One instance per container, shared with child scopes."""

    SCOPED = "scoped"
    """One instance per scope, never shared with a parent or child."""

    TRANSIENT = "transient"
    """A new instance on every resolution, never cached."""

    BACKGROUND = "background"
    """A singleton that is built and started eagerly with its container."""

    @property
    def is_cached(self) -> bool:
        return self is not Lifecycle.TRANSIENT

    @property
    def is_shared(self) -> bool:
        """Return whether child scopes reuse the parent's instance."""
        return self in (Lifecycle.SINGLETON, Lifecycle.BACKGROUND)


@dataclass(frozen=True, slots=True)
class Factory:
    """A function building an instance from the dependency view.

    Functions declaring no positional parameter are called without arguments.
    """

    func: Callable[..., Any]
    pass_dependencies: bool = True

    def build(self, dependencies: Dependencies) -> Any:
        if self.pass_dependencies:
            return self.func(dependencies)
        return self.func()


@dataclass(frozen=True, slots=True)
class Constructible:
    """A class instantiated with the dependency view as its only argument.

    ``pass_dependencies=False`` instantiates the class with no arguments. That
    is how classes without constructor parameters and settings classes reading
    the environment are registered.
    """

    cls: type[Any]
    pass_dependencies: bool = True

    def build(self, dependencies: Dependencies) -> Any:
        if self.pass_dependencies:
            return self.cls(dependencies)
        return self.cls()


@dataclass(frozen=True, slots=True)
class Constant:
    """A ready-made value returned as is."""

    value: Any

    def build(self, dependencies: Dependencies) -> Any:  # noqa: ARG002
        return self.value


Provider: TypeAlias = Factory | Constructible | Constant
"""One layer of an implementation chain."""


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """A normalized registration: an implementation chain plus its lifecycle.

    Chains longer than one describe decorator layering. The provider at
    position ``i`` reading its own key receives the instance built by
    position ``i - 1``. Resolution returns the last (outermost) layer.

    ``lifecycle=None`` defers to the container's ``default_lifecycle``.
    """

    chain: tuple[Provider, ...]
    lifecycle: Lifecycle | None = None

    def __post_init__(self) -> None:
        if not self.chain:
            msg = "A service needs at least one provider in its implementation chain."
            raise KeywireInvalidRegistrationError(msg)

    @property
    def outermost_index(self) -> int:
        return len(self.chain) - 1

    def with_lifecycle(self, lifecycle: Lifecycle) -> ServiceDescriptor:
        return ServiceDescriptor(chain=self.chain, lifecycle=lifecycle)


def as_provider(obj: UserProviderObject) -> Provider:
    """Normalize one chain entry into a provider variant.

    Explicit ``Factory``/``Constructible``/``Constant`` values are kept. A bare
    class becomes ``Constructible``, any other callable a ``Factory`` and every
    other value a ``Constant``. Wrap callables in ``constant(...)`` to register
    them as values.
    """
    if isinstance(obj, Factory | Constructible | Constant):
        return obj
    if isinstance(obj, ServiceDescriptor | list | tuple):
        msg = (
            f"Implementation chains cannot be nested, got {obj!r}. "
            "Pass providers directly to the lifecycle helper."
        )
        raise KeywireInvalidRegistrationError(msg)
    if is_pydantic_settings_subclass(obj):
        return Constructible(obj, pass_dependencies=False)
    if _is_constructible(obj):
        return Constructible(obj, pass_dependencies=accepts_dependencies(obj))
    if callable(obj):
        return Factory(obj, pass_dependencies=accepts_dependencies(obj))
    return Constant(obj)


def _is_constructible(obj: object) -> bool:
    # list[int] and friends are callable but are not classes
    return isinstance(obj, type) and not isinstance(obj, types.GenericAlias)


_POSITIONAL_KINDS = (
    Parameter.POSITIONAL_ONLY,
    Parameter.POSITIONAL_OR_KEYWORD,
    Parameter.VAR_POSITIONAL,
)


def accepts_dependencies(provider: Callable[..., Any]) -> bool:
    """Return whether ``provider`` can take the dependency view positionally.

    Providers whose signature cannot be inspected are assumed to take it.
    """
    try:
        signature = inspect.signature(provider)
    except (TypeError, ValueError):
        return True
    return any(parameter.kind in _POSITIONAL_KINDS for parameter in signature.parameters.values())


def as_descriptor(obj: UserProviderObject) -> ServiceDescriptor:
    """Normalize one service map value into a descriptor."""
    if isinstance(obj, ServiceDescriptor):
        return obj
    if isinstance(obj, list | tuple):
        return ServiceDescriptor(chain=tuple(as_provider(item) for item in obj))
    return ServiceDescriptor(chain=(as_provider(obj),))


def constant(value: T) -> Constant:
    """Register ``value`` as is, even when it is callable."""
    return Constant(value)


def _tagged(lifecycle: Lifecycle, providers: tuple[UserProviderObject, ...]) -> ServiceDescriptor:
    return ServiceDescriptor(
        chain=tuple(as_provider(provider) for provider in providers),
        lifecycle=lifecycle,
    )


def singleton(*providers: UserProviderObject) -> ServiceDescriptor:
    """Declare a service built once per container and shared with scopes.

    Examples:
        .. code-block:: python

            container = Container(
                {
                    "settings": singleton(Settings),
                    "repository": singleton(Repository, CachingRepository),
                },
            )

    """
    return _tagged(Lifecycle.SINGLETON, providers)


def scoped(*providers: UserProviderObject) -> ServiceDescriptor:
    """Declare a service built once per scope."""
    return _tagged(Lifecycle.SCOPED, providers)


def transient(*providers: UserProviderObject) -> ServiceDescriptor:
    """Declare a service built on every resolution."""
    return _tagged(Lifecycle.TRANSIENT, providers)


def background(*providers: UserProviderObject) -> ServiceDescriptor:
    """Declare a singleton built and started as soon as the container exists.

    Instances exposing ``start()`` are started right after construction. A
    ``start()`` returning an awaitable is scheduled on the running event loop,
    and ``await container.started(key)`` waits for it.
    """
    return _tagged(Lifecycle.BACKGROUND, providers)


__all__ = [
    "Constant",
    "Constructible",
    "Factory",
    "Lifecycle",
    "Provider",
    "ServiceDescriptor",
    "ServiceKey",
    "as_descriptor",
    "as_provider",
    "background",
    "constant",
    "scoped",
    "singleton",
    "transient",
]
