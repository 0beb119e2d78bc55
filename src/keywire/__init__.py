from keywire.capabilities import AsyncDisposable, Disposable, Startable
from keywire.container import Container, create_container
from keywire.dependencies import Dependencies
from keywire.exceptions import (
    DisposeFailure,
    KeywireCircularDependencyError,
    KeywireContainerDisposedError,
    KeywireDisposeError,
    KeywireError,
    KeywireInjectionError,
    KeywireInvalidRegistrationError,
    KeywireNotFoundError,
    KeywireStartError,
)
from keywire.markers import Inject
from keywire.providers import (
    Constant,
    Constructible,
    Factory,
    Lifecycle,
    ServiceDescriptor,
    background,
    constant,
    scoped,
    singleton,
    transient,
)

__all__ = [
    "AsyncDisposable",
    "Constant",
    "Constructible",
    "Container",
    "Dependencies",
    "Disposable",
    "DisposeFailure",
    "Factory",
    "Inject",
    "KeywireCircularDependencyError",
    "KeywireContainerDisposedError",
    "KeywireDisposeError",
    "KeywireError",
    "KeywireInjectionError",
    "KeywireInvalidRegistrationError",
    "KeywireNotFoundError",
    "KeywireStartError",
    "Lifecycle",
    "ServiceDescriptor",
    "Startable",
    "background",
    "constant",
    "create_container",
    "scoped",
    "singleton",
    "transient",
]
