from keywire._internal.providers import (
    Constant,
    Constructible,
    Factory,
    Lifecycle,
    Provider,
    ServiceDescriptor,
    ServiceKey,
    background,
    constant,
    scoped,
    singleton,
    transient,
)

__all__ = [
    "Constant",
    "Constructible",
    "Factory",
    "Lifecycle",
    "Provider",
    "ServiceDescriptor",
    "ServiceKey",
    "background",
    "constant",
    "scoped",
    "singleton",
    "transient",
]
