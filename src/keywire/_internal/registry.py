from __future__ import annotations

from collections.abc import Iterator, KeysView, Mapping

from keywire._internal.providers import (
    Lifecycle,
    ServiceDescriptor,
    ServiceKey,
    UserProviderObject,
    as_descriptor,
)
from keywire.exceptions import KeywireNotFoundError


class Registry:
    """Holds the normalized service descriptors of a container.

    Keys keep their declaration order. A registry is never mutated after
    construction; scopes share it and overrides build a new one.
    """

    def __init__(self, descriptors: Mapping[ServiceKey, ServiceDescriptor]) -> None:
        self._descriptors: dict[ServiceKey, ServiceDescriptor] = dict(descriptors)

    @classmethod
    def normalize(
        cls,
        services: Mapping[ServiceKey, UserProviderObject],
        *,
        default_lifecycle: Lifecycle,
    ) -> Registry:
        """Normalize a service map into descriptors with a concrete lifecycle."""
        descriptors: dict[ServiceKey, ServiceDescriptor] = {}
        for key, value in services.items():
            descriptor = as_descriptor(value)
            if descriptor.lifecycle is None:
                descriptor = descriptor.with_lifecycle(default_lifecycle)
            descriptors[key] = descriptor
        return cls(descriptors)

    def overlay(
        self,
        overrides: Mapping[ServiceKey, UserProviderObject],
        *,
        default_lifecycle: Lifecycle,
    ) -> Registry:
        """Return a new registry with ``overrides`` merged on top.

        Descriptors of untouched keys are reused as is, so identity checks
        against a parent registry keep working for them.
        """
        replacements = self.normalize(overrides, default_lifecycle=default_lifecycle)
        return Registry({**self._descriptors, **replacements._descriptors})

    def get(self, key: ServiceKey) -> ServiceDescriptor:
        """Get a descriptor by key."""
        try:
            return self._descriptors[key]
        except KeyError:
            raise KeywireNotFoundError(key) from None
        except TypeError as error:
            # unhashable keys can never be declared
            raise KeywireNotFoundError(key) from error

    def declares(self, key: ServiceKey, descriptor: ServiceDescriptor) -> bool:
        """Return whether ``key`` is declared here with exactly ``descriptor``."""
        return self._descriptors.get(key) is descriptor

    def keys_with_lifecycle(self, lifecycle: Lifecycle) -> list[ServiceKey]:
        """Get keys declared with ``lifecycle``, in declaration order."""
        return [
            key
            for key, descriptor in self._descriptors.items()
            if descriptor.lifecycle is lifecycle
        ]

    def keys(self) -> KeysView[ServiceKey]:
        return self._descriptors.keys()

    def __contains__(self, key: object) -> bool:
        try:
            return key in self._descriptors
        except TypeError:
            return False

    def __iter__(self) -> Iterator[ServiceKey]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)
