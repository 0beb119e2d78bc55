from __future__ import annotations

import logging
from collections.abc import KeysView, Mapping
from types import TracebackType
from typing import Any

from keywire._internal.background import BackgroundStarter
from keywire._internal.dependencies import Dependencies
from keywire._internal.disposer import dispose_records, dispose_records_soon
from keywire._internal.instance_store import InstanceRecord, InstanceStore
from keywire._internal.providers import (
    Lifecycle,
    ServiceKey,
    UserProviderObject,
    as_provider,
)
from keywire._internal.registry import Registry
from keywire._internal.resolution_stack import ResolutionStack
from keywire.exceptions import (
    KeywireCircularDependencyError,
    KeywireContainerDisposedError,
    KeywireDisposeError,
    KeywireInjectionError,
)

logger = logging.getLogger(__name__)


class Container:
    """Build, cache, start and dispose the services of a declarative map.

    Each map value is a class, a function taking the ``Dependencies`` view, a
    constant, a list of those forming a decorator chain, or a descriptor made
    by ``singleton``/``scoped``/``transient``/``background``.

    Singletons and background services are shared with scopes created by
    ``create_scope``. Scoped services are cached per scope and transient ones
    are never cached. Background services are built and started when the
    container is created.
    """

    def __init__(
        self,
        services: Mapping[ServiceKey, UserProviderObject] | None = None,
        *,
        default_lifecycle: Lifecycle = Lifecycle.SINGLETON,
        start_background: bool = True,
    ) -> None:
        """Normalize the service map and start background services.

        Args:
            services: Mapping from key to provider, chain or descriptor.
            default_lifecycle: Lifecycle for entries not wrapped in a
                lifecycle helper.
            start_background: Build ``background`` services eagerly. Disable
                to build them on first resolution only.

        Raises:
            KeywireInvalidRegistrationError: If an implementation chain is
                empty or malformed.
            KeywireInjectionError: If a background service fails to build.

        Examples:
            .. code-block:: python

                container = Container(
                    {
                        "settings": Settings,
                        "db": lambda deps: Database(deps.get("settings").dsn),
                        "session": scoped(Session),
                    },
                )

        """
        registry = Registry.normalize(services or {}, default_lifecycle=default_lifecycle)
        self._setup(
            registry=registry,
            parent=None,
            starter=BackgroundStarter(),
            default_lifecycle=default_lifecycle,
            start_background=start_background,
        )
        self._start_background_services()

    @classmethod
    def _derive(
        cls,
        *,
        registry: Registry,
        parent: Container | None,
        starter: BackgroundStarter,
        default_lifecycle: Lifecycle,
        start_background: bool,
    ) -> Container:
        container = cls.__new__(cls)
        container._setup(
            registry=registry,
            parent=parent,
            starter=starter,
            default_lifecycle=default_lifecycle,
            start_background=start_background,
        )
        return container

    def _setup(
        self,
        *,
        registry: Registry,
        parent: Container | None,
        starter: BackgroundStarter,
        default_lifecycle: Lifecycle,
        start_background: bool,
    ) -> None:
        self._registry = registry
        self._parent = parent
        self._default_lifecycle = default_lifecycle
        self._start_background = start_background
        self._store = InstanceStore()
        self._resolving = ResolutionStack()
        self._starter = starter
        self._disposed = False

    def _start_background_services(self) -> None:
        if not self._start_background:
            return
        try:
            for key in self._registry.keys_with_lifecycle(Lifecycle.BACKGROUND):
                self.resolve(key)
        except Exception:
            self._abandon()
            raise

    def _abandon(self) -> None:
        """Tear down what a failed background startup already built."""
        self._disposed = True
        records = self._store.drain()
        self._starter.release(self)
        logger.debug("Background startup failed; tearing down %d instances", len(records))
        dispose_records_soon(records)

    # region Resolution
    def resolve(self, key: ServiceKey) -> Any:
        """Resolve the outermost layer of a declared key.

        Raises:
            KeywireNotFoundError: If the key is not declared.
            KeywireCircularDependencyError: If building the key reads it again
                while it is still under construction.
            KeywireInjectionError: If any provider in the graph fails.
            KeywireContainerDisposedError: If the container was disposed.

        """
        self._ensure_active()
        descriptor = self._registry.get(key)
        return self._resolve(key, descriptor.outermost_index, decorating=False)

    def resolve_all(self, key: ServiceKey) -> list[Any]:
        """Resolve every layer of a key's chain, innermost first."""
        self._ensure_active()
        descriptor = self._registry.get(key)
        return [
            self._resolve(key, index, decorating=False) for index in range(len(descriptor.chain))
        ]

    def inject(self, provider: UserProviderObject) -> Any:
        """Build a one-off provider against this container without registering it.

        The result is neither cached, started nor disposed by the container.
        """
        self._ensure_active()
        return as_provider(provider).build(Dependencies(self))

    def keys(self) -> KeysView[ServiceKey]:
        """Get the declared keys in declaration order."""
        return self._registry.keys()

    def __contains__(self, key: object) -> bool:
        return key in self._registry

    def _resolve_dependency(self, key: ServiceKey, owner: tuple[ServiceKey, int] | None) -> Any:
        self._ensure_active()
        descriptor = self._registry.get(key)
        if owner is not None and owner[0] == key and owner[1] > 0:
            return self._resolve(key, owner[1] - 1, decorating=True)
        return self._resolve(key, descriptor.outermost_index, decorating=False)

    def _resolve(self, key: ServiceKey, index: int, *, decorating: bool) -> Any:
        return self._resolve_record(key, index, decorating=decorating).instance

    def _resolve_record(self, key: ServiceKey, index: int, *, decorating: bool) -> InstanceRecord:
        descriptor = self._registry.get(key)
        lifecycle = descriptor.lifecycle or self._default_lifecycle

        parent = self._parent
        if lifecycle.is_shared and parent is not None and parent._registry.declares(key, descriptor):
            parent._ensure_active()
            try:
                return parent._resolve_record(key, index, decorating=decorating)
            except KeywireInjectionError as error:
                error.prepend_path(self._resolving.path)
                raise

        record = self._store.get(key, index)
        if record is not None:
            return record

        if not decorating and key in self._resolving:
            raise KeywireCircularDependencyError(self._resolving.path_to(key))

        with self._resolving.entering(key):
            try:
                instance = descriptor.chain[index].build(Dependencies(self, (key, index)))
            except KeywireInjectionError:
                raise
            except Exception as error:
                raise KeywireInjectionError(self._resolving.path, error) from error

        record = InstanceRecord(key=key, index=index, instance=instance)
        self._store.add(record, cache=lifecycle.is_cached)
        logger.debug("Built %r[%d] with %s lifecycle", key, index, lifecycle.value)
        record.start = self._starter.start(key, instance, owner=self)
        return record

    # endregion Resolution

    # region Scopes and Overrides
    def create_scope(self) -> Container:
        """Create a child container sharing this container's singletons.

        Scoped and transient services resolve locally in the child. The child
        never writes to this container's caches, and disposing the child only
        tears down instances it built itself.
        """
        self._ensure_active()
        logger.debug("Creating scope with %d declared services", len(self._registry))
        return self._derive(
            registry=self._registry,
            parent=self,
            starter=self._starter,
            default_lifecycle=self._default_lifecycle,
            start_background=self._start_background,
        )

    def with_overrides(self, overrides: Mapping[ServiceKey, UserProviderObject]) -> Container:
        """Derive an independent container with ``overrides`` merged on top.

        The derived container starts with empty caches and runs background
        startup again. A scope derived this way keeps its parent, so keys the
        override leaves untouched are still shared with that parent, while
        replaced or added keys are always built locally.

        Examples:
            .. code-block:: python

                test_container = container.with_overrides({"mailer": FakeMailer})

        """
        registry = self._registry.overlay(overrides, default_lifecycle=self._default_lifecycle)
        logger.debug("Deriving container with %d overridden services", len(overrides))
        container = self._derive(
            registry=registry,
            parent=self._parent,
            starter=self._starter,
            default_lifecycle=self._default_lifecycle,
            start_background=self._start_background,
        )
        container._start_background_services()
        return container

    # endregion Scopes and Overrides

    # region Lifecycle
    async def started(self, key: ServiceKey) -> Any:
        """Resolve ``key`` and wait until its ``start()`` result settles.

        Returns:
            The value returned (or awaited) from ``start()``, or ``None`` when
            the service has no ``start()``.

        Raises:
            KeywireStartError: If ``start()`` raised or its awaitable failed.

        """
        self._ensure_active()
        descriptor = self._registry.get(key)
        record = self._resolve_record(key, descriptor.outermost_index, decorating=False)
        if record.start is None:
            return None
        return await record.start.wait()

    async def dispose(self) -> None:
        """Tear down every instance this container built.

        ``close()`` and ``aclose()`` of all instances run concurrently. Caches
        are cleared even when teardown fails. Calling ``dispose`` again is a
        no-op.

        Raises:
            KeywireDisposeError: If any teardown failed, listing every failure.

        """
        if self._disposed:
            return
        self._disposed = True

        records = self._store.drain()
        self._starter.release(self)
        failures = await dispose_records(records)
        if failures:
            raise KeywireDisposeError(failures)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _ensure_active(self) -> None:
        if self._disposed:
            msg = "Container was disposed; create a new container to resolve services again."
            raise KeywireContainerDisposedError(msg)

    async def __aenter__(self) -> Container:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Dispose the container when leaving an ``async with`` block."""
        await self.dispose()

    # endregion Lifecycle


def create_container(
    services: Mapping[ServiceKey, UserProviderObject] | None = None,
    *,
    default_lifecycle: Lifecycle = Lifecycle.SINGLETON,
    start_background: bool = True,
) -> Container:
    """Create a container for ``services``; see ``Container`` for details."""
    return Container(
        services,
        default_lifecycle=default_lifecycle,
        start_background=start_background,
    )


__all__ = ["Container", "create_container"]
