from __future__ import annotations

import asyncio
import inspect
import logging
import weakref
from collections.abc import Awaitable
from typing import Any

from keywire._internal.capabilities import Startable, has_capability
from keywire._internal.providers import ServiceKey
from keywire.exceptions import KeywireStartError

logger = logging.getLogger(__name__)


class StartHandle:
    """The memoized outcome of calling ``start()`` on one instance.

    Synchronous results and failures settle immediately. An awaitable result
    becomes a task when an event loop is running, otherwise it is kept until
    someone calls ``wait()``. Failures are stored as ``KeywireStartError`` and
    raised only from ``wait()``.

    The instance is referenced weakly when its type allows it, so a handle
    never keeps a transient instance alive.
    """

    def __init__(self, key: ServiceKey, instance: Any, owner: object = None) -> None:
        self.key = key
        self.owner = owner
        self._strong: Any = None
        self._weak: weakref.ref[Any] | None = None
        try:
            self._weak = weakref.ref(instance)
        except TypeError:
            self._strong = instance
        self._result: Any = None
        self._cause: BaseException | None = None
        self._error: KeywireStartError | None = None
        self._pending: Awaitable[Any] | None = None
        self._task: asyncio.Future[Any] | None = None
        self._settled = False

    @property
    def instance(self) -> Any:
        """The started instance, or ``None`` once it was garbage collected."""
        if self._weak is not None:
            return self._weak()
        return self._strong

    @property
    def weak(self) -> bool:
        return self._weak is not None

    @property
    def done(self) -> bool:
        return self._settled

    @property
    def error(self) -> KeywireStartError | None:
        if self._cause is None:
            return None
        if self._error is None:
            self._error = KeywireStartError(self.key, self.instance, self._cause)
        return self._error

    def run(self, instance: Any) -> None:
        """Call ``instance.start()`` once and capture its outcome."""
        try:
            result = instance.start()
        except Exception as error:  # noqa: BLE001
            self._fail(error)
            return

        if not inspect.isawaitable(result):
            self._result = result
            self._settled = True
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._pending = result
            return
        self._schedule(result)

    async def wait(self) -> Any:
        """Wait until the start result settles and return it.

        Raises:
            KeywireStartError: If ``start()`` raised or its awaitable failed.

        """
        if self._pending is not None:
            pending, self._pending = self._pending, None
            self._schedule(pending)
        if self._task is not None:
            await asyncio.wait({self._task})
            self._collect(self._task)
        error = self.error
        if error is not None:
            raise error
        return self._result

    def close(self) -> None:
        """Drop an awaitable nobody ever waited for."""
        pending, self._pending = self._pending, None
        if pending is None:
            return
        if inspect.iscoroutine(pending):
            pending.close()
        self._settled = True

    def _schedule(self, awaitable: Awaitable[Any]) -> None:
        self._task = asyncio.ensure_future(awaitable)
        self._task.add_done_callback(self._collect)

    def _collect(self, task: asyncio.Future[Any]) -> None:
        if self._settled:
            return
        if task.cancelled():
            self._fail(asyncio.CancelledError())
            return
        error = task.exception()
        if error is not None:
            self._fail(error)
            return
        self._result = task.result()
        self._settled = True

    def _fail(self, error: BaseException) -> None:
        self._cause = error
        self._settled = True
        logger.warning("Captured start failure of %r: %s", self.key, error)


class BackgroundStarter:
    """Start each instance exposing ``start()`` exactly once.

    A root container, its scopes and every container derived from it with
    overrides share one starter, so an instance reaching several of them is
    started once. Handles of weakly referenceable instances are forgotten as
    soon as the instance is collected.
    """

    def __init__(self) -> None:
        self._handles: dict[int, StartHandle] = {}

    def start(self, key: ServiceKey, instance: Any, *, owner: object = None) -> StartHandle | None:
        if not has_capability(instance, Startable):
            return None

        handle = self.handle_for(instance)
        if handle is not None:
            return handle

        identity = id(instance)
        handle = StartHandle(key, instance, owner)
        self._handles[identity] = handle
        if handle.weak:
            weakref.finalize(instance, self._discard, identity, handle)
        handle.run(instance)
        logger.debug("Started %r", key)
        return handle

    def handle_for(self, instance: Any) -> StartHandle | None:
        handle = self._handles.get(id(instance))
        if handle is not None and handle.instance is instance:
            return handle
        return None

    def release(self, owner: object) -> None:
        """Forget the handles created for ``owner``, dropping awaitables that never ran."""
        for identity, handle in list(self._handles.items()):
            if handle.owner is owner:
                handle.close()
                del self._handles[identity]

    def _discard(self, identity: int, handle: StartHandle) -> None:
        if self._handles.get(identity) is handle:
            del self._handles[identity]

    def __len__(self) -> int:
        return len(self._handles)
