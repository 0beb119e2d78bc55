from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Iterable

from keywire._internal.capabilities import AsyncDisposable, Disposable, has_capability
from keywire._internal.instance_store import InstanceRecord
from keywire.exceptions import DisposeFailure

logger = logging.getLogger(__name__)

_teardowns: set[asyncio.Future[list[DisposeFailure]]] = set()


async def dispose_records(records: Iterable[InstanceRecord]) -> list[DisposeFailure]:
    """Tear down every record concurrently and collect all failures.

    Each instance runs ``close()`` and then ``aclose()``. A failing ``close()``
    does not prevent ``aclose()``, and one instance failing never stops the
    others.
    """
    outcomes = await asyncio.gather(*(_dispose_record(record) for record in records))
    return [failure for failures in outcomes for failure in failures]


def dispose_records_soon(records: list[InstanceRecord]) -> None:
    """Tear down records from synchronous code.

    Without a running event loop the teardown completes on a private loop
    before this returns. Inside a running loop it is scheduled as a task on
    that loop. Failures are logged and never raised.
    """
    if not records:
        return
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(dispose_records(records))
        finally:
            loop.close()
        return

    task = asyncio.ensure_future(dispose_records(records))
    _teardowns.add(task)
    task.add_done_callback(_teardowns.discard)


async def _dispose_record(record: InstanceRecord) -> list[DisposeFailure]:
    failures: list[DisposeFailure] = []
    instance = record.instance

    if has_capability(instance, Disposable):
        try:
            result = instance.close()
            # some clients expose an async close()
            if inspect.isawaitable(result):
                await result
        except Exception as error:  # noqa: BLE001
            failures.append(DisposeFailure(key=record.key, instance=instance, cause=error))

    if has_capability(instance, AsyncDisposable):
        try:
            result = instance.aclose()
            if inspect.isawaitable(result):
                await result
        except Exception as error:  # noqa: BLE001
            failures.append(DisposeFailure(key=record.key, instance=instance, cause=error))

    if failures:
        logger.warning("Dispose of %r failed: %s", record.key, failures[0].cause)
    else:
        logger.debug("Disposed %r", record.key)
    return failures
