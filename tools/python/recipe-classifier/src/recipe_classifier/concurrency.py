"""
Recipe Classifier — Task Combinators
======================================
Two ways of combining asynchronous round trips:

    join     all-of: run concurrently, wait for every result, keep order
    concat   sequence-then-append: await one after the other

``join`` fails as a whole.  When one awaitable fails (or the caller is
cancelled) the still-pending siblings are cancelled, so no partial
result ever escapes and no round trip keeps running for nobody.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Iterable

logger = logging.getLogger("recipe_classifier.concurrency")


async def join(awaitables: Iterable[Awaitable[Any]]) -> list[Any]:
    """Await every awaitable concurrently; results in input order.

    Raises:
        The first exception raised by any awaitable, after the others
        were cancelled.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug("Cancelled %d pending task(s)", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
        raise


async def concat(*awaitables: Awaitable[Any]) -> list[Any]:
    """Await each awaitable in turn and collect the results in order.

    When one fails, the coroutines not yet started are closed unawaited.
    """
    results = []
    pending = list(awaitables)
    try:
        while pending:
            results.append(await pending.pop(0))
    finally:
        for awaitable in pending:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
    return results
