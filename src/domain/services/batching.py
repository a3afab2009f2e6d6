"""Paced, failure-isolated batch execution for rate-limited upstream calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")
R = TypeVar("R")


async def fetch_in_batches(
    keys: Sequence[K],
    fetch: Callable[[K], Awaitable[R]],
    batch_size: int,
    pause_seconds: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[tuple[K, R | Exception]]:
    """Run fetch(key) for every key, batch_size at a time.

    Calls inside a batch run concurrently; batches run one after another with
    a pause of pause_seconds between them (none after the last).  A failing
    call yields its exception in place of a result and never aborts the
    remaining calls.  Results keep the input order.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive (got {batch_size})")

    results: list[tuple[K, R | Exception]] = []
    batches = [keys[i : i + batch_size] for i in range(0, len(keys), batch_size)]
    for index, batch in enumerate(batches):
        outcomes = await asyncio.gather(
            *(fetch(key) for key in batch), return_exceptions=True
        )
        for key, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning("Fetch for %s failed: %s", key, outcome)
            results.append((key, outcome))
        if index < len(batches) - 1 and pause_seconds > 0:
            await sleep(pause_seconds)
    return results
