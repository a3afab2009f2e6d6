"""Abort checks for long-running computations.

An AbortCheck is a zero-argument callable returning True once the caller has
given up.  Services poll it between units of work (Monte Carlo chunks,
correlation pairs) and raise ComputationAbortedError when it fires.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from src.domain.errors import ComputationAbortedError

AbortCheck = Callable[[], bool]


def never() -> bool:
    return False


def deadline(
    seconds: float | None,
    clock: Callable[[], float] = time.monotonic,
) -> AbortCheck:
    """Abort check that fires once `seconds` have elapsed from now.

    None means no limit.
    """
    if seconds is None:
        return never
    expires_at = clock() + seconds

    def _expired() -> bool:
        return clock() >= expires_at

    return _expired


def raise_if_aborted(should_abort: AbortCheck | None, calculation: str) -> None:
    if should_abort is not None and should_abort():
        raise ComputationAbortedError(
            "Computation was aborted before completion", calculation=calculation
        )
