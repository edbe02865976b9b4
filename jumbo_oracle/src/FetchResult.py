"""FetchResult: Outcome of one concurrent sub-fetch.

Every branch of a concurrent fan-out (a pool page, an hour of swaps, a
price source) produces a ``FetchResult``. Branches never share state; the
results are only combined after all of them completed.

.. code-block:: python

    >>> results = await gather_results([fetch_page(0), fetch_page(1)])
    >>> pages = [r.value_or([]) for r in results]
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Success-with-value or failure-with-reason.

    :ivar value: Fetched value when successful.
    :ivar error: Exception raised by the branch when it failed.
    """

    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """Check if the branch completed without raising."""
        return self.error is None

    def value_or(self, default: T) -> T:
        """Return the value, or ``default`` if the branch failed."""
        if self.error is not None:
            return default
        return self.value  # type: ignore[return-value]


async def gather_results(
    awaitables: Iterable[Awaitable[T]],
    *,
    timeout: float | None = None,
) -> list[FetchResult[T]]:
    """Await all branches jointly and wrap each outcome.

    :param awaitables: Coroutines to run concurrently.
    :param timeout: Optional per-branch timeout in seconds.
    :returns: One FetchResult per awaitable, in input order.
    """
    if timeout is not None:
        awaitables = [asyncio.wait_for(a, timeout=timeout) for a in awaitables]

    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)

    results: list[FetchResult[T]] = []
    for outcome in outcomes:
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            results.append(FetchResult(error=outcome))
        else:
            results.append(FetchResult(value=outcome))
    return results
