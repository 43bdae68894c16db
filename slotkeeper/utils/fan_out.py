"""
Bounded-concurrency fan-out over a worker thread pool.

Used by every periodic job that processes a list of independent items. At most
``max_concurrency`` items run at once; one item failing never affects the
others.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class FanOutResult(Generic[T, R]):
    item: T
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(
    items: Iterable[T],
    worker: Callable[[T], R],
    max_concurrency: int = 10,
    thread_name_prefix: str = "fan-out",
) -> List[FanOutResult[T, R]]:
    """
    Run ``worker`` over ``items`` with at most ``max_concurrency`` in flight.

    Returns one result per item in input order, holding either the worker's
    return value or the exception it raised.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    item_list = list(items)
    if not item_list:
        return []

    def _run(item: T) -> FanOutResult[T, R]:
        try:
            return FanOutResult(item=item, value=worker(item))
        except Exception as exc:
            logger.debug(f"Fan-out worker failed for {item!r}: {exc}")
            return FanOutResult(item=item, error=exc)

    workers = min(max_concurrency, len(item_list))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix) as pool:
        return list(pool.map(_run, item_list))
