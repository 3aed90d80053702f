"""Run a function over many inputs on threads."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar

MAX_THREADS = 100

In = TypeVar("In")
Out = TypeVar("Out")


def run_threaded(func: Callable[[In], Out], inputs: Iterable[In]) -> list[Out]:
    """Apply ``func`` to every input on up to ``MAX_THREADS`` threads.

    Results come back in the order of ``inputs``; the first exception raised
    by ``func`` is re-raised.
    """
    items = list(inputs)
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(MAX_THREADS, len(items))) as pool:
        return list(pool.map(func, items))