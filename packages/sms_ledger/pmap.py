"""Order-preserving parallel map over a thread pool, in the spirit of ``p-map``.

- ``concurrency`` caps the number of mapper calls in flight; ``1`` runs inline
  on the caller's thread with no pool at all.
- Output follows input order. A mapper may return ``p_map_skip`` to drop its
  element without disturbing the order of the rest.
- The first mapper exception propagates and pending work is cancelled.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


class _Skip:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "p_map_skip"


# Sentinel value: mappers can `return p_map_skip` to omit the element.
p_map_skip: object = _Skip()


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT | object],
    *,
    concurrency: int,
) -> list[OutT]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` workers."""

    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    if concurrency == 1:
        values = [mapper(item) for item in iterable]
    else:
        with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="sms-ledger") as pool:
            try:
                # Executor.map yields results in submission order.
                values = list(pool.map(mapper, iterable))
            except Exception:
                pool.shutdown(wait=False, cancel_futures=True)
                raise

    return [v for v in values if v is not p_map_skip]  # type: ignore[misc]


__all__ = ["p_map", "p_map_skip"]
