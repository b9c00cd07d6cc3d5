"""Tests for `bqread.io.streams` at-most-once stream hand-out."""

from __future__ import annotations

import threading

import pytest

from bqread.core.typing import StreamName
from bqread.io.streams import StreamDescriptor, StreamQueue


def _descriptors(n: int) -> list[StreamDescriptor]:
    return [StreamDescriptor(StreamName(f"s{i}"), estimated_row_count=i) for i in range(n)]


@pytest.mark.parametrize("n", [0, 1, 3, 50])
def test_exactly_n_takes_then_empty(n: int) -> None:
    q = StreamQueue(_descriptors(n))

    taken = [q.take_next() for _ in range(n)]

    assert taken == _descriptors(n)
    assert q.take_next() is None
    assert q.take_next() is None
    assert q.taken == n
    assert q.remaining() == 0


def test_drain_iteration_preserves_service_order() -> None:
    q = StreamQueue(_descriptors(4))
    first = q.take_next()

    rest = list(q)

    assert first is not None and first.name == "s0"
    assert [d.name for d in rest] == ["s1", "s2", "s3"]
    assert len(q) == 0


def _take_concurrently(q: StreamQueue, workers: int) -> list[list[StreamDescriptor]]:
    barrier = threading.Barrier(workers)
    results: list[list[StreamDescriptor]] = [[] for _ in range(workers)]

    def run(k: int) -> None:
        barrier.wait()
        while (d := q.take_next()) is not None:
            results[k].append(d)

    threads = [threading.Thread(target=run, args=(k,)) for k in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


@pytest.mark.parametrize("workers,n", [(2, 3), (8, 1000), (16, 5)])
def test_concurrent_takes_are_disjoint_and_complete(workers: int, n: int) -> None:
    q = StreamQueue(_descriptors(n))

    results = _take_concurrently(q, workers)

    names = [d.name for part in results for d in part]
    assert len(names) == n
    assert set(names) == {f"s{i}" for i in range(n)}
    assert q.take_next() is None


def test_two_pipelines_share_three_streams() -> None:
    q = StreamQueue(_descriptors(3))

    left, right = _take_concurrently(q, 2)

    assert not set(left) & set(right)
    assert sorted(d.name for d in left + right) == ["s0", "s1", "s2"]
    # Each consumer sees the streams it took in service order.
    for part in (left, right):
        assert part == sorted(part, key=lambda d: d.name)
