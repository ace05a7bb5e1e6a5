import pytest

from docharvest.services.queue import RequestQueue


def test_queue_deduplicates_ignoring_fragments() -> None:
    queue = RequestQueue(5, ["https://x.test/a", "https://x.test/a#intro"])

    assert queue.add("https://x.test/b") is True
    assert queue.add("https://x.test/b#top") is False
    assert [queue.next(), queue.next(), queue.next()] == ["https://x.test/a", "https://x.test/b", None]


def test_queue_stops_at_request_budget() -> None:
    queue = RequestQueue(2, [f"https://x.test/{i}" for i in range(4)])
    seen = []

    queue.run(seen.append)

    assert seen == ["https://x.test/0", "https://x.test/1"]


def test_handlers_may_enqueue_while_running() -> None:
    queue = RequestQueue(10, ["https://x.test/0"])
    seen = []

    def handler(url: str) -> None:
        seen.append(url)
        index = int(url.rsplit("/", 1)[1])
        if index < 3:
            queue.add(f"https://x.test/{index + 1}")

    queue.run(handler, concurrency=3)

    assert sorted(seen) == [f"https://x.test/{i}" for i in range(4)]


def test_stop_predicate_halts_dispatch() -> None:
    queue = RequestQueue(10, [f"https://x.test/{i}" for i in range(5)])
    seen = []

    queue.run(seen.append, should_stop=lambda: len(seen) >= 2)

    assert len(seen) == 2


def test_request_budget_must_be_positive() -> None:
    with pytest.raises(ValueError):
        RequestQueue(0)
