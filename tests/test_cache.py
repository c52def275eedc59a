import threading
import time

import pytest

from feedcache.core.cache import CacheEngine, chunk_response
from feedcache.core.errors import (
    CacheError,
    CollectionNotFound,
    ItemNotFound,
    NamespaceNotFound,
    NoCollectionsInNamespace,
    NoItemsInCollection,
    NoItemsInNamespace,
    PageOutOfRange,
)
from feedcache.core.identity import identify

NOW = "2023-02-01T12:00:00.000Z"


def minutes(n: int) -> str:
    return f"2023-02-01T12:{n:02d}:00.000Z"


def messages(items: list[dict]) -> list[str]:
    return [i["message"] for i in items]


# ── collections() ────────────────────────────────────────────────────────────

def test_collections_unknown_namespace(storage):
    with pytest.raises(NoCollectionsInNamespace) as err:
        storage.collections("TEST")
    assert err.value.message == "No collections available in namespace: TEST"
    assert err.value.status == 404


def test_write_creates_namespace_and_collection(storage):
    storage.write("NS_0", "COL_0", "COL_0's latest test.", [{"message": "test", "date": NOW}])

    result = storage.collections("NS_0")
    assert len(result) == 1
    assert result[0]["name"] == "COL_0"
    assert result[0]["description"] == "COL_0's latest test."
    assert result[0]["updated_at"]


def test_new_collection_is_published_with_a_timestamp(storage):
    # an index entry is visible to readers before the first merge completes
    col = storage._upsert_collection("NS_0", "COL_0", "d")
    assert col.items == {}
    assert storage.collections("NS_0")[0]["updated_at"].endswith("Z")


def test_description_last_write_wins(storage):
    storage.write("NS_0", "COL_0", "first", [{"message": "a", "date": NOW}])
    storage.write("NS_0", "COL_0", "second", [{"message": "b", "date": NOW}])
    assert storage.collections("NS_0")[0]["description"] == "second"
    assert storage.search("NS_0", "COL_0")["description"] == "second"


def test_write_rejects_empty_identifiers(storage):
    with pytest.raises(ValueError):
        storage.write("", "COL_0", "d", [])
    with pytest.raises(ValueError):
        storage.write("NS_0", "", "d", [])


# ── Merge / dedup ─────────────────────────────────────────────────────────────

def test_same_content_different_date_is_one_item(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": "test", "date": minutes(1)}])
    storage.write("NS_0", "COL_0", "d", [{"message": "test", "date": minutes(5)}])

    items = storage.search("NS_0", "COL_0")["items"]
    assert len(items) == 1
    assert items[0]["id"] == identify({"message": "test"})
    assert items[0]["date"] == minutes(5)


def test_first_date_policy_keeps_original_date(timers):
    engine = CacheEngine(ttl_s=60, preserve_first_date=True, timer_factory=timers)
    engine.write("NS_0", "COL_0", "d", [{"message": "test", "date": minutes(1)}])
    engine.write("NS_0", "COL_0", "d", [{"message": "test", "date": minutes(5)}])
    assert engine.search("NS_0", "COL_0")["items"][0]["date"] == minutes(1)


def test_new_content_adds_item_without_touching_siblings(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": "test", "date": NOW}])
    storage.write("NS_0", "COL_1", "d", [{"message": "test", "date": NOW}])
    storage.write("NS_0", "COL_0", "d", [{"message": "overwritten test", "date": NOW}])

    assert len(storage.collections("NS_0")) == 2
    assert storage.search("NS_0", "COL_0")["items"] == [
        {"message": "test", "id": identify({"message": "test"}), "date": NOW, "name": "COL_0"},
        {"message": "overwritten test", "id": identify({"message": "overwritten test"}), "date": NOW, "name": "COL_0"},
    ]
    assert storage.search("NS_0", "COL_1")["items"] == [
        {"message": "test", "id": identify({"message": "test"}), "date": NOW, "name": "COL_1"},
    ]


def test_partial_overlap_merges_to_union(storage):
    first  = [{"message": m, "date": minutes(i)} for i, m in enumerate("abcde")]
    second = [{"message": m, "date": minutes(i + 2)} for i, m in enumerate("cdef")]
    storage.write("NS_0", "COL_0", "d", first)
    storage.write("NS_0", "COL_0", "d", second)

    items = storage.search("NS_0", "COL_0")["items"]
    assert sorted(messages(items)) == ["a", "b", "c", "d", "e", "f"]
    assert len({i["id"] for i in items}) == 6
    assert messages(items) == ["f", "e", "d", "c", "b", "a"]


def test_ids_do_not_depend_on_location(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": "test-0", "date": NOW}, {"message": "test-1", "date": NOW}])
    storage.write("NS_1", "COL_9", "d", [{"message": "test-1", "date": minutes(9)}, {"message": "test-0", "date": minutes(3)}])

    ids_0 = {i["message"]: i["id"] for i in storage.search("NS_0", "COL_0")["items"]}
    ids_1 = {i["message"]: i["id"] for i in storage.search("NS_1", "COL_9")["items"]}
    assert ids_0 == ids_1
    assert ids_0["test-0"] != ids_0["test-1"]


def test_items_differing_only_in_caller_name_stay_apart(storage):
    storage.write("NS_0", "COL_0", "d", [
        {"name": "Alice", "score": 1, "date": NOW},
        {"name": "Bob", "score": 1, "date": NOW},
    ])
    items = storage.search("NS_0", "COL_0")["items"]
    assert len(items) == 2
    assert {i["id"] for i in items} == {
        identify({"name": "Alice", "score": 1}),
        identify({"name": "Bob", "score": 1}),
    }
    assert {i["name"] for i in items} == {"COL_0"}


def test_written_items_are_copies(storage):
    item = {"message": "test", "date": NOW, "tags": ["x"]}
    storage.write("NS_0", "COL_0", "d", [item])
    item["tags"].append("y")
    item["message"] = "changed"

    stored = storage.search("NS_0", "COL_0")["items"][0]
    assert stored["message"] == "test"
    assert stored["tags"] == ["x"]
    assert "id" not in item


# ── Ordering ─────────────────────────────────────────────────────────────────

def test_ancient_dates_sort_oldest(storage):
    storage.write("NS_0", "COL_0", "d", [
        {"message": "ancient", "date": "0999-06-01T00:00:00Z"},
        {"message": "modern", "date": "2023-02-01T00:00:00Z"},
    ])
    items = storage.search("NS_0", "COL_0")["items"]
    assert messages(items) == ["modern", "ancient"]
    assert items[1]["date"] == "0999-06-01T00:00:00.000Z"


def test_items_sorted_newest_first_whatever_the_arrival_order(storage):
    storage.write("NS_0", "COL_0", "d", [
        {"message": "test-3", "date": minutes(3)},
        {"message": "test-2", "date": minutes(2)},
        {"message": "test-4", "date": minutes(4)},
        {"message": "test-0", "date": minutes(0)},
        {"message": "test-1", "date": minutes(1)},
    ])
    assert messages(storage.search("NS_0", "COL_0")["items"]) == [
        "test-4", "test-3", "test-2", "test-1", "test-0",
    ]

    storage.write("NS_0", "COL_0", "d", [
        {"message": f"test-{n}", "date": minutes(n)} for n in range(3, 8)
    ])
    assert messages(storage.search("NS_0", "COL_0")["items"]) == [
        "test-7", "test-6", "test-5", "test-4", "test-3", "test-2", "test-1", "test-0",
    ]


def test_equal_dates_keep_first_insertion_order(storage, timers):
    storage.write("NS_0", "COL_0", "d", [{"message": "test-1", "date": NOW}])
    storage.write("NS_0", "COL_0", "d", [{"message": "test-0", "date": NOW}])
    assert messages(storage.search("NS_0", "COL_0")["items"]) == ["test-1", "test-0"]

    timers.run_pending()

    storage.write("NS_0", "COL_0", "d", [{"message": "test-0", "date": NOW}])
    storage.write("NS_0", "COL_0", "d", [{"message": "test-1", "date": NOW}])
    assert messages(storage.search("NS_0", "COL_0")["items"]) == ["test-0", "test-1"]


def test_missing_date_is_assigned_now(storage):
    storage.write("NS_0", "COL_0", "d", [
        {"message": "old", "date": "2001-01-01T00:00:00.000Z"},
        {"message": "undated"},
        {"message": "garbage", "date": "yesterday-ish"},
    ])
    items = storage.search("NS_0", "COL_0")["items"]
    assert messages(items)[-1] == "old"
    undated = next(i for i in items if i["message"] == "undated")
    assert undated["date"].endswith("Z")
    assert undated["date"] > "2001-01-01T00:00:00.000Z"


# ── Expiration ────────────────────────────────────────────────────────────────

def test_expired_collection_reports_no_items(storage, timers):
    storage.write("NS_0", "COL_0", "COL_0's latest test.", [{"message": "test", "date": NOW}])
    assert timers.run_pending() == 1

    with pytest.raises(NoItemsInCollection) as err:
        storage.search("NS_0", "COL_0")
    assert err.value.message == "Could not find items in collection: COL_0 in NS_0"

    # metadata survives expiry
    assert storage.collections("NS_0")[0]["description"] == "COL_0's latest test."


def test_expiry_is_per_collection(storage, timers):
    storage.write("NS_0", "COL_Y", "d", [{"message": "y", "date": NOW}])
    y_timer = timers.pending()[0]
    storage.write("NS_0", "COL_X", "d", [{"message": "x", "date": NOW}])
    x_timer = [t for t in timers.pending() if t is not y_timer][0]

    x_timer.fire()

    with pytest.raises(NoItemsInCollection):
        storage.search("NS_0", "COL_X")
    assert messages(storage.search("NS_0", "COL_Y")["items"]) == ["y"]


def test_write_rearms_and_cancels_previous_timer(storage, timers):
    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    first = timers.created[0]
    storage.write("NS_0", "COL_0", "d", [{"message": "b", "date": NOW}])

    assert first.cancelled
    assert len(timers.pending()) == 1
    assert timers.pending()[0].interval == 60
    assert timers.pending()[0].daemon


def test_stale_timer_never_clears_fresh_items(storage, timers):
    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    stale = timers.created[0]
    storage.write("NS_0", "COL_0", "d", [{"message": "b", "date": NOW}])

    # a timer thread that had already started before cancel() still runs
    stale.function(*stale.args)

    assert sorted(messages(storage.search("NS_0", "COL_0")["items"])) == ["a", "b"]


def test_write_after_expiry_makes_collection_live_again(storage, timers):
    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    timers.run_pending()
    storage.write("NS_0", "COL_0", "d", [{"message": "b", "date": NOW}])

    assert messages(storage.search("NS_0", "COL_0")["items"]) == ["b"]
    assert len(timers.pending()) == 1


def test_real_timer_expires_collection():
    engine = CacheEngine(ttl_s=0.05)
    try:
        engine.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
        assert engine.search("NS_0", "COL_0")["items"]
        deadline = time.time() + 2
        while time.time() < deadline:
            try:
                engine.search("NS_0", "COL_0")
            except NoItemsInCollection:
                break
            time.sleep(0.02)
        else:
            pytest.fail("collection never expired")
    finally:
        engine.close()


def test_close_cancels_pending_timers(storage, timers):
    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    storage.write("NS_1", "COL_0", "d", [{"message": "a", "date": NOW}])
    storage.close()
    assert timers.pending() == []


# ── search() ──────────────────────────────────────────────────────────────────

def test_search_unknown_namespace_and_collection(storage):
    with pytest.raises(NamespaceNotFound) as err:
        storage.search("NS_0", "COL_0")
    assert err.value.message == "Could not find namespace: NS_0"

    storage.write("NS_0", "COL_1", "d", [{"message": "test", "date": NOW}])
    with pytest.raises(CollectionNotFound) as err:
        storage.search("NS_0", "COL_0")
    assert err.value.message == "Could not find collection: COL_0 in NS_0"


def test_search_scopes_to_namespace_and_collection(storage):
    storage.write("NS_0", "COL_0", "COL_0's latest test.", [
        {"message": f"test-{n}", "date": NOW} for n in (3, 2, 1, 0)
    ])
    storage.write("NS_0", "COL_1", "d", [{"message": "test", "date": NOW}])
    storage.write("NS_1", "COL_0", "d", [{"message": "test-0", "date": NOW}, {"message": "test-1", "date": NOW}])

    assert len(storage.collections("NS_0")) == 2
    assert len(storage.collections("NS_1")) == 1

    result = storage.search("NS_0", "COL_0")
    assert len(result["items"]) == 4
    assert result["description"] == "COL_0's latest test."
    assert result["updated_at"]
    assert len(storage.search("NS_1", "COL_0")["items"]) == 2


# ── Pagination ───────────────────────────────────────────────────────────────

def test_chunk_response():
    items = ["a", "b", "c"]
    assert chunk_response(items, 1) == [["a"], ["b"], ["c"]]
    assert chunk_response(items, 2) == [["a", "b"], ["c"]]
    assert chunk_response(items, 5) == [["a", "b", "c"]]
    assert chunk_response([], 3) == []


def test_chunk_response_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunk_response([1, 2], 0)
    with pytest.raises(ValueError):
        chunk_response([1, 2], -1)


def test_search_pagination_boundaries(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": f"m{n}", "date": minutes(n)} for n in range(7)])

    assert messages(storage.search("NS_0", "COL_0", page_size=3)["items"]) == ["m6", "m5", "m4"]
    assert messages(storage.search("NS_0", "COL_0", page_size=3, page=2)["items"]) == ["m3", "m2", "m1"]
    assert messages(storage.search("NS_0", "COL_0", page_size=3, page=3)["items"]) == ["m0"]

    with pytest.raises(PageOutOfRange) as err:
        storage.search("NS_0", "COL_0", page_size=3, page=4)
    assert err.value.message == "No items found on page: 4"
    assert err.value.status == 404


def test_default_page_size_returns_everything(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": f"m{n}", "date": minutes(n)} for n in range(4)])
    assert len(storage.search("NS_0", "COL_0", page=1)["items"]) == 4
    with pytest.raises(PageOutOfRange):
        storage.search("NS_0", "COL_0", page=2)


def test_list_pagination_out_of_range(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": f"m{n}", "date": NOW} for n in range(3)])
    with pytest.raises(PageOutOfRange) as err:
        storage.list_items("NS_0", "ASC", page_size=1, page=10)
    assert err.value.message == "No items found on page: 10"


# ── list_items() ──────────────────────────────────────────────────────────────

def test_list_items_spans_collections_in_date_order(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": f"test-{n}", "date": minutes(n)} for n in range(3)])
    storage.write("NS_0", "COL_1", "d", [{"message": f"test-{n}", "date": minutes(n)} for n in (3, 4)])

    result = storage.list_items("NS_0")
    assert result["description"] == "All items available in namespace: NS_0"
    assert messages(result["items"]) == ["test-4", "test-3", "test-2", "test-1", "test-0"]
    assert [i["name"] for i in result["items"]] == ["COL_1", "COL_1", "COL_0", "COL_0", "COL_0"]

    ascending = storage.list_items("NS_0", "ASC")
    assert messages(ascending["items"]) == ["test-0", "test-1", "test-2", "test-3", "test-4"]
    assert messages(storage.list_items("NS_0", "asc")["items"]) == messages(ascending["items"])


def test_list_items_pages(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": f"m{n}", "date": minutes(n)} for n in range(0, 6, 2)])
    storage.write("NS_0", "COL_1", "d", [{"message": f"m{n}", "date": minutes(n)} for n in range(1, 6, 2)])

    assert messages(storage.list_items("NS_0", page_size=4, page=1)["items"]) == ["m5", "m4", "m3", "m2"]
    assert messages(storage.list_items("NS_0", page_size=4, page=2)["items"]) == ["m1", "m0"]


def test_list_items_empty_namespace(storage, timers):
    with pytest.raises(NoItemsInNamespace) as err:
        storage.list_items("NS_0")
    assert err.value.message == "No items available in namespace: NS_0"

    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    timers.run_pending()
    with pytest.raises(NoItemsInNamespace):
        storage.list_items("NS_0")


# ── item_by_id() ──────────────────────────────────────────────────────────────

def test_item_by_id_searches_every_collection(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": "test-0", "date": minutes(1)}])
    storage.write("NS_0", "COL_1", "d", [{"message": "test-1", "date": minutes(2)}, {"message": "test-2", "date": minutes(3)}])

    item = storage.item_by_id("NS_0", identify({"message": "test-2"}))
    assert item == {
        "message": "test-2",
        "id": identify({"message": "test-2"}),
        "date": minutes(3),
        "name": "COL_1",
    }


def test_item_by_id_failures(storage):
    missing = identify({"message": "test-0"})
    with pytest.raises(NamespaceNotFound):
        storage.item_by_id("NS_0", missing)

    storage.write("NS_0", "COL_0", "d", [{"message": "test-1", "date": NOW}])
    with pytest.raises(ItemNotFound) as err:
        storage.item_by_id("NS_0", missing)
    assert err.value.message == f"Could not find item with ID: {missing}"

    # an id in another namespace is not visible here
    storage.write("NS_1", "COL_0", "d", [{"message": "test-0", "date": NOW}])
    with pytest.raises(ItemNotFound):
        storage.item_by_id("NS_0", missing)


def test_every_lookup_failure_is_a_cache_error(storage):
    for call in (
        lambda: storage.collections("X"),
        lambda: storage.search("X", "Y"),
        lambda: storage.list_items("X"),
        lambda: storage.item_by_id("X", "Y"),
    ):
        with pytest.raises(CacheError):
            call()


def test_reads_return_copies(storage):
    storage.write("NS_0", "COL_0", "d", [{"message": "a", "date": NOW}])
    storage.search("NS_0", "COL_0")["items"][0]["message"] = "mutated"
    assert storage.search("NS_0", "COL_0")["items"][0]["message"] == "a"


# ── Concurrency ───────────────────────────────────────────────────────────────

def test_concurrent_writers_lose_nothing(storage):
    def writer(collection: str, start: int):
        for n in range(start, start + 50):
            storage.write("NS_0", collection, "d", [{"message": f"m{n}", "date": minutes(n % 60)}])

    threads = [threading.Thread(target=writer, args=(c, s)) for c in ("A", "B") for s in (0, 50, 100)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(storage.search("NS_0", "A")["items"]) == 150
    assert len(storage.search("NS_0", "B")["items"]) == 150
    assert len(storage.list_items("NS_0")["items"]) == 300


def test_readers_only_see_sorted_complete_snapshots(storage):
    batch = [{"message": f"m{n}", "date": minutes(n)} for n in range(40)]
    done = threading.Event()
    problems: list[str] = []

    def reader():
        while not done.is_set():
            try:
                items = storage.search("NS_0", "COL_0")["items"]
            except CacheError:
                continue
            dates = [i["date"] for i in items]
            if dates != sorted(dates, reverse=True):
                problems.append("unsorted")
            if len(items) not in (20, 40):
                problems.append(f"partial: {len(items)}")

    storage.write("NS_0", "COL_0", "d", batch[:20])
    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    for _ in range(50):
        storage.write("NS_0", "COL_0", "d", batch[20:])
    done.set()
    for t in readers:
        t.join()

    assert problems == []
