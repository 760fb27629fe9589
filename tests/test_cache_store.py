import json
from datetime import datetime, timedelta, timezone

from conftest import run

from bionova.src.database.cache_store import SearchCacheStore, make_cache_key

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(hours=24)


def test_cache_key_ignores_filter_key_order(default_filters):
    reordered = dict(reversed(list(default_filters.items())))

    assert make_cache_key("mice", default_filters) == make_cache_key("mice", reordered)


def test_cache_key_is_stable_across_calls(default_filters):
    assert make_cache_key("mice", default_filters) == make_cache_key("mice", dict(default_filters))


def test_cache_key_distinguishes_query_and_filters(default_filters):
    base = make_cache_key("mice", default_filters)
    other_query = make_cache_key("rats", default_filters)
    other_filters = make_cache_key("mice", {**default_filters, "organisms": ["Mice"]})

    assert len({base, other_query, other_filters}) == 3


def test_cache_key_is_canonical_json(default_filters):
    key = make_cache_key("mice", default_filters)

    assert json.loads(key) == {"query": "mice", "filters": default_filters}
    assert " " not in key


def test_lookup_hits_within_freshness_window(cache_store, sample_result):
    run(cache_store.insert("k", sample_result, now=T0))

    entry = run(cache_store.lookup("k", now=T0 + DAY - timedelta(seconds=1)))

    assert entry is not None
    assert entry.result == sample_result
    assert entry.created_at == T0


def test_lookup_misses_once_window_has_elapsed(cache_store, sample_result):
    run(cache_store.insert("k", sample_result, now=T0))

    assert run(cache_store.lookup("k", now=T0 + DAY)) is None
    assert run(cache_store.lookup("k", now=T0 + DAY + timedelta(microseconds=1))) is None


def test_lookup_unknown_key_misses(cache_store):
    assert run(cache_store.lookup("missing", now=T0)) is None


def test_fresh_row_is_preferred_over_stale_row(cache_store, fake_collection, sample_result):
    newer = {**sample_result, "graph": {"nodes": [], "links": []}}
    run(cache_store.insert("k", sample_result, now=T0))
    run(cache_store.insert("k", newer, now=T0 + DAY + timedelta(hours=1)))

    entry = run(cache_store.lookup("k", now=T0 + DAY + timedelta(hours=2)))

    assert len(fake_collection.docs) == 2
    assert entry.result == newer


def test_naive_timestamps_are_read_as_utc(fake_collection, sample_result):
    store = SearchCacheStore(collection=fake_collection)
    fake_collection.docs.append({"cache_key": "k", "result": json.dumps(sample_result), "created_at": T0.replace(tzinfo=None)})

    assert run(store.lookup("k", now=T0 + timedelta(hours=1))) is not None


def test_read_failure_degrades_to_miss(cache_store, fake_collection, sample_result):
    run(cache_store.insert("k", sample_result, now=T0))
    fake_collection.fail_reads = True

    assert run(cache_store.lookup("k", now=T0)) is None


def test_corrupt_row_degrades_to_miss(cache_store, fake_collection):
    fake_collection.docs.append({"cache_key": "k", "result": "{not json", "created_at": T0})

    assert run(cache_store.lookup("k", now=T0)) is None


def test_write_failure_is_swallowed(cache_store, fake_collection, sample_result):
    fake_collection.fail_writes = True

    assert run(cache_store.insert("k", sample_result)) is False
    assert fake_collection.docs == []


def test_custom_ttl(fake_collection, sample_result):
    store = SearchCacheStore(collection=fake_collection, ttl=timedelta(hours=1))
    run(store.insert("k", sample_result, now=T0))

    assert run(store.lookup("k", now=T0 + timedelta(minutes=59))) is not None
    assert run(store.lookup("k", now=T0 + timedelta(minutes=61))) is None


def test_purge_stale_removes_only_expired_rows(cache_store, fake_collection, sample_result):
    run(cache_store.insert("old", sample_result, now=T0))
    run(cache_store.insert("new", sample_result, now=T0 + DAY + timedelta(hours=1)))

    deleted = run(cache_store.purge_stale(now=T0 + DAY + timedelta(hours=2)))

    assert deleted == 1
    assert [d["cache_key"] for d in fake_collection.docs] == ["new"]


def test_ensure_indexes_and_drop(cache_store, fake_collection):
    name = run(cache_store.ensure_indexes())
    run(cache_store.drop())

    assert name == "cache_key_1_created_at_-1"
    assert fake_collection.dropped is True
