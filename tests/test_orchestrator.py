import asyncio
import gc
from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_report_item, run

from bionova.src.api.schemas import SearchFilters
from bionova.src.core.errors import ProviderError
from bionova.src.core.orchestrator import ResearchOrchestrator
from bionova.src.core.result_schemas import Operation
from bionova.src.database.cache_store import make_cache_key


def test_search_miss_calls_provider_and_caches(orchestrator, fake_gateway, fake_collection, sample_result, default_filters):
    fake_gateway.responses[Operation.SEARCH] = sample_result
    filters = SearchFilters(**default_filters)

    result = run(orchestrator.search("mice", filters))

    assert result == sample_result
    assert len(fake_gateway.calls) == 1
    assert fake_collection.docs[0]["cache_key"] == make_cache_key("mice", default_filters)


def test_search_fresh_hit_skips_provider(orchestrator, fake_gateway, cache_store, sample_result, default_filters):
    run(cache_store.insert(make_cache_key("mice", default_filters), sample_result))

    result = run(orchestrator.search("mice", SearchFilters(**default_filters)))

    assert result == sample_result
    assert fake_gateway.calls == []


def test_search_stale_entry_is_refreshed(orchestrator, fake_gateway, cache_store, fake_collection, sample_result, default_filters):
    key = make_cache_key("mice", default_filters)
    run(cache_store.insert(key, {"stale": True}, now=datetime.now(timezone.utc) - timedelta(hours=25)))
    fake_gateway.responses[Operation.SEARCH] = sample_result

    result = run(orchestrator.search("mice", SearchFilters(**default_filters)))

    assert result == sample_result
    assert len(fake_collection.docs) == 2


def test_search_survives_cache_outage(orchestrator, fake_gateway, fake_collection, sample_result, default_filters):
    fake_collection.fail_reads = True
    fake_collection.fail_writes = True
    fake_gateway.responses[Operation.SEARCH] = sample_result

    assert run(orchestrator.search("mice", SearchFilters(**default_filters))) == sample_result


def test_search_provider_error_propagates_and_caches_nothing(orchestrator, fake_gateway, fake_collection, default_filters):
    fake_gateway.responses[Operation.SEARCH] = ProviderError("quota exceeded", "search")

    with pytest.raises(ProviderError):
        run(orchestrator.search("mice", SearchFilters(**default_filters)))
    assert fake_collection.docs == []


def test_strict_prompt_is_used_for_active_filters(orchestrator, fake_gateway, sample_result, default_filters):
    fake_gateway.responses[Operation.SEARCH] = sample_result

    run(orchestrator.search("", SearchFilters(**{**default_filters, "organisms": ["Mice"]})))

    prompt, operation = fake_gateway.calls[0]
    assert operation is Operation.SEARCH
    assert "NON-NEGOTIABLE" in prompt.system_instruction
    assert prompt.user_content == "general space biology research"


def test_concurrent_identical_searches_share_one_provider_call(orchestrator, fake_gateway, fake_collection, sample_result, default_filters):
    fake_gateway.responses[Operation.SEARCH] = sample_result
    filters = SearchFilters(**default_filters)

    async def scenario():
        fake_gateway.release = asyncio.Event()
        first = asyncio.ensure_future(orchestrator.search("mice", filters))
        second = asyncio.ensure_future(orchestrator.search("mice", filters))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        fake_gateway.release.set()
        return await asyncio.gather(first, second)

    first, second = run(scenario())

    assert first == second == sample_result
    assert len(fake_gateway.calls) == 1
    assert len(fake_collection.docs) == 1


def test_shared_failure_after_all_waiters_left_is_retrieved(orchestrator, fake_gateway, default_filters):
    fake_gateway.responses[Operation.SEARCH] = ProviderError("quota exceeded", "search")
    filters = SearchFilters(**default_filters)
    unretrieved = []

    async def scenario():
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: unretrieved.append(context))
        fake_gateway.release = asyncio.Event()
        waiter = asyncio.ensure_future(orchestrator.search("mice", filters))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        waiter.cancel()
        fake_gateway.release.set()
        for _ in range(5):
            await asyncio.sleep(0)
        assert waiter.cancelled()
        del waiter
        gc.collect()

    run(scenario())

    assert orchestrator._in_flight == {}
    assert unretrieved == []


def test_off_list_source_urls_are_nulled(orchestrator, fake_gateway, sample_result, default_filters):
    sample_result["detailed_report"].append(make_report_item("Made-up study", 2019, source_url="https://example.com/fake"))
    fake_gateway.responses[Operation.SEARCH] = sample_result

    result = run(orchestrator.search("mice", SearchFilters(**default_filters)))

    urls = [item["source_url"] for item in result["detailed_report"]]
    assert urls == ["https://genelab.nasa.gov/data/GLDS-1", None, None]


def test_malformed_source_url_is_nulled_and_result_cached(orchestrator, fake_gateway, fake_collection, sample_result, default_filters):
    sample_result["detailed_report"].append(make_report_item("Broken link study", 2020, source_url="http://[genelab.nasa.gov/x"))
    fake_gateway.responses[Operation.SEARCH] = sample_result

    result = run(orchestrator.search("mice", SearchFilters(**default_filters)))

    assert result["detailed_report"][-1]["source_url"] is None
    assert len(fake_collection.docs) == 1


def test_allowlist_can_be_disabled(fake_gateway, cache_store, sample_result, default_filters):
    orchestrator = ResearchOrchestrator(fake_gateway, cache_store, enforce_source_allowlist=False)
    sample_result["detailed_report"][0]["source_url"] = "https://example.com/fake"
    fake_gateway.responses[Operation.SEARCH] = sample_result

    result = run(orchestrator.search("mice", SearchFilters(**default_filters)))

    assert result["detailed_report"][0]["source_url"] == "https://example.com/fake"


def test_extend_search_without_new_data_keeps_report_length(orchestrator, fake_gateway, sample_result):
    echoed = dict(sample_result)
    echoed["detailed_report"] = sample_result["detailed_report"] + [
        {**item, "title": item["title"].upper()} for item in sample_result["detailed_report"]
    ]
    fake_gateway.responses[Operation.EXTEND_SEARCH] = echoed

    result = run(orchestrator.extend_search("bone loss", sample_result, {"organisms": ["Mice"]}))

    assert len(result["detailed_report"]) == len(sample_result["detailed_report"])
    prompt, operation = fake_gateway.calls[0]
    assert operation is Operation.EXTEND_SEARCH
    assert "Rodent Research 1 bone study" in prompt.user_content


def test_extend_search_keeps_new_items(orchestrator, fake_gateway, sample_result):
    merged = dict(sample_result)
    merged["detailed_report"] = sample_result["detailed_report"] + [make_report_item("Plant roots on VEGGIE", 2016)]
    fake_gateway.responses[Operation.EXTEND_SEARCH] = merged

    result = run(orchestrator.extend_search("bone loss", sample_result, {}))

    assert len(result["detailed_report"]) == 3


def test_extend_search_is_not_cached(orchestrator, fake_gateway, fake_collection, sample_result):
    fake_gateway.responses[Operation.EXTEND_SEARCH] = sample_result

    run(orchestrator.extend_search("bone loss", sample_result, {}))

    assert fake_collection.docs == []


@pytest.mark.parametrize(
    "method, args, operation, expected_fragment",
    [
        ("timeline_analysis", ("RESULT",), Operation.TIMELINE_ANALYSIS, "impact analysis"),
        ("hypothesis", ("RESULT",), Operation.HYPOTHESIS, "scientific hypothesis"),
        ("compare", ("ITEMS",), Operation.COMPARISON, "comparative analysis"),
        ("glossary", ("Microgravity",), Operation.GLOSSARY, '"Microgravity"'),
    ],
)
def test_analysis_operations_use_their_own_schema(orchestrator, fake_gateway, sample_result, method, args, operation, expected_fragment):
    replacements = {"RESULT": sample_result, "ITEMS": sample_result["detailed_report"]}
    call_args = [replacements.get(a, a) for a in args]
    fake_gateway.responses[operation] = {"ok": True}

    result = run(getattr(orchestrator, method)(*call_args))

    assert result == {"ok": True}
    prompt, called_operation = fake_gateway.calls[0]
    assert called_operation is operation
    assert expected_fragment in prompt.user_content


def test_chat_stream_forwards_history_and_context(orchestrator, fake_gateway, sample_result):
    fake_gateway.chat_fragments = ["Hel", "lo"]
    history = [{"role": "user", "parts": [{"text": "hi"}]}]

    async def collect():
        return [f async for f in orchestrator.chat_stream("And rats?", "mice", sample_result, history)]

    assert run(collect()) == ["Hel", "lo"]
    call = fake_gateway.chat_calls[0]
    assert call["message"] == "And rats?"
    assert call["history"] == history
    assert 'searched for: "mice"' in call["system_instruction"]
