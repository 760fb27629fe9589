"""
BioNova-X - Research Orchestrator
==================================
Per-endpoint pipelines composing the cache store, prompt builder and
Gemini gateway.  Request validation happens before these methods run
(FastAPI + ``bionova.src.api.schemas``).

``ResearchOrchestrator.search`` flow:
    1. Cache key → canonical JSON of ``{query, filters}``.
    2. Cache lookup → fresh hit returns immediately.
    3. Single-flight → concurrent identical misses share one call.
    4. Build prompt → general or strict instruction.
    5. Call Gemini → schema-validated ``AiSearchResult``.
    6. Provenance filter → off-list ``source_url`` becomes ``null``.
    7. Cache insert → best-effort; failures are logged only.

The other operations skip steps 1–3 and 7.  ``chat_stream`` returns
the gateway's fragment iterator untouched; the HTTP layer owns the
streaming response.

``ProviderError`` propagates to the caller unchanged.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence

from bionova.config.settings import settings
from bionova.src.api.schemas import SearchFilters
from bionova.src.core.llm_gateway import GeminiGateway
from bionova.src.core.prompt_builder import (
    active_filter_fields,
    build_chat_system_instruction,
    build_comparison_prompt,
    build_extend_prompt,
    build_glossary_prompt,
    build_hypothesis_prompt,
    build_search_prompt,
    build_timeline_prompt,
)
from bionova.src.core.result_schemas import Operation
from bionova.src.database.cache_store import SearchCacheStore, make_cache_key
from bionova.src.utils.logger import get_logger
from bionova.src.utils.text_utils import dedupe_report_items, is_allowed_source

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
JsonObject = dict[str, Any]


class ResearchOrchestrator:
    """
    Stateless request pipelines over injected collaborators.

    Parameters
    ----------
    gateway
        A ``GeminiGateway`` (or compatible fake).
    cache_store
        A ``SearchCacheStore`` used by ``search`` only.
    enforce_source_allowlist
        Null out ``source_url`` values outside the NASA allow-list.
        Defaults to ``settings.ENFORCE_SOURCE_ALLOWLIST``.
    """

    __slots__ = ("_gateway", "_cache", "_enforce_allowlist", "_in_flight")

    def __init__(self, gateway: GeminiGateway, cache_store: SearchCacheStore, enforce_source_allowlist: bool | None = None) -> None:
        self._gateway = gateway
        self._cache = cache_store
        self._enforce_allowlist = settings.ENFORCE_SOURCE_ALLOWLIST if enforce_source_allowlist is None else enforce_source_allowlist
        self._in_flight: dict[str, asyncio.Future[JsonObject]] = {}

    # ══════════════════════════════════════════════════════════════════
    #  SEARCH (cached)
    # ══════════════════════════════════════════════════════════════════

    async def search(self, query: str, filters: SearchFilters) -> JsonObject:
        """Return a cached or freshly generated ``AiSearchResult``."""
        cache_key = make_cache_key(query, filters.model_dump())

        t_cache = time.perf_counter()
        entry = await self._cache.lookup(cache_key)
        cache_ms = (time.perf_counter() - t_cache) * 1000
        if entry is not None:
            logger.info("[SEARCH] Served from cache in %.1fms: '%s'", cache_ms, query[:60])
            return entry.result

        logger.info("[SEARCH] Cache miss (%.1fms) — active filters: %s", cache_ms, active_filter_fields(filters) or "none")
        return await self._single_flight(cache_key, lambda: self._search_and_store(cache_key, query, filters))


    async def _search_and_store(self, cache_key: str, query: str, filters: SearchFilters) -> JsonObject:
        prompt = build_search_prompt(query, filters)
        result = await self._gateway.generate_structured(prompt, Operation.SEARCH)
        result = self._apply_provenance(result)
        await self._cache.insert(cache_key, result)
        return result


    async def _single_flight(self, key: str, factory: Callable[[], Awaitable[JsonObject]]) -> JsonObject:
        """
        Collapse concurrent calls for *key* into one upstream request.

        Waiters are shielded: a caller that goes away does not cancel
        the shared call for the others.
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task

            def _release(done: asyncio.Future[JsonObject]) -> None:
                if self._in_flight.get(key) is done:
                    del self._in_flight[key]

            task.add_done_callback(_release)
        else:
            logger.info("[SEARCH] Joining in-flight request for identical key.")

        return await asyncio.shield(task)

    # ══════════════════════════════════════════════════════════════════
    #  EXTEND SEARCH (merge)
    # ══════════════════════════════════════════════════════════════════

    async def extend_search(self, query: str, existing_result: Mapping[str, Any], filters: Mapping[str, Any]) -> JsonObject:
        """Ask for new items and return the deduplicated union."""
        prompt = build_extend_prompt(query, existing_result, filters)
        result = await self._gateway.generate_structured(prompt, Operation.EXTEND_SEARCH)

        report = result.get("detailed_report", [])
        merged = dedupe_report_items(report)
        if len(merged) != len(report):
            logger.info("[EXTEND] Dropped %d duplicate item(s) from merged report.", len(report) - len(merged))
        result["detailed_report"] = merged

        previous = len(existing_result.get("detailed_report") or [])
        logger.info("[EXTEND] '%s': %d → %d item(s).", query[:60], previous, len(merged))
        return self._apply_provenance(result)

    # ══════════════════════════════════════════════════════════════════
    #  ANALYSIS OPERATIONS
    # ══════════════════════════════════════════════════════════════════

    async def timeline_analysis(self, search_result: Mapping[str, Any]) -> JsonObject:
        return await self._gateway.generate_structured(build_timeline_prompt(search_result), Operation.TIMELINE_ANALYSIS)


    async def compare(self, items: Sequence[Mapping[str, Any]]) -> JsonObject:
        logger.info("[COMPARE] Comparing %d item(s).", len(items))
        return await self._gateway.generate_structured(build_comparison_prompt(list(items)), Operation.COMPARISON)


    async def hypothesis(self, search_result: Mapping[str, Any]) -> JsonObject:
        return await self._gateway.generate_structured(build_hypothesis_prompt(search_result), Operation.HYPOTHESIS)


    async def glossary(self, term: str) -> JsonObject:
        logger.info("[GLOSSARY] Term: '%s'", term)
        return await self._gateway.generate_structured(build_glossary_prompt(term), Operation.GLOSSARY)

    # ══════════════════════════════════════════════════════════════════
    #  CHAT (streaming, uncached)
    # ══════════════════════════════════════════════════════════════════

    def chat_stream(self, query: str, initial_query: str, search_result: Mapping[str, Any], history: Sequence[Mapping[str, Any]]) -> AsyncIterator[str]:
        """Fragments of the model's answer, in arrival order."""
        system_instruction = build_chat_system_instruction(initial_query, search_result)
        logger.info("[CHAT] '%s' (%d prior turn(s))", query[:60], len(history))
        return self._gateway.stream_chat(system_instruction, history, query)

    # ══════════════════════════════════════════════════════════════════
    #  PROVENANCE
    # ══════════════════════════════════════════════════════════════════

    def _apply_provenance(self, result: JsonObject) -> JsonObject:
        """Replace off-list ``source_url`` values with ``None``."""
        if not self._enforce_allowlist:
            return result

        rejected = 0
        for item in result.get("detailed_report", []):
            url = item.get("source_url")
            if url is not None and not is_allowed_source(url):
                item["source_url"] = None
                rejected += 1

        if rejected:
            logger.warning("[PROVENANCE] Nulled %d source_url(s) outside the allow-list.", rejected)
        return result
