"""
BioNova-X - Prompt Builder
===========================
Turns request payloads into ``Prompt`` values (system instruction +
user content) for the Gemini gateway.  Every function here is pure.

Strict mode
-----------
Filters are *active* when any dimension deviates from the unfiltered
default (``[DEFAULT_MIN_YEAR, <current year>]`` and four empty lists).
Active filters switch the search instruction to the strict variant,
which appends one MUST clause per active dimension.  Dimensions are
described by ``FILTER_RULES``, an ordered table of
``(field_name, is_active, render_clause)`` entries; the table order is
the clause order, and inactive dimensions contribute nothing.

The default year range is recomputed on every call, so a request built
with last year's default becomes "filtered" after New Year.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, NamedTuple

from pydantic import BaseModel

from bionova.config.prompt_templates import (
    CHAT_SYSTEM_INSTRUCTION_TEMPLATE,
    COMPARISON_PROMPT_TEMPLATE,
    COMPARISON_SYSTEM_INSTRUCTION,
    DEFAULT_SEARCH_QUERY,
    EXTEND_SEARCH_PROMPT_TEMPLATE,
    GENERAL_SYSTEM_INSTRUCTION,
    GLOSSARY_PROMPT_TEMPLATE,
    GLOSSARY_SYSTEM_INSTRUCTION,
    HYPOTHESIS_PROMPT_TEMPLATE,
    HYPOTHESIS_SYSTEM_INSTRUCTION,
    MISSIONS_CLAUSE,
    ORGANISMS_CLAUSE,
    PUBLICATION_TYPES_CLAUSE,
    RESEARCH_AREAS_CLAUSE,
    STRICT_CRITERIA_HEADER,
    STRICT_SYSTEM_INSTRUCTION_BASE,
    TIMELINE_PROMPT_TEMPLATE,
    TIMELINE_SYSTEM_INSTRUCTION,
    YEAR_CLAUSE,
)
from bionova.config.settings import settings

# ── Type aliases ───────────────────────────────────────────────────────
FilterState = Mapping[str, Any]
FiltersLike = BaseModel | FilterState | None


@dataclass(frozen=True)
class Prompt:
    """A fully rendered request for the gateway."""

    system_instruction: str
    user_content: str


class FilterRule(NamedTuple):
    field_name: str
    is_active: Callable[[FilterState, int], bool]
    render_clause: Callable[[FilterState], str]


# ══════════════════════════════════════════════════════════════════════
#  FILTER NORMALISATION
# ══════════════════════════════════════════════════════════════════════

def current_year() -> int:
    return datetime.now(timezone.utc).year


def _as_filter_state(filters: FiltersLike) -> FilterState:
    if filters is None:
        return {}
    if isinstance(filters, BaseModel):
        return filters.model_dump()
    return filters


def _labels(filters: FilterState, field_name: str) -> list[str]:
    """Return a filter list as strings; tolerate free-form payloads."""
    value = filters.get(field_name)
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return []


def _year_range(filters: FilterState) -> tuple[int, int] | None:
    value = filters.get("yearRange")
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    try:
        return int(value[0]), int(value[1])
    except (TypeError, ValueError):
        return None


# ══════════════════════════════════════════════════════════════════════
#  RULE TABLE
# ══════════════════════════════════════════════════════════════════════

def _year_active(filters: FilterState, year_now: int) -> bool:
    year_range = _year_range(filters)
    return year_range is not None and year_range != (settings.DEFAULT_MIN_YEAR, year_now)


def _render_year(filters: FilterState) -> str:
    start, end = _year_range(filters)  # type: ignore[misc]
    return YEAR_CLAUSE.format(start=start, end=end)


def _list_rule(field_name: str, template: str) -> FilterRule:
    return FilterRule(
        field_name=field_name,
        is_active=lambda filters, _year: bool(_labels(filters, field_name)),
        render_clause=lambda filters: template.format(values=", ".join(_labels(filters, field_name))),
    )


FILTER_RULES: tuple[FilterRule, ...] = (
    FilterRule("yearRange", _year_active, _render_year),
    _list_rule("organisms", ORGANISMS_CLAUSE),
    _list_rule("missions", MISSIONS_CLAUSE),
    _list_rule("researchAreas", RESEARCH_AREAS_CLAUSE),
    _list_rule("publicationTypes", PUBLICATION_TYPES_CLAUSE),
)


def active_filter_fields(filters: FiltersLike, year_now: int | None = None) -> list[str]:
    """Names of the active filter dimensions, in clause order."""
    state = _as_filter_state(filters)
    year_now = year_now if year_now is not None else current_year()
    return [rule.field_name for rule in FILTER_RULES if rule.is_active(state, year_now)]


def is_filter_active(filters: FiltersLike, year_now: int | None = None) -> bool:
    """True iff any filter dimension deviates from the unfiltered default."""
    return bool(active_filter_fields(filters, year_now))


# ══════════════════════════════════════════════════════════════════════
#  SEARCH PROMPTS
# ══════════════════════════════════════════════════════════════════════

def build_system_instruction(filters: FiltersLike, year_now: int | None = None) -> str:
    """
    Select the general or strict search instruction for *filters*.

    Strict mode appends the criteria header and one MUST clause per
    active dimension, in ``FILTER_RULES`` order.
    """
    state = _as_filter_state(filters)
    year_now = year_now if year_now is not None else current_year()
    clauses = [rule.render_clause(state) for rule in FILTER_RULES if rule.is_active(state, year_now)]

    if not clauses:
        return GENERAL_SYSTEM_INSTRUCTION

    return f"{STRICT_SYSTEM_INSTRUCTION_BASE}\n{STRICT_CRITERIA_HEADER}\n" + "\n".join(clauses)


def build_search_prompt(query: str, filters: FiltersLike) -> Prompt:
    return Prompt(build_system_instruction(filters), query or DEFAULT_SEARCH_QUERY)


def build_extend_prompt(query: str, existing_result: Mapping[str, Any], filters: FiltersLike) -> Prompt:
    """Ask for new items merged with the previously returned report."""
    existing_report = existing_result.get("detailed_report", [])
    user_content = EXTEND_SEARCH_PROMPT_TEMPLATE.format(query=query, existing_report=_to_json(existing_report))
    return Prompt(build_system_instruction(filters), user_content)


# ══════════════════════════════════════════════════════════════════════
#  ANALYSIS PROMPTS
# ══════════════════════════════════════════════════════════════════════

def build_timeline_prompt(search_result: Mapping[str, Any]) -> Prompt:
    return Prompt(TIMELINE_SYSTEM_INSTRUCTION, TIMELINE_PROMPT_TEMPLATE.format(search_result=_to_json(search_result)))


def build_comparison_prompt(items: list[Mapping[str, Any]]) -> Prompt:
    return Prompt(COMPARISON_SYSTEM_INSTRUCTION, COMPARISON_PROMPT_TEMPLATE.format(items=_to_json(items)))


def build_hypothesis_prompt(search_result: Mapping[str, Any]) -> Prompt:
    return Prompt(HYPOTHESIS_SYSTEM_INSTRUCTION, HYPOTHESIS_PROMPT_TEMPLATE.format(search_result=_to_json(search_result)))


def build_glossary_prompt(term: str) -> Prompt:
    return Prompt(GLOSSARY_SYSTEM_INSTRUCTION, GLOSSARY_PROMPT_TEMPLATE.format(term=term))


# ══════════════════════════════════════════════════════════════════════
#  CHAT
# ══════════════════════════════════════════════════════════════════════

def summarize_for_chat(search_result: Mapping[str, Any]) -> str:
    """
    Natural-language digest of a result's summary block.

    Missing or mis-shaped keys render as empty rather than failing; the
    chat model is told to acknowledge gaps in its context.
    """
    summary = search_result.get("summary")
    if not isinstance(summary, Mapping):
        summary = {}
    overview = summary.get("overview", "")
    points = summary.get("highlight_points")
    if not isinstance(points, list):
        points = []
    point_lines = "\n".join(f"- {p.get('point', '')}: {p.get('explanation', '')}" for p in points if isinstance(p, Mapping))
    return f"Overview: {overview}. Highlight Points: {point_lines}"


def build_chat_system_instruction(initial_query: str, search_result: Mapping[str, Any]) -> str:
    return CHAT_SYSTEM_INSTRUCTION_TEMPLATE.format(
        initial_query=initial_query or DEFAULT_SEARCH_QUERY,
        summary_context=summarize_for_chat(search_result),
        detailed_report=_to_json(search_result.get("detailed_report", [])),
    )


def _to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)
