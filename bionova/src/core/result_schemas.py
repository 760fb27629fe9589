"""
BioNova-X - Result Schemas
===========================
Pydantic models for every structured Gemini response.  The same model
is handed to Gemini as ``response_schema`` *and* used to re-validate the
returned JSON, so a response is either fully conformant or rejected.

``Operation`` keys the six schemas; ``SCHEMA_BY_OPERATION`` is the lookup
used by the gateway.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


# ── Search / Extend-search ────────────────────────────────────────────

class HighlightPoint(BaseModel):
    point: str
    explanation: str


class SearchSummary(BaseModel):
    overview: str
    years_range: str
    highlight_points: list[HighlightPoint]


class DetailedReportItem(BaseModel):
    title: str
    year: int
    organism: str
    mission_or_experiment: str
    main_findings: str
    source_url: str | None
    publication_type: str


class GraphNode(BaseModel):
    id: str
    type: str


class GraphLink(BaseModel):
    source: str
    target: str
    label: str


class KnowledgeGraph(BaseModel):
    nodes: list[GraphNode]
    links: list[GraphLink]


class AiSearchResult(BaseModel):
    summary: SearchSummary
    detailed_report: list[DetailedReportItem]
    graph: KnowledgeGraph


# ── Timeline impact analysis ──────────────────────────────────────────

class TimelineAnalysis(BaseModel):
    mission_effectiveness: str
    future_potential: str
    real_world_impact: str


# ── Comparison ────────────────────────────────────────────────────────

class ComparisonDetail(BaseModel):
    report_title: str
    value: str


class ComparisonPoint(BaseModel):
    aspect: str
    details: list[ComparisonDetail]
    synthesis: str


class ComparisonResult(BaseModel):
    comparison_summary: str
    key_comparison_points: list[ComparisonPoint]


# ── Hypothesis ────────────────────────────────────────────────────────

class HypothesisResult(BaseModel):
    hypothesis_statement: str
    rationale: str
    suggested_next_steps: str


# ── Glossary ──────────────────────────────────────────────────────────

class GlossaryTerm(BaseModel):
    term: str
    definition: str
    relevance: str


class Operation(str, Enum):
    """Every structured operation the gateway can run."""

    SEARCH = "search"
    EXTEND_SEARCH = "extend-search"
    TIMELINE_ANALYSIS = "timeline-analysis"
    COMPARISON = "comparison"
    HYPOTHESIS = "hypothesis"
    GLOSSARY = "glossary"


SCHEMA_BY_OPERATION: dict[Operation, type[BaseModel]] = {
    Operation.SEARCH: AiSearchResult,
    Operation.EXTEND_SEARCH: AiSearchResult,
    Operation.TIMELINE_ANALYSIS: TimelineAnalysis,
    Operation.COMPARISON: ComparisonResult,
    Operation.HYPOTHESIS: HypothesisResult,
    Operation.GLOSSARY: GlossaryTerm,
}
