"""
BioNova-X - Text Utilities
===========================
Helpers for report-item identity and source-URL provenance checks.

These utilities are consumed by the ``ResearchOrchestrator`` and should
remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from bionova.config.prompt_templates import ALLOWED_SOURCE_DOMAINS

_WHITESPACE_RE = re.compile(r"\s+")


# ── Public API ─────────────────────────────────────────────────────────

def normalize_title(title: str) -> str:
    """
    Canonical form of a report title for identity comparison.

    Steps:
        1. Unicode NFC normalisation.
        2. Collapse whitespace runs to a single space and strip.
        3. ``casefold`` for case-insensitive matching.
    """
    text = unicodedata.normalize("NFC", title)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text.casefold()


def report_item_identity(item: Mapping[str, Any]) -> tuple[str, str]:
    """``(normalized title, year)`` — two items with the same identity are duplicates."""
    return normalize_title(str(item.get("title", ""))), str(item.get("year", ""))


def dedupe_report_items(items: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Drop repeated items by identity, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique: list[Mapping[str, Any]] = []
    for item in items:
        identity = report_item_identity(item)
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(item)
    return unique


def is_allowed_source(url: str | None, allowed_domains: Iterable[str] = ALLOWED_SOURCE_DOMAINS) -> bool:
    """
    True when *url* is an http(s) link on an allow-listed domain.

    Subdomains count (``osdr.genelab.nasa.gov`` matches
    ``genelab.nasa.gov``); look-alikes such as ``genelab.nasa.gov.evil.io``
    do not.
    """
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
        host = (parsed.hostname or "").lower().rstrip(".")
    except ValueError:
        # e.g. an unbalanced IPv6 bracket
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    return any(host == domain or host.endswith("." + domain) for domain in allowed_domains)
