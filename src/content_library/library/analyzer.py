"""Duplicate analysis of pack entries against a tenant's existing glossary."""

from __future__ import annotations

from typing import TYPE_CHECKING

from content_library.core.logging.logger import get_logger
from content_library.library.models import AnalysisResult, CandidateEntry, PackEntry, TenantEntry

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = get_logger(__name__)


def normalize_key(value: str | None) -> str:
    return (value or "").strip().lower()


def build_lookup_indexes(
    existing_corpus: Iterable[TenantEntry],
) -> tuple[dict[str, TenantEntry], dict[str, TenantEntry]]:
    """Index the corpus by trigger/alias and by title.

    Later entries overwrite earlier ones on key collision. Within one entry the
    trigger is indexed before its aliases.
    """
    by_trigger_or_alias: dict[str, TenantEntry] = {}
    by_title: dict[str, TenantEntry] = {}

    for entry in existing_corpus:
        trigger = normalize_key(entry.trigger)
        if trigger:
            by_trigger_or_alias[trigger] = entry

        title = normalize_key(entry.title)
        if title:
            by_title[title] = entry

        for alias in entry.aliases:
            alias_key = normalize_key(alias)
            if alias_key:
                by_trigger_or_alias[alias_key] = entry

    return by_trigger_or_alias, by_title


def analyze_entries(
    existing_corpus: Sequence[TenantEntry],
    candidates: Sequence[PackEntry],
) -> AnalysisResult:
    by_trigger_or_alias, by_title = build_lookup_indexes(existing_corpus)

    annotated: list[CandidateEntry] = []
    new_count = 0
    duplicate_count = 0

    for candidate in candidates:
        trigger = normalize_key(candidate.trigger)
        title = normalize_key(candidate.title)

        # Trigger/alias match wins over a title match on a different entry.
        existing = by_trigger_or_alias.get(trigger) if trigger else None
        if existing is None and title:
            existing = by_title.get(title)

        if existing is not None:
            duplicate_count += 1
            annotated.append(
                CandidateEntry(
                    entry=candidate,
                    status="duplicate",
                    matched_tenant_entry_id=existing.id,
                    matched_title=existing.title,
                    selected=False,
                )
            )
        else:
            new_count += 1
            annotated.append(CandidateEntry(entry=candidate, status="new", selected=True))

    logger.debug(
        "Analyzed library entries",
        data={
            "candidates": len(candidates),
            "corpus": len(existing_corpus),
            "new": new_count,
            "duplicates": duplicate_count,
        },
    )
    return AnalysisResult(
        candidates=annotated,
        new_count=new_count,
        duplicate_count=duplicate_count,
    )
