from __future__ import annotations

from typing import TYPE_CHECKING

from content_library.library.catalog import entry_matches_query

if TYPE_CHECKING:
    from collections.abc import Sequence

    from content_library.library.models import AnalysisResult, CandidateEntry


class SelectionState:
    """Per-session include flags for analyzed candidates.

    Filtering only narrows which rows a bulk toggle touches; it never changes
    the flag of a row it hides. Flags live until a new analysis replaces the
    state.
    """

    def __init__(self, candidates: Sequence[CandidateEntry]) -> None:
        self._candidates = list(candidates)

    @classmethod
    def from_analysis(cls, analysis: AnalysisResult) -> SelectionState:
        return cls(analysis.candidates)

    @property
    def candidates(self) -> list[CandidateEntry]:
        return list(self._candidates)

    def __len__(self) -> int:
        return len(self._candidates)

    def toggle(self, index: int) -> bool:
        candidate = self._candidate_at(index)
        candidate.selected = not candidate.selected
        return candidate.selected

    def set_selected(self, index: int, selected: bool) -> None:
        self._candidate_at(index).selected = selected

    def set_all(self, selected: bool, *, query: str | None = None) -> int:
        """Set every row, or only the rows matching ``query``; returns rows touched."""
        indices = self.filter(query) if query else range(len(self._candidates))
        touched = 0
        for index in indices:
            self._candidates[index].selected = selected
            touched += 1
        return touched

    def filter(self, query: str | None) -> list[int]:
        if not query:
            return list(range(len(self._candidates)))
        return [
            index
            for index, candidate in enumerate(self._candidates)
            if entry_matches_query(candidate.entry, query)
        ]

    def selected_candidates(self) -> list[CandidateEntry]:
        return [candidate for candidate in self._candidates if candidate.selected]

    @property
    def selected_count(self) -> int:
        return sum(1 for candidate in self._candidates if candidate.selected)

    @property
    def all_selected(self) -> bool:
        return bool(self._candidates) and all(c.selected for c in self._candidates)

    @property
    def some_selected(self) -> bool:
        """True when the select-all control should render as indeterminate."""
        return any(c.selected for c in self._candidates) and not self.all_selected

    def _candidate_at(self, index: int) -> CandidateEntry:
        if index < 0 or index >= len(self._candidates):
            raise IndexError(f"Entry index out of range: {index}")
        return self._candidates[index]
