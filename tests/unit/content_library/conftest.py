from __future__ import annotations

import dataclasses
from typing import Any

import pytest

from content_library.constants import INITIAL_LIBRARY_VERSION
from content_library.core.exceptions import EntryWriteFailed, StoreUnavailable
from content_library.library.models import (
    LibraryContentBundle,
    LibraryInstallCounts,
    PackEntry,
    SavedLibrary,
    TenantEntry,
)
from content_library.library.store import bump_minor_version


class InMemoryStore:
    """BackingStore double that keeps one tenant's content in dictionaries."""

    def __init__(
        self,
        entries: list[TenantEntry] | None = None,
        *,
        records: dict[str, list[dict[str, Any]]] | None = None,
    ) -> None:
        self.entries: dict[str, TenantEntry] = {entry.id: entry for entry in entries or []}
        self.records: dict[str, list[dict[str, Any]]] = records or {}
        self.libraries: dict[str, SavedLibrary] = {}
        self.fail_create_titles: set[str] = set()
        self.fail_delete_ids: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._next_id = 1

    async def list_entries(self) -> list[TenantEntry]:
        return list(self.entries.values())

    async def create_entry(self, entry: PackEntry) -> TenantEntry:
        self.calls.append(("create", entry.title))
        if entry.title in self.fail_create_titles:
            raise EntryWriteFailed(f"Failed to create wiki entry '{entry.title}'")
        entry_id = f"entry-{self._next_id}"
        self._next_id += 1
        created = TenantEntry(
            id=entry_id,
            title=entry.title,
            trigger=entry.trigger,
            aliases=entry.aliases,
            category=entry.category,
            definition=entry.definition,
            link=entry.link,
        )
        self.entries[entry_id] = created
        return created

    async def delete_entry(self, entry_id: str) -> None:
        self.calls.append(("delete", entry_id))
        if entry_id in self.fail_delete_ids:
            raise EntryWriteFailed(f"Failed to delete wiki entry {entry_id}", entry_id=entry_id)
        self.entries.pop(entry_id, None)

    async def list_records(self, kind: str) -> list[dict[str, Any]]:
        return [dict(record) for record in self.records.get(kind, [])]

    async def install_library(self, library_id: str, target_tenant_id: str) -> LibraryInstallCounts:
        library = self.libraries.get(library_id)
        if library is None:
            raise StoreUnavailable(f"Failed to install library {library_id} (404)")
        self.calls.append(("install_library", target_tenant_id))
        return LibraryInstallCounts(
            wiki_entries=len(library.content.wiki_entries),
            plays=len(library.content.plays),
            banners=len(library.content.banners),
        )

    async def create_library(
        self, name: str, description: str, content: LibraryContentBundle
    ) -> SavedLibrary:
        library_id = f"lib-{self._next_id}"
        self._next_id += 1
        saved = SavedLibrary(
            id=library_id,
            name=name,
            description=description,
            version=INITIAL_LIBRARY_VERSION,
            content=content,
        )
        self.libraries[library_id] = saved
        return saved

    async def update_library(
        self,
        library_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        content: LibraryContentBundle | None = None,
        bump_version: bool = True,
    ) -> SavedLibrary:
        current = self.libraries.get(library_id)
        if current is None:
            raise StoreUnavailable(f"Failed to update library {library_id} (404)")
        updated = dataclasses.replace(
            current,
            name=current.name if name is None else name,
            description=current.description if description is None else description,
            content=current.content if content is None else content,
            version=bump_minor_version(current.version) if bump_version else current.version,
        )
        self.libraries[library_id] = updated
        return updated

    async def delete_library(self, library_id: str) -> None:
        self.libraries.pop(library_id, None)

    async def get_library_by_id(self, library_id: str) -> SavedLibrary | None:
        return self.libraries.get(library_id)

    async def list_my_libraries(self) -> list[SavedLibrary]:
        return list(self.libraries.values())


@pytest.fixture
def store_factory():
    return InMemoryStore
