"""Authoring side: bundle tenant content into a library and distribute it.

Pushing a library into another tenant goes through the backing store's own
install primitive. It does not run duplicate analysis and does not write the
ownership ledger.
"""

from __future__ import annotations

import asyncio
import copy
from typing import TYPE_CHECKING

from content_library.core.logging.logger import get_logger
from content_library.library.models import (
    LIBRARY_CONTENT_KINDS,
    ContentCorpus,
    LibraryContentBundle,
)

if TYPE_CHECKING:
    from content_library.library.models import (
        BundleSelection,
        LibraryInstallCounts,
        SavedLibrary,
    )
    from content_library.library.store import BackingStore

logger = get_logger(__name__)


def build_bundle(selection: BundleSelection, corpus: ContentCorpus) -> LibraryContentBundle:
    """Project the corpus onto the selected ids, deep-copying each record."""
    values = {}
    for kind in LIBRARY_CONTENT_KINDS:
        wanted = selection.ids(kind)
        values[kind] = tuple(
            copy.deepcopy(dict(record))
            for record in corpus.records(kind)
            if str(record.get("id")) in wanted
        )
    return LibraryContentBundle(**values)


async def load_corpus(store: BackingStore) -> ContentCorpus:
    wiki_entries, plays, banners = await asyncio.gather(
        *(store.list_records(kind) for kind in LIBRARY_CONTENT_KINDS)
    )
    return ContentCorpus(wiki_entries=wiki_entries, plays=plays, banners=banners)


async def save_library(
    store: BackingStore,
    name: str,
    description: str,
    bundle: LibraryContentBundle,
    existing_library_id: str | None = None,
) -> str:
    clean_name = name.strip()
    if not clean_name:
        raise ValueError("Library name is required")

    if existing_library_id:
        saved = await store.update_library(
            existing_library_id,
            name=clean_name,
            description=description,
            content=bundle,
        )
    else:
        saved = await store.create_library(clean_name, description, bundle)

    logger.info(
        "Saved library",
        data={"library_id": saved.id, "version": saved.version, "items": bundle.total},
    )
    return saved.id


async def install_to_org(
    store: BackingStore,
    library_id: str,
    target_tenant_id: str,
) -> LibraryInstallCounts:
    counts = await store.install_library(library_id, target_tenant_id)
    logger.info(
        "Installed library into organization",
        data={
            "library_id": library_id,
            "organization_id": target_tenant_id,
            "wiki_entries": counts.wiki_entries,
            "plays": counts.plays,
            "banners": counts.banners,
        },
    )
    return counts


async def list_libraries(store: BackingStore) -> list[SavedLibrary]:
    return await store.list_my_libraries()


async def delete_library(store: BackingStore, library_id: str) -> None:
    await store.delete_library(library_id)
    logger.info("Deleted library", data={"library_id": library_id})
