from __future__ import annotations

import json

import httpx
import pytest

from content_library.config import Settings
from content_library.core.exceptions import EntryWriteFailed, StoreUnavailable
from content_library.library.models import LibraryContentBundle, PackEntry
from content_library.library.store import (
    BackingStore,
    RestBackingStore,
    bump_minor_version,
    map_entry_to_record,
    parse_install_counts,
)

BASE_URL = "https://store.example.com/rest/v1"


def _store(handler, **kwargs) -> RestBackingStore:
    kwargs.setdefault("tenant_id", "org-1")
    return RestBackingStore(BASE_URL, api_key="secret", transport=httpx.MockTransport(handler), **kwargs)


def test_map_entry_to_record_applies_defaults() -> None:
    record = map_entry_to_record(PackEntry(title="Deal Stage", trigger="dealstage"), tenant_id="org-1")

    assert record["title"] == "Deal Stage"
    assert record["trigger"] == "dealstage"
    assert record["aliases"] == []
    assert record["category"] == "general"
    assert record["match_type"] == "exact"
    assert record["frequency"] == "first"
    assert record["include_aliases"] is True
    assert record["priority"] == 50
    assert record["page_type"] == "record"
    assert record["enabled"] is True
    assert record["organization_id"] == "org-1"


def test_map_entry_to_record_maps_camel_case_fields() -> None:
    entry = PackEntry.from_record(
        {
            "title": "Lifecycle",
            "objectType": "contacts",
            "propertyGroup": "contactinformation",
            "matchType": "contains",
            "includeAliases": False,
            "priority": 0,
            "pageType": "index",
            "urlPatterns": ["/contacts/*"],
            "enabled": False,
        }
    )

    record = map_entry_to_record(entry)

    assert record["object_type"] == "contacts"
    assert record["property_group"] == "contactinformation"
    assert record["match_type"] == "contains"
    assert record["include_aliases"] is False
    assert record["priority"] == 0
    assert record["page_type"] == "index"
    assert record["url_patterns"] == ["/contacts/*"]
    assert record["enabled"] is False
    assert "organization_id" not in record


def test_bump_minor_version() -> None:
    assert bump_minor_version("1.0.0") == "1.1.0"
    assert bump_minor_version("2.9.7") == "2.10.0"
    assert bump_minor_version("3") == "3.1.0"
    assert bump_minor_version("x.y") == "0.1.0"
    assert bump_minor_version(None) == "0.1.0"


def test_parse_install_counts_accepts_rpc_shapes() -> None:
    counts = parse_install_counts({"itemsInstalled": {"wikiEntries": 3, "plays": 1, "banners": 2}})
    assert (counts.wiki_entries, counts.plays, counts.banners) == (3, 1, 2)
    assert counts.total == 6

    counts = parse_install_counts([{"wiki_entries": "4"}])
    assert counts.wiki_entries == 4
    assert parse_install_counts(None).total == 0


def test_rest_store_satisfies_protocol() -> None:
    assert isinstance(_store(lambda request: httpx.Response(200, json=[])), BackingStore)


def test_from_settings_requires_base_url() -> None:
    with pytest.raises(StoreUnavailable, match="No backing store configured"):
        RestBackingStore.from_settings(Settings())


@pytest.mark.asyncio
async def test_list_entries_scopes_to_tenant_and_skips_rows_without_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {"id": 7, "title": "Deal Stage", "trigger": "dealstage", "aliases": ["stage"]},
                {"title": "orphan"},
            ],
        )

    entries = await _store(handler).list_entries()

    assert [entry.id for entry in entries] == ["7"]
    assert entries[0].aliases == ("stage",)
    request = seen[0]
    assert request.url.path == "/rest/v1/wiki_entries"
    assert request.url.params["organization_id"] == "eq.org-1"
    assert request.headers["apikey"] == "secret"
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_list_entries_failure_raises_store_unavailable() -> None:
    store = _store(lambda request: httpx.Response(500, text="down"))
    with pytest.raises(StoreUnavailable, match="500"):
        await store.list_entries()


@pytest.mark.asyncio
async def test_create_entry_posts_mapped_record() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        assert request.headers["Prefer"] == "return=representation"
        return httpx.Response(201, json=[{"id": "new-1", **body}])

    created = await _store(handler).create_entry(PackEntry(title="Amount", trigger="amount"))

    assert created.id == "new-1"
    assert created.title == "Amount"
    assert bodies[0]["organization_id"] == "org-1"
    assert bodies[0]["match_type"] == "exact"


@pytest.mark.asyncio
async def test_create_entry_failure_raises_entry_write_failed() -> None:
    store = _store(lambda request: httpx.Response(409, text="conflict"))
    with pytest.raises(EntryWriteFailed, match="Amount"):
        await store.create_entry(PackEntry(title="Amount"))


@pytest.mark.asyncio
async def test_delete_entry_failure_carries_entry_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.params["id"] == "eq.e1"
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(EntryWriteFailed) as exc_info:
        await _store(handler).delete_entry("e1")
    assert exc_info.value.entry_id == "e1"


@pytest.mark.asyncio
async def test_create_library_requires_owner() -> None:
    store = _store(lambda request: httpx.Response(201, json=[]))
    with pytest.raises(StoreUnavailable, match="Not authenticated"):
        await store.create_library("Sales", "", LibraryContentBundle())


@pytest.mark.asyncio
async def test_create_library_starts_at_initial_version() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["owner_id"] == "owner-1"
        assert body["content"] == {
            "wikiEntries": [{"id": "w1", "title": "A"}],
            "plays": [],
            "banners": [],
        }
        return httpx.Response(201, json=[{"id": "lib-1", **body}])

    store = _store(handler, owner_id="owner-1")
    saved = await store.create_library(
        "Sales", "terms", LibraryContentBundle(wiki_entries=({"id": "w1", "title": "A"},))
    )

    assert saved.id == "lib-1"
    assert saved.version == "1.0.0"
    assert saved.content.total == 1


@pytest.mark.asyncio
async def test_update_library_bumps_minor_version() -> None:
    patches: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=[{"id": "lib-1", "name": "Sales", "version": "1.3.2"}])
        body = json.loads(request.content)
        patches.append(body)
        return httpx.Response(200, json=[{"id": "lib-1", "name": "Sales", **body}])

    saved = await _store(handler).update_library("lib-1", description="new")

    assert patches[0]["version"] == "1.4.0"
    assert patches[0]["description"] == "new"
    assert "updated_at" in patches[0]
    assert saved.version == "1.4.0"


@pytest.mark.asyncio
async def test_install_library_calls_rpc() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/rpc/install_library"
        assert json.loads(request.content) == {"library_id": "lib-1", "organization_id": "org-2"}
        return httpx.Response(200, json={"wikiEntries": 5, "plays": 0, "banners": 1})

    counts = await _store(handler).install_library("lib-1", "org-2")

    assert counts.total == 6


@pytest.mark.asyncio
async def test_list_entries_tolerates_malformed_aliases() -> None:
    store = _store(
        lambda request: httpx.Response(200, json=[{"id": "w1", "title": "MQL", "aliases": 5}])
    )

    entries = await store.list_entries()

    assert entries[0].aliases == ()
