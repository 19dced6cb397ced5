from __future__ import annotations

import json

import httpx
import pytest

from content_library.core.exceptions import CatalogUnavailable
from content_library.library import catalog
from content_library.library.catalog import CatalogClient

BASE_URL = "https://catalog.example.com/library-data"

INDEX = {
    "libraries": [
        {
            "id": "sales",
            "name": "Sales Glossary",
            "description": "Common sales terms",
            "version": "1.2.0",
            "entryCount": 2,
            "category": "sales",
            "icon": "dollar-sign",
            "file": "sales.json",
        },
        {"id": "marketing", "title": "Marketing Terms", "version": "0.1.0"},
        {"description": "no id or name"},
    ]
}

SALES_BUNDLE = {
    "entries": [
        {
            "title": "Deal Stage",
            "trigger": "dealstage",
            "aliases": ["stage"],
            "category": "sales",
            "definition": "<p>Where the deal is</p>",
            "matchType": "contains",
        },
        {"name": "Amount", "term": "amount"},
    ]
}


def _transport(routes: dict[str, httpx.Response]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(str(request.url), httpx.Response(404, text="not found"))

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_fetch_index_parses_descriptors_and_skips_invalid() -> None:
    client = CatalogClient(
        BASE_URL,
        transport=_transport({f"{BASE_URL}/index.json": httpx.Response(200, json=INDEX)}),
    )

    descriptors = await client.fetch_index()

    assert [d.id for d in descriptors] == ["sales", "marketing"]
    sales, marketing = descriptors
    assert sales.name == "Sales Glossary"
    assert sales.entry_count == 2
    assert sales.bundle_ref == "sales.json"
    assert sales.icon == "dollar-sign"
    assert marketing.name == "Marketing Terms"
    assert marketing.bundle_ref == "marketing.json"
    assert marketing.entry_count == 0


@pytest.mark.asyncio
async def test_fetch_entries_reads_bundle_ref() -> None:
    client = CatalogClient(
        BASE_URL,
        transport=_transport(
            {
                f"{BASE_URL}/index.json": httpx.Response(200, json=INDEX),
                f"{BASE_URL}/sales.json": httpx.Response(200, json=SALES_BUNDLE),
            }
        ),
    )
    sales = (await client.fetch_index())[0]

    entries = await client.fetch_entries(sales)

    assert [entry.title for entry in entries] == ["Deal Stage", "Amount"]
    assert entries[0].aliases == ("stage",)
    assert entries[0].extra["matchType"] == "contains"
    assert entries[1].trigger == "amount"
    assert entries[1].category == "general"


@pytest.mark.asyncio
async def test_missing_index_raises_catalog_unavailable() -> None:
    client = CatalogClient(BASE_URL, transport=_transport({}))

    with pytest.raises(CatalogUnavailable) as exc_info:
        await client.fetch_index()

    assert exc_info.value.message == "Failed to fetch library manifest (404)"


@pytest.mark.asyncio
async def test_malformed_index_raises_catalog_unavailable() -> None:
    client = CatalogClient(
        BASE_URL,
        transport=_transport({f"{BASE_URL}/index.json": httpx.Response(200, text="<html>")}),
    )

    with pytest.raises(CatalogUnavailable, match="Failed to parse library manifest"):
        await client.fetch_index()


@pytest.mark.asyncio
async def test_missing_bundle_names_the_library() -> None:
    client = CatalogClient(
        BASE_URL,
        transport=_transport({f"{BASE_URL}/index.json": httpx.Response(200, json=INDEX)}),
    )
    sales = (await client.fetch_index())[0]

    with pytest.raises(CatalogUnavailable, match="Failed to fetch library: Sales Glossary"):
        await client.fetch_entries(sales)


@pytest.mark.asyncio
async def test_transport_error_raises_catalog_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    client = CatalogClient(BASE_URL, transport=httpx.MockTransport(handler))

    with pytest.raises(CatalogUnavailable, match="Failed to fetch library manifest"):
        await client.fetch_index()


@pytest.mark.asyncio
async def test_local_directory_catalog(tmp_path) -> None:
    (tmp_path / "index.json").write_text(json.dumps(INDEX), encoding="utf-8")
    (tmp_path / "sales.json").write_text(json.dumps(SALES_BUNDLE), encoding="utf-8")
    client = CatalogClient(tmp_path.as_posix())

    descriptors = await client.fetch_index()
    entries = await client.fetch_entries(descriptors[0])

    assert len(descriptors) == 2
    assert len(entries) == 2


@pytest.mark.asyncio
async def test_bundle_without_entries_key_is_empty(tmp_path) -> None:
    (tmp_path / "index.json").write_text(json.dumps(INDEX), encoding="utf-8")
    (tmp_path / "sales.json").write_text(json.dumps({"name": "sales"}), encoding="utf-8")
    client = CatalogClient(tmp_path.as_uri())

    descriptors = await client.fetch_index()
    assert await client.fetch_entries(descriptors[0]) == []


def test_normalize_catalog_url_rewrites_github_links() -> None:
    assert (
        catalog.normalize_catalog_url("https://github.com/acme/content/tree/main/library-data/")
        == "https://raw.githubusercontent.com/acme/content/main/library-data"
    )
    assert (
        catalog.normalize_catalog_url("https://github.com/acme/content/blob/v1/index.json")
        == "https://raw.githubusercontent.com/acme/content/v1/index.json"
    )
    assert catalog.normalize_catalog_url(f"{BASE_URL}/") == BASE_URL


def test_format_catalog_display_url() -> None:
    assert (
        catalog.format_catalog_display_url(
            "https://raw.githubusercontent.com/acme/content/main/library-data"
        )
        == "https://github.com/acme/content"
    )
    assert catalog.format_catalog_display_url(BASE_URL) == BASE_URL


def test_select_pack_by_name_or_index() -> None:
    descriptors = [
        catalog._descriptor_from_entry(entry) for entry in INDEX["libraries"][:2]
    ]

    assert catalog.select_pack_by_name_or_index(descriptors, "1").id == "sales"
    assert catalog.select_pack_by_name_or_index(descriptors, "marketing").id == "marketing"
    assert catalog.select_pack_by_name_or_index(descriptors, "sales glossary").id == "sales"
    assert catalog.select_pack_by_name_or_index(descriptors, "3") is None
    assert catalog.select_pack_by_name_or_index(descriptors, " ") is None


def test_filter_entries_matches_title_trigger_or_category() -> None:
    from content_library.library.models import PackEntry

    entries = [PackEntry.from_record(raw) for raw in SALES_BUNDLE["entries"]]
    assert [e.title for e in catalog.filter_entries(entries, "sales")] == ["Deal Stage"]
    assert [e.title for e in catalog.filter_entries(entries, "AMOUNT")] == ["Amount"]


@pytest.mark.asyncio
async def test_non_list_aliases_are_ignored() -> None:
    descriptor = catalog._descriptor_from_entry(INDEX["libraries"][0])
    client = CatalogClient(
        BASE_URL,
        transport=_transport(
            {
                f"{BASE_URL}/sales.json": httpx.Response(
                    200, json={"entries": [{"title": "MQL", "aliases": 5}]}
                )
            }
        ),
    )

    entries = await client.fetch_entries(descriptor)

    assert [entry.title for entry in entries] == ["MQL"]
    assert entries[0].aliases == ()


@pytest.mark.asyncio
async def test_non_object_entry_raises_catalog_unavailable() -> None:
    descriptor = catalog._descriptor_from_entry(INDEX["libraries"][0])
    client = CatalogClient(
        BASE_URL,
        transport=_transport(
            {f"{BASE_URL}/sales.json": httpx.Response(200, json={"entries": ["MQL"]})}
        ),
    )

    with pytest.raises(CatalogUnavailable, match="Failed to parse library: Sales Glossary"):
        await client.fetch_entries(descriptor)


def test_descriptor_and_entry_parsing_share_field_lookup() -> None:
    from content_library.library.models import PackEntry, first_str

    assert first_str({"name": "  ", "title": " Deal Stage "}, "name", "title") == "Deal Stage"
    assert first_str({"name": 3}, "name") is None
    assert catalog._descriptor_from_entry({"slug": "s", "title": " S "}).name == "S"
    assert PackEntry.from_record({"name": " ", "title": " S "}).title == "S"
