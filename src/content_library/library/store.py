from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Mapping, Protocol, runtime_checkable

import httpx

from content_library.config import Settings, get_settings
from content_library.constants import DEFAULT_STORE_TIMEOUT, INITIAL_LIBRARY_VERSION
from content_library.core.exceptions import EntryWriteFailed, StoreUnavailable
from content_library.core.logging.logger import get_logger
from content_library.library.models import (
    LibraryContentBundle,
    LibraryContentKind,
    LibraryInstallCounts,
    PackEntry,
    SavedLibrary,
    TenantEntry,
)

logger = get_logger(__name__)

WIKI_TABLE = "wiki_entries"
LIBRARY_TABLE = "consultant_libraries"
INSTALL_LIBRARY_RPC = "rpc/install_library"


@runtime_checkable
class BackingStore(Protocol):
    """Per-tenant persistence the install engine orchestrates over.

    ``create_entry`` and ``delete_entry`` raise :class:`EntryWriteFailed` on
    failure; everything else raises :class:`StoreUnavailable`.
    """

    async def list_entries(self) -> list[TenantEntry]: ...

    async def create_entry(self, entry: PackEntry) -> TenantEntry: ...

    async def delete_entry(self, entry_id: str) -> None: ...

    async def list_records(self, kind: LibraryContentKind) -> list[dict[str, Any]]: ...

    async def install_library(
        self, library_id: str, target_tenant_id: str
    ) -> LibraryInstallCounts: ...

    async def create_library(
        self, name: str, description: str, content: LibraryContentBundle
    ) -> SavedLibrary: ...

    async def update_library(
        self,
        library_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        content: LibraryContentBundle | None = None,
        bump_version: bool = True,
    ) -> SavedLibrary: ...

    async def delete_library(self, library_id: str) -> None: ...

    async def get_library_by_id(self, library_id: str) -> SavedLibrary | None: ...

    async def list_my_libraries(self) -> list[SavedLibrary]: ...


def map_entry_to_record(entry: PackEntry, *, tenant_id: str | None = None) -> dict[str, Any]:
    """Map a native (camelCase) glossary record to the store's snake_case row."""
    data = entry.content_fields()
    include_aliases = _pick(data, "includeAliases", "include_aliases")
    priority = _pick(data, "priority")
    record: dict[str, Any] = {
        "title": data.get("title") or data.get("name"),
        "trigger": data.get("trigger") or None,
        "aliases": data.get("aliases") or [],
        "category": data.get("category") or "general",
        "object_type": _pick(data, "objectType", "object_type"),
        "property_group": _pick(data, "propertyGroup", "property_group"),
        "definition": data.get("definition") or None,
        "link": data.get("link") or None,
        "parent_id": _pick(data, "parentId", "parent_id"),
        "match_type": _pick(data, "matchType", "match_type") or "exact",
        "frequency": _pick(data, "frequency") or "first",
        "include_aliases": True if include_aliases is None else include_aliases,
        "priority": 50 if priority is None else priority,
        "page_type": _pick(data, "pageType", "page_type") or "record",
        "url_patterns": _pick(data, "urlPatterns", "url_patterns"),
        "enabled": data.get("enabled") is not False,
    }
    if tenant_id is not None:
        record["organization_id"] = tenant_id
    return record


def bump_minor_version(version: str | None) -> str:
    """``1.4.2`` -> ``1.5.0``; missing or non-numeric parts count as zero."""
    parts = (version or "").split(".")
    numbers: list[int] = []
    for part in parts[:2]:
        try:
            numbers.append(int(part))
        except ValueError:
            numbers.append(0)
    while len(numbers) < 2:
        numbers.append(0)
    major, minor = numbers
    return f"{major}.{minor + 1}.0"


def parse_install_counts(payload: Any) -> LibraryInstallCounts:
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        return LibraryInstallCounts()
    for key in ("itemsInstalled", "items_installed"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            payload = nested
            break
    return LibraryInstallCounts(
        wiki_entries=_int(payload.get("wikiEntries", payload.get("wiki_entries"))),
        plays=_int(payload.get("plays")),
        banners=_int(payload.get("banners")),
    )


class RestBackingStore:
    """BackingStore over a PostgREST-style HTTP API, scoped to one tenant."""

    def __init__(
        self,
        base_url: str,
        *,
        tenant_id: str,
        api_key: str | None = None,
        owner_id: str | None = None,
        timeout: float = DEFAULT_STORE_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.tenant_id = tenant_id
        self.owner_id = owner_id
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> RestBackingStore:
        resolved_settings = settings or get_settings()
        store_settings = resolved_settings.store
        if not store_settings.base_url:
            raise StoreUnavailable(
                "No backing store configured",
                "Set store.base_url in content-library.config.yaml "
                "or CONTENT_LIBRARY_STORE__BASE_URL.",
            )
        return cls(
            store_settings.base_url,
            tenant_id=store_settings.tenant_id,
            api_key=store_settings.api_key,
            owner_id=store_settings.owner_id,
            timeout=store_settings.timeout,
        )

    async def list_entries(self) -> list[TenantEntry]:
        rows = await self._read_rows(
            WIKI_TABLE, params={"organization_id": f"eq.{self.tenant_id}", "select": "*"}
        )
        entries: list[TenantEntry] = []
        for row in rows:
            try:
                entries.append(TenantEntry.from_record(row))
            except ValueError as exc:
                logger.warning("Skipping malformed wiki entry", data={"error": str(exc)})
        return entries

    async def create_entry(self, entry: PackEntry) -> TenantEntry:
        record = map_entry_to_record(entry, tenant_id=self.tenant_id)
        try:
            response = await self._request(
                "POST",
                WIKI_TABLE,
                json=record,
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as exc:
            raise EntryWriteFailed(f"Failed to create wiki entry '{entry.title}'", str(exc)) from exc

        if response.status_code >= 400:
            raise EntryWriteFailed(
                f"Failed to create wiki entry '{entry.title}' ({response.status_code})",
                response.text,
            )

        try:
            row = _single_row(response.json())
            return TenantEntry.from_record(row)
        except ValueError as exc:
            raise EntryWriteFailed(
                f"Store returned no usable record for '{entry.title}'", str(exc)
            ) from exc

    async def delete_entry(self, entry_id: str) -> None:
        try:
            response = await self._request(
                "DELETE",
                WIKI_TABLE,
                params={"id": f"eq.{entry_id}", "organization_id": f"eq.{self.tenant_id}"},
            )
        except httpx.HTTPError as exc:
            raise EntryWriteFailed(
                f"Failed to delete wiki entry {entry_id}", str(exc), entry_id=entry_id
            ) from exc

        if response.status_code >= 400:
            raise EntryWriteFailed(
                f"Failed to delete wiki entry {entry_id} ({response.status_code})",
                response.text,
                entry_id=entry_id,
            )

    async def list_records(self, kind: LibraryContentKind) -> list[dict[str, Any]]:
        return await self._read_rows(
            kind, params={"organization_id": f"eq.{self.tenant_id}", "select": "*"}
        )

    async def install_library(self, library_id: str, target_tenant_id: str) -> LibraryInstallCounts:
        payload = await self._call(
            "POST",
            INSTALL_LIBRARY_RPC,
            json={"library_id": library_id, "organization_id": target_tenant_id},
            action=f"install library {library_id}",
        )
        return parse_install_counts(payload)

    async def create_library(
        self, name: str, description: str, content: LibraryContentBundle
    ) -> SavedLibrary:
        owner_id = self._require_owner()
        payload = await self._call(
            "POST",
            LIBRARY_TABLE,
            json={
                "owner_id": owner_id,
                "name": name,
                "description": description or "",
                "content": content.to_payload(),
                "version": INITIAL_LIBRARY_VERSION,
            },
            headers={"Prefer": "return=representation"},
            action=f"create library '{name}'",
        )
        return self._library_from_payload(payload)

    async def update_library(
        self,
        library_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        content: LibraryContentBundle | None = None,
        bump_version: bool = True,
    ) -> SavedLibrary:
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if content is not None:
            updates["content"] = content.to_payload()

        if bump_version:
            current = await self.get_library_by_id(library_id)
            if current is not None:
                updates["version"] = bump_minor_version(current.version)

        updates["updated_at"] = datetime.now(UTC).isoformat()

        payload = await self._call(
            "PATCH",
            LIBRARY_TABLE,
            params={"id": f"eq.{library_id}"},
            json=updates,
            headers={"Prefer": "return=representation"},
            action=f"update library {library_id}",
        )
        return self._library_from_payload(payload)

    async def delete_library(self, library_id: str) -> None:
        await self._call(
            "DELETE",
            LIBRARY_TABLE,
            params={"id": f"eq.{library_id}"},
            action=f"delete library {library_id}",
        )

    async def get_library_by_id(self, library_id: str) -> SavedLibrary | None:
        rows = await self._read_rows(LIBRARY_TABLE, params={"id": f"eq.{library_id}", "select": "*"})
        if not rows:
            return None
        return SavedLibrary.from_record(rows[0])

    async def list_my_libraries(self) -> list[SavedLibrary]:
        owner_id = self._require_owner()
        rows = await self._read_rows(
            LIBRARY_TABLE,
            params={"owner_id": f"eq.{owner_id}", "select": "*", "order": "updated_at.desc"},
        )
        libraries: list[SavedLibrary] = []
        for row in rows:
            try:
                libraries.append(SavedLibrary.from_record(row))
            except ValueError as exc:
                logger.warning("Skipping malformed library record", data={"error": str(exc)})
        return libraries

    def _require_owner(self) -> str:
        if not self.owner_id:
            raise StoreUnavailable("Not authenticated", "store.owner_id is required for library authoring")
        return self.owner_id

    def _library_from_payload(self, payload: Any) -> SavedLibrary:
        try:
            return SavedLibrary.from_record(_single_row(payload))
        except ValueError as exc:
            raise StoreUnavailable("Store returned no usable library record", str(exc)) from exc

    async def _read_rows(self, path: str, *, params: Mapping[str, str]) -> list[dict[str, Any]]:
        payload = await self._call("GET", path, params=params, action=f"read {path}")
        if not isinstance(payload, list):
            raise StoreUnavailable(f"Failed to read {path}", "expected a list of rows")
        return [row for row in payload if isinstance(row, dict)]

    async def _call(
        self,
        method: str,
        path: str,
        *,
        action: str,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise StoreUnavailable(f"Failed to {action}", str(exc)) from exc

        if response.status_code >= 400:
            raise StoreUnavailable(f"Failed to {action} ({response.status_code})", response.text)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreUnavailable(f"Failed to {action}", f"invalid JSON response: {exc}") from exc

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = {"Accept": "application/json"}
        if self._api_key:
            request_headers["apikey"] = self._api_key
            request_headers["Authorization"] = f"Bearer {self._api_key}"
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            return await client.request(
                method,
                f"{self.base_url}/{path}",
                params=params,
                json=json,
                headers=request_headers,
            )


def _single_row(payload: Any) -> dict[str, Any]:
    if isinstance(payload, list):
        if not payload:
            raise ValueError("empty response")
        payload = payload[0]
    if not isinstance(payload, dict):
        raise ValueError("expected an object")
    return payload


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
