from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from content_library.config import Settings, get_settings
from content_library.constants import CATALOG_INDEX_FILENAME, DEFAULT_CATALOG_TIMEOUT
from content_library.core.exceptions import CatalogUnavailable
from content_library.core.logging.logger import get_logger
from content_library.library.models import PackDescriptor, PackEntry, first_str

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = get_logger(__name__)


class PackDescriptorModel(BaseModel):
    id: str
    name: str
    description: str = ""
    version: str = ""
    entry_count: int = 0
    category: str | None = None
    icon: str | None = None
    bundle_ref: str | None = None

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize_descriptor(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        pack_id = first_str(data, "id", "slug")
        name = first_str(data, "name", "title")
        bundle_ref = first_str(data, "file", "bundle_ref", "bundleRef", "path")
        if not pack_id and bundle_ref:
            pack_id = PurePosixPath(bundle_ref).stem or None

        entry_count = data.get("entryCount", data.get("entry_count", 0))
        if not isinstance(entry_count, int) or isinstance(entry_count, bool):
            entry_count = 0

        version = data.get("version")
        return {
            "id": pack_id,
            "name": name,
            "description": first_str(data, "description", "summary") or "",
            "version": str(version) if version is not None else "",
            "entry_count": entry_count,
            "category": first_str(data, "category"),
            "icon": first_str(data, "icon"),
            "bundle_ref": bundle_ref,
        }


class CatalogIndexModel(BaseModel):
    libraries: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class PackBundleModel(BaseModel):
    entries: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


def get_catalog_url(settings: Settings | None = None) -> str:
    resolved_settings = settings or get_settings()
    return normalize_catalog_url(resolved_settings.catalog.base_url)


def normalize_catalog_url(url: str) -> str:
    """Rewrite GitHub ``blob``/``tree`` links to their raw content equivalent."""
    cleaned = url.strip()
    parsed = urlparse(cleaned)
    if parsed.netloc in {"github.com", "www.github.com"}:
        parts = parsed.path.strip("/").split("/")
        if len(parts) >= 4 and parts[2] in {"blob", "tree"}:
            org, repo, _, ref = parts[:4]
            file_path = "/".join(parts[4:])
            raw = f"https://raw.githubusercontent.com/{org}/{repo}/{ref}"
            return f"{raw}/{file_path}" if file_path else raw
    return cleaned.rstrip("/")


def format_catalog_display_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.netloc == "raw.githubusercontent.com":
        parts = parsed.path.strip("/").split("/")
        if len(parts) >= 2:
            org, repo = parts[:2]
            return f"https://github.com/{org}/{repo}"
    return url


class CatalogClient:
    """Reads the pack index and pack bundles from a remote or local catalog.

    Nothing is cached: every call performs a fresh read.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_CATALOG_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = normalize_catalog_url(base_url)
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        base_url: str | None = None,
    ) -> CatalogClient:
        resolved_settings = settings or get_settings()
        return cls(
            base_url or resolved_settings.catalog.base_url,
            timeout=resolved_settings.catalog.timeout,
        )

    @property
    def index_url(self) -> str:
        return self._resolve(CATALOG_INDEX_FILENAME)

    async def fetch_index(self) -> list[PackDescriptor]:
        payload = await self._read_json(self.index_url, what="library manifest")
        if not isinstance(payload, dict):
            raise CatalogUnavailable(
                "Failed to parse library manifest",
                f"expected an object at {self.index_url}",
            )
        try:
            model = CatalogIndexModel.model_validate(payload)
        except ValidationError as exc:
            raise CatalogUnavailable("Failed to parse library manifest", str(exc)) from exc

        descriptors: list[PackDescriptor] = []
        for entry in model.libraries:
            descriptor = _descriptor_from_entry(entry)
            if descriptor is not None:
                descriptors.append(descriptor)
        return descriptors

    async def fetch_entries(self, descriptor: PackDescriptor) -> list[PackEntry]:
        url = self._resolve(descriptor.bundle_ref)
        payload = await self._read_json(url, what=f"library: {descriptor.name}")
        if not isinstance(payload, dict):
            raise CatalogUnavailable(
                f"Failed to parse library: {descriptor.name}",
                f"expected an object at {url}",
            )
        try:
            model = PackBundleModel.model_validate(payload)
            return [PackEntry.from_record(entry) for entry in model.entries]
        except ValueError as exc:
            raise CatalogUnavailable(f"Failed to parse library: {descriptor.name}", str(exc)) from exc

    def _resolve(self, relative: str) -> str:
        relative = relative.strip().lstrip("/")
        parsed = urlparse(relative)
        if parsed.scheme in {"http", "https", "file"}:
            return relative
        return f"{self.base_url}/{relative}"

    async def _read_json(self, url: str, *, what: str) -> Any:
        local_path = _local_catalog_path(url)
        if local_path is not None:
            return _read_local_json(local_path, what=what)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise CatalogUnavailable(f"Failed to fetch {what}", str(exc)) from exc

        if response.status_code >= 400:
            raise CatalogUnavailable(f"Failed to fetch {what} ({response.status_code})", url)

        try:
            return response.json()
        except ValueError as exc:
            raise CatalogUnavailable(f"Failed to parse {what}", str(exc)) from exc


def select_pack_by_name_or_index(
    entries: Iterable[PackDescriptor], selector: str
) -> PackDescriptor | None:
    selector_clean = selector.strip()
    if not selector_clean:
        return None

    entries_list = list(entries)
    if selector_clean.isdigit():
        index = int(selector_clean)
        if 1 <= index <= len(entries_list):
            return entries_list[index - 1]
        return None

    selector_lower = selector_clean.lower()
    for entry in entries_list:
        if entry.id.lower() == selector_lower or entry.name.lower() == selector_lower:
            return entry
    return None


def filter_entries(entries: Sequence[PackEntry], query: str) -> list[PackEntry]:
    return [entry for entry in entries if entry_matches_query(entry, query)]


def entry_matches_query(entry: PackEntry, query: str) -> bool:
    needle = query.lower()
    haystack = f"{entry.title} {entry.trigger or ''} {entry.category or ''}".lower()
    return needle in haystack


def _descriptor_from_entry(entry: dict[str, Any]) -> PackDescriptor | None:
    try:
        model = PackDescriptorModel.model_validate(entry)
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed library descriptor",
            data={"error": str(exc), "entry": _safe_json(entry)},
        )
        return None

    bundle_ref = model.bundle_ref or f"{model.id}.json"
    return PackDescriptor(
        id=model.id,
        name=model.name,
        description=model.description,
        version=model.version,
        entry_count=model.entry_count,
        bundle_ref=bundle_ref,
        category=model.category,
        icon=model.icon,
    )


def _local_catalog_path(url: str) -> Path | None:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(parsed.path)
    if parsed.scheme in {"http", "https"}:
        return None
    return Path(url).expanduser()


def _read_local_json(path: Path, *, what: str) -> Any:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogUnavailable(f"Failed to fetch {what}", str(exc)) from exc
    try:
        return json.loads(content)
    except ValueError as exc:
        raise CatalogUnavailable(f"Failed to parse {what}", str(exc)) from exc


def _safe_json(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=True)
    except TypeError:
        return str(value)
