from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

EntryStatus = Literal["new", "duplicate"]
LibraryContentKind = Literal["wiki_entries", "plays", "banners"]

LIBRARY_CONTENT_KINDS: tuple[LibraryContentKind, ...] = ("wiki_entries", "plays", "banners")

_BUNDLE_PAYLOAD_KEYS: dict[LibraryContentKind, str] = {
    "wiki_entries": "wikiEntries",
    "plays": "plays",
    "banners": "banners",
}

# Keys consumed into first-class fields; everything else rides along in ``extra``.
_CORE_ENTRY_KEYS = frozenset(
    {"title", "name", "trigger", "term", "aliases", "category", "definition", "link"}
)
_IDENTITY_KEYS = frozenset(
    {
        "id",
        "created_at",
        "createdAt",
        "updated_at",
        "updatedAt",
        "organization_id",
        "organizationId",
    }
)
_TENANT_ENTRY_KEYS = _IDENTITY_KEYS | {"enabled"}


@dataclass(frozen=True)
class PackDescriptor:
    id: str
    name: str
    description: str
    version: str
    entry_count: int
    bundle_ref: str
    category: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class PackEntry:
    title: str
    trigger: str | None = None
    aliases: tuple[str, ...] = ()
    category: str = "general"
    definition: Any = None
    link: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> PackEntry:
        model = _EntryRecordModel.model_validate(dict(data))
        return cls(
            title=model.title,
            trigger=model.trigger,
            aliases=tuple(model.aliases),
            category=model.category,
            definition=model.definition,
            link=model.link,
            extra={key: value for key, value in model.extra.items() if key not in _IDENTITY_KEYS},
        )

    def content_fields(self) -> dict[str, Any]:
        """Native glossary record for this entry, without identity or timestamps."""
        record: dict[str, Any] = copy.deepcopy(dict(self.extra))
        record.update(
            {
                "title": self.title,
                "trigger": self.trigger,
                "aliases": list(self.aliases),
                "category": self.category,
                "definition": self.definition,
                "link": self.link,
            }
        )
        return record


@dataclass(frozen=True)
class TenantEntry:
    id: str
    title: str
    trigger: str | None = None
    aliases: tuple[str, ...] = ()
    category: str = "general"
    definition: Any = None
    link: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    enabled: bool = True
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> TenantEntry:
        raw_id = data.get("id")
        if raw_id is None or str(raw_id).strip() == "":
            raise ValueError("Tenant entry record is missing an id")
        model = _EntryRecordModel.model_validate(dict(data))
        enabled = data.get("enabled")
        return cls(
            id=str(raw_id),
            title=model.title,
            trigger=model.trigger,
            aliases=tuple(model.aliases),
            category=model.category,
            definition=model.definition,
            link=model.link,
            created_at=_optional_str(data.get("created_at", data.get("createdAt"))),
            updated_at=_optional_str(data.get("updated_at", data.get("updatedAt"))),
            enabled=enabled is not False,
            extra={key: value for key, value in model.extra.items() if key not in _TENANT_ENTRY_KEYS},
        )


@dataclass
class CandidateEntry:
    """A pack entry annotated with duplicate analysis for one install session."""

    entry: PackEntry
    status: EntryStatus
    matched_tenant_entry_id: str | None = None
    matched_title: str | None = None
    selected: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


@dataclass(frozen=True)
class AnalysisResult:
    candidates: list[CandidateEntry]
    new_count: int
    duplicate_count: int


@dataclass(frozen=True)
class OwnershipLedgerRecord:
    pack_id: str
    version: str
    installed_at: str
    owned_entry_ids: tuple[str, ...]
    pack_name: str | None = None


@dataclass(frozen=True)
class PackState:
    descriptor: PackDescriptor
    record: OwnershipLedgerRecord | None

    @property
    def installed(self) -> bool:
        return self.record is not None

    @property
    def update_available(self) -> bool:
        return self.record is not None and self.record.version != self.descriptor.version


@dataclass(frozen=True)
class InstallResult:
    success_count: int
    error_count: int
    created_ids: tuple[str, ...] = ()
    replaced_ids: tuple[str, ...] = ()
    failed_deletes: tuple[str, ...] = ()

    def summary(self, pack_name: str) -> str:
        if self.error_count > 0 and self.success_count > 0:
            return f"Installed {self.success_count} entries, {self.error_count} failed."
        if self.error_count > 0:
            return f"Installation failed: all {self.error_count} entries failed."
        return f"Successfully installed {self.success_count} entries from {pack_name}."


@dataclass(frozen=True)
class UninstallResult:
    pack_id: str
    success_count: int
    error_count: int
    removed_ids: tuple[str, ...] = ()
    failed_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class LibraryContentBundle:
    """Distributable pack payload: full copies of selected tenant records."""

    wiki_entries: tuple[dict[str, Any], ...] = ()
    plays: tuple[dict[str, Any], ...] = ()
    banners: tuple[dict[str, Any], ...] = ()

    def records(self, kind: LibraryContentKind) -> tuple[dict[str, Any], ...]:
        return getattr(self, kind)

    @property
    def total(self) -> int:
        return len(self.wiki_entries) + len(self.plays) + len(self.banners)

    def to_payload(self) -> dict[str, list[dict[str, Any]]]:
        return {
            _BUNDLE_PAYLOAD_KEYS[kind]: [copy.deepcopy(record) for record in self.records(kind)]
            for kind in LIBRARY_CONTENT_KINDS
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> LibraryContentBundle:
        payload = payload or {}
        values: dict[str, tuple[dict[str, Any], ...]] = {}
        for kind in LIBRARY_CONTENT_KINDS:
            raw = payload.get(_BUNDLE_PAYLOAD_KEYS[kind], payload.get(kind)) or []
            if not isinstance(raw, list):
                raise ValueError(f"Library content '{kind}' must be a list")
            values[kind] = tuple(copy.deepcopy(dict(item)) for item in raw if isinstance(item, Mapping))
        return cls(**values)


@dataclass(frozen=True)
class LibraryInstallCounts:
    wiki_entries: int = 0
    plays: int = 0
    banners: int = 0

    @property
    def total(self) -> int:
        return self.wiki_entries + self.plays + self.banners


@dataclass(frozen=True)
class SavedLibrary:
    id: str
    name: str
    description: str
    version: str
    content: LibraryContentBundle
    updated_at: str | None = None

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> SavedLibrary:
        raw_id = data.get("id")
        if raw_id is None:
            raise ValueError("Library record is missing an id")
        return cls(
            id=str(raw_id),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            version=str(data.get("version") or ""),
            content=LibraryContentBundle.from_payload(data.get("content")),
            updated_at=_optional_str(data.get("updated_at", data.get("updatedAt"))),
        )


@dataclass(frozen=True)
class BundleSelection:
    wiki_entries: frozenset[str] = frozenset()
    plays: frozenset[str] = frozenset()
    banners: frozenset[str] = frozenset()

    def ids(self, kind: LibraryContentKind) -> frozenset[str]:
        return getattr(self, kind)


@dataclass(frozen=True)
class ContentCorpus:
    """A tenant's authorable content, one list of raw records per kind."""

    wiki_entries: Sequence[Mapping[str, Any]] = ()
    plays: Sequence[Mapping[str, Any]] = ()
    banners: Sequence[Mapping[str, Any]] = ()

    def records(self, kind: LibraryContentKind) -> Sequence[Mapping[str, Any]]:
        return getattr(self, kind)


class _EntryRecordModel(BaseModel):
    title: str
    trigger: str | None = None
    aliases: list[str] = Field(default_factory=list)
    category: str = "general"
    definition: Any = None
    link: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize_record(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        title = first_str(data, "title", "name")
        trigger = first_str(data, "trigger", "term")
        aliases_raw = data.get("aliases") or []
        if isinstance(aliases_raw, str):
            aliases_raw = [aliases_raw]
        elif not isinstance(aliases_raw, (list, tuple)):
            aliases_raw = []
        aliases = [alias for alias in aliases_raw if isinstance(alias, str) and alias.strip()]

        return {
            "title": title or "",
            "trigger": trigger,
            "aliases": aliases,
            "category": first_str(data, "category") or "general",
            "definition": data.get("definition"),
            "link": first_str(data, "link"),
            "extra": {key: value for key, value in data.items() if key not in _CORE_ENTRY_KEYS},
        }


def first_str(entry: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
