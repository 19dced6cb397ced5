from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from content_library.constants import LEDGER_SCHEMA_VERSION
from content_library.core.exceptions import LedgerCorrupted
from content_library.core.logging.logger import get_logger
from content_library.library.models import OwnershipLedgerRecord

logger = get_logger(__name__)


class OwnershipLedger:
    """Tenant-scoped ``pack_id -> OwnershipLedgerRecord`` map stored as JSON.

    Each record describes only the most recent install of its pack. Every
    mutation rewrites the whole file atomically.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self, pack_id: str) -> OwnershipLedgerRecord | None:
        return self._load().get(pack_id)

    def all(self) -> dict[str, OwnershipLedgerRecord]:
        return self._load()

    def put(self, record: OwnershipLedgerRecord) -> None:
        records = self._load()
        records[record.pack_id] = record
        self._save(records)

    def remove(self, pack_id: str) -> bool:
        records = self._load()
        removed = records.pop(pack_id, None) is not None
        self._save(records)
        return removed

    def _load(self) -> dict[str, OwnershipLedgerRecord]:
        if not self.path.exists():
            return {}

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise LedgerCorrupted(f"Failed to read ownership ledger {self.path}", str(exc)) from exc

        if not isinstance(payload, dict):
            raise LedgerCorrupted(f"Ownership ledger {self.path} must be an object")

        schema_version = payload.get("schema_version")
        if schema_version != LEDGER_SCHEMA_VERSION:
            raise LedgerCorrupted(
                f"Unsupported ownership ledger schema_version: {schema_version}",
                str(self.path),
            )

        libraries = payload.get("libraries") or {}
        if not isinstance(libraries, dict):
            raise LedgerCorrupted(f"Ownership ledger {self.path}: 'libraries' must be an object")

        records: dict[str, OwnershipLedgerRecord] = {}
        for pack_id, raw in libraries.items():
            try:
                records[pack_id] = _parse_record(pack_id, raw)
            except ValueError as exc:
                raise LedgerCorrupted(
                    f"Invalid ownership ledger record for '{pack_id}'", str(exc)
                ) from exc
        return records

    def _save(self, records: dict[str, OwnershipLedgerRecord]) -> None:
        payload = {
            "schema_version": LEDGER_SCHEMA_VERSION,
            "libraries": {
                pack_id: _serialize_record(record) for pack_id, record in sorted(records.items())
            },
        }
        _atomic_write_text(
            self.path,
            json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True) + "\n",
        )
        logger.debug("Saved ownership ledger", data={"path": str(self.path), "libraries": len(records)})


def _serialize_record(record: OwnershipLedgerRecord) -> dict[str, Any]:
    return {
        "version": record.version,
        "installed_at": record.installed_at,
        "owned_entry_ids": list(record.owned_entry_ids),
        "pack_name": record.pack_name,
    }


def _parse_record(pack_id: str, raw: Any) -> OwnershipLedgerRecord:
    if not isinstance(raw, dict):
        raise ValueError("record must be an object")

    version = raw.get("version")
    if not isinstance(version, str):
        raise ValueError("version must be a string")

    installed_at = raw.get("installed_at")
    if not isinstance(installed_at, str) or not installed_at.strip():
        raise ValueError("installed_at must be a non-empty string")

    owned = raw.get("owned_entry_ids")
    if not isinstance(owned, list) or not all(isinstance(item, str) for item in owned):
        raise ValueError("owned_entry_ids must be a list of strings")

    pack_name = raw.get("pack_name")
    if pack_name is not None and not isinstance(pack_name, str):
        raise ValueError("pack_name must be a string when present")

    return OwnershipLedgerRecord(
        pack_id=pack_id,
        version=version,
        installed_at=installed_at,
        owned_entry_ids=tuple(owned),
        pack_name=pack_name,
    )


def _atomic_write_text(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=".tmp",
        delete=False,
    ) as temp_file:
        temp_file.write(content)
        temp_path = Path(temp_file.name)

    try:
        os.replace(temp_path, target)
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
