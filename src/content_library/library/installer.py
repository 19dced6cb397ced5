"""Best-effort install and uninstall of content packs.

Neither operation is transactional. Entries are written one at a time, each
failure is logged and counted, and nothing already applied is rolled back.
The ownership ledger is only touched after every entry operation settles.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from content_library.core.exceptions import EntryWriteFailed, NotInstalled
from content_library.core.logging.logger import get_logger
from content_library.library.models import (
    InstallResult,
    OwnershipLedgerRecord,
    PackState,
    UninstallResult,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from content_library.library.ledger import OwnershipLedger
    from content_library.library.models import CandidateEntry, PackDescriptor
    from content_library.library.store import BackingStore

logger = get_logger(__name__)


async def install_pack(
    pack: PackDescriptor,
    candidates: Sequence[CandidateEntry],
    *,
    store: BackingStore,
    ledger: OwnershipLedger,
    now: datetime | None = None,
) -> InstallResult:
    success_count = 0
    error_count = 0
    created_ids: list[str] = []
    replaced_ids: list[str] = []
    failed_deletes: list[str] = []

    # An unreadable ledger must stop the install before any entry is written.
    ledger.all()

    for candidate in candidates:
        if not candidate.selected:
            continue

        replaced_id = candidate.matched_tenant_entry_id
        if candidate.is_duplicate and replaced_id:
            try:
                await store.delete_entry(replaced_id)
                replaced_ids.append(replaced_id)
            except EntryWriteFailed as exc:
                failed_deletes.append(replaced_id)
                logger.warning(
                    "Failed to delete superseded wiki entry",
                    data={"pack_id": pack.id, "entry_id": replaced_id, "error": exc.message},
                )

        try:
            created = await store.create_entry(candidate.entry)
        except EntryWriteFailed as exc:
            error_count += 1
            logger.warning(
                "Failed to create wiki entry",
                data={"pack_id": pack.id, "title": candidate.entry.title, "error": exc.message},
            )
            continue

        success_count += 1
        created_ids.append(created.id)
        logger.debug(
            "Created wiki entry",
            data={"pack_id": pack.id, "entry_id": created.id, "title": candidate.entry.title},
        )

    if success_count > 0:
        installed_at = (now or datetime.now(UTC)).astimezone(UTC).isoformat()
        ledger.put(
            OwnershipLedgerRecord(
                pack_id=pack.id,
                version=pack.version,
                installed_at=installed_at,
                owned_entry_ids=tuple(created_ids),
                pack_name=pack.name,
            )
        )

    logger.info(
        "Installed library",
        data={
            "pack_id": pack.id,
            "version": pack.version,
            "success": success_count,
            "errors": error_count,
            "failed_deletes": len(failed_deletes),
        },
    )
    return InstallResult(
        success_count=success_count,
        error_count=error_count,
        created_ids=tuple(created_ids),
        replaced_ids=tuple(replaced_ids),
        failed_deletes=tuple(failed_deletes),
    )


async def uninstall_pack(
    pack_id: str,
    *,
    store: BackingStore,
    ledger: OwnershipLedger,
) -> UninstallResult:
    record = ledger.get(pack_id)
    if record is None:
        raise NotInstalled(pack_id)

    removed_ids: list[str] = []
    failed_ids: list[str] = []
    for entry_id in record.owned_entry_ids:
        try:
            await store.delete_entry(entry_id)
        except EntryWriteFailed as exc:
            failed_ids.append(entry_id)
            logger.warning(
                "Failed to delete wiki entry",
                data={"pack_id": pack_id, "entry_id": entry_id, "error": exc.message},
            )
            continue
        removed_ids.append(entry_id)

    # Dropped even when deletes failed; those records are no longer tracked.
    ledger.remove(pack_id)

    logger.info(
        "Uninstalled library",
        data={"pack_id": pack_id, "removed": len(removed_ids), "errors": len(failed_ids)},
    )
    return UninstallResult(
        pack_id=pack_id,
        success_count=len(removed_ids),
        error_count=len(failed_ids),
        removed_ids=tuple(removed_ids),
        failed_ids=tuple(failed_ids),
    )


def list_pack_states(
    descriptors: Iterable[PackDescriptor],
    ledger: OwnershipLedger,
) -> list[PackState]:
    records = ledger.all()
    return [PackState(descriptor=descriptor, record=records.get(descriptor.id)) for descriptor in descriptors]


def format_installed_at_display(installed_at: str | None) -> str:
    if not installed_at:
        return "unknown"
    normalized = installed_at.strip()
    if not normalized:
        return "unknown"
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return installed_at
    return parsed.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S")
