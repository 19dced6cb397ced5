"""Content library catalog, duplicate analysis and install engine."""

from .analyzer import analyze_entries
from .authoring import build_bundle, install_to_org, load_corpus, save_library
from .catalog import CatalogClient, select_pack_by_name_or_index
from .installer import install_pack, list_pack_states, uninstall_pack
from .ledger import OwnershipLedger
from .models import (
    AnalysisResult,
    BundleSelection,
    CandidateEntry,
    ContentCorpus,
    InstallResult,
    LibraryContentBundle,
    LibraryInstallCounts,
    OwnershipLedgerRecord,
    PackDescriptor,
    PackEntry,
    PackState,
    SavedLibrary,
    TenantEntry,
    UninstallResult,
)
from .selection import SelectionState
from .store import BackingStore, RestBackingStore

__all__ = [
    # Catalog
    "CatalogClient",
    "select_pack_by_name_or_index",
    # Analysis and selection
    "analyze_entries",
    "SelectionState",
    # Install engine
    "install_pack",
    "uninstall_pack",
    "list_pack_states",
    "OwnershipLedger",
    # Authoring
    "build_bundle",
    "install_to_org",
    "load_corpus",
    "save_library",
    # Store
    "BackingStore",
    "RestBackingStore",
    # Models
    "AnalysisResult",
    "BundleSelection",
    "CandidateEntry",
    "ContentCorpus",
    "InstallResult",
    "LibraryContentBundle",
    "LibraryInstallCounts",
    "OwnershipLedgerRecord",
    "PackDescriptor",
    "PackEntry",
    "PackState",
    "SavedLibrary",
    "TenantEntry",
    "UninstallResult",
]
