"""
Global constants for content_library with minimal dependencies to avoid circular imports.
"""

DEFAULT_CATALOG_URL = "https://raw.githubusercontent.com/brucetmkns/revguide.io/main/library-data"
"""Base location of the published pack catalog; the index lives at ``<base>/index.json``."""
CATALOG_INDEX_FILENAME = "index.json"

DEFAULT_CATALOG_TIMEOUT = 10.0
DEFAULT_STORE_TIMEOUT = 30.0

CONFIG_FILENAME = "content-library.config.yaml"
SECRETS_FILENAME = "content-library.secrets.yaml"

DEFAULT_ENVIRONMENT_DIR = ".content-library"
ENVIRONMENT_DIR_VAR = "ENVIRONMENT_DIR"

LEDGER_SCHEMA_VERSION = 1
DEFAULT_TENANT_ID = "default"

INITIAL_LIBRARY_VERSION = "1.0.0"
"""Version stamped on a freshly created authored library."""
