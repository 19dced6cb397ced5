from __future__ import annotations

import os

import pytest

import content_library.config as config_module


@pytest.fixture(autouse=True)
def isolate_environment_dir(tmp_path, monkeypatch):
    """Ensure unit tests never write ledgers into a real environment directory.

    Force an isolated temporary environment path per test and drop any
    ``CONTENT_LIBRARY_*`` overrides from the developer's shell.
    """

    original_environment_dir = os.environ.get("ENVIRONMENT_DIR")
    original_settings = getattr(config_module, "_settings", None)
    isolated_environment_dir = tmp_path / ".content-library-test-env"
    os.environ["ENVIRONMENT_DIR"] = str(isolated_environment_dir)
    for key in list(os.environ):
        if key.startswith("CONTENT_LIBRARY_"):
            monkeypatch.delenv(key)
    # Ensure cached global settings never leak across tests.
    config_module._settings = None

    try:
        yield
    finally:
        config_module._settings = original_settings
        if original_environment_dir is None:
            os.environ.pop("ENVIRONMENT_DIR", None)
        else:
            os.environ["ENVIRONMENT_DIR"] = original_environment_dir
