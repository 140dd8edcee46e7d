"""Runtime infrastructure for splitz.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Settings loading via load_split_settings()
- Receipt document persistence via DocumentStore

Usage:
    from splitz.runtime import get_logger, get_paths, DocumentStore

    logger = get_logger(__name__)
    store = DocumentStore()
    print(get_paths().receipts_db, store.list())
"""

from splitz.runtime.document_store import (
    DocumentNotFound,
    DocumentStore,
    DocumentSummary,
    PersistenceFailure,
)
from splitz.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    get_logger,
    set_log_level,
)
from splitz.runtime.paths import ProjectPaths, get_paths, reset_paths
from splitz.runtime.settings import classifier_service_url, extraction_service_url, load_split_settings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Settings
    "load_split_settings",
    "extraction_service_url",
    "classifier_service_url",
    # Storage
    "DocumentStore",
    "DocumentSummary",
    "DocumentNotFound",
    "PersistenceFailure",
    # Paths
    "get_paths",
    "reset_paths",
    "ProjectPaths",
]
