"""Data models for the translation sync system."""

from .config import (
    MASKED_SECRET,
    DocumentFormat,
    FileMapping,
    FolderMapping,
    Settings,
    SyncConfig,
    Trigger,
    resource_ids_match,
    utc_now,
)

__all__ = [
    "MASKED_SECRET",
    "DocumentFormat",
    "FileMapping",
    "FolderMapping",
    "Settings",
    "SyncConfig",
    "Trigger",
    "resource_ids_match",
    "utc_now",
]
