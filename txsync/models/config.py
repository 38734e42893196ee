"""Configuration and data models for the translation sync system."""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


MASKED_SECRET = "********"

GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
GOOGLE_SHEET_MIME = "application/vnd.google-apps.spreadsheet"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class DocumentFormat(str, Enum):
    """Interchange formats a folder can opt into."""

    DOCX = "docx"
    XLSX = "xlsx"

    @property
    def native_mime_type(self) -> str:
        """Workspace-native type the format is exported from and imported as."""
        return GOOGLE_DOC_MIME if self is DocumentFormat.DOCX else GOOGLE_SHEET_MIME

    @property
    def export_mime_type(self) -> str:
        """Archive type the workspace exports to."""
        return DOCX_MIME if self is DocumentFormat.DOCX else XLSX_MIME

    @classmethod
    def from_mime_type(cls, mime_type: str) -> "DocumentFormat | None":
        """Resolve a native or archive mime type to a format."""
        for fmt in cls:
            if mime_type in (fmt.native_mime_type, fmt.export_mime_type):
                return fmt
        return None


class Trigger(str, Enum):
    """Completion conditions a folder opts into for automatic download."""

    TRANSLATED = "translated"
    REVIEWED = "reviewed"
    PROOFREAD = "proofread"
    UPDATED = "updated"


def resource_ids_match(stored: str, incoming: str) -> bool:
    """Match a stored resource id against one named by a webhook event.

    Either id containing the other counts as a match, so a bare slug stored
    on a mapping still matches the full ``o:org:p:project:r:slug`` id the
    platform sends. Empty ids never match.
    """
    if not stored or not incoming:
        return False
    return stored in incoming or incoming in stored


@dataclass
class Settings:
    """Process-wide settings. Exactly one instance lives in the config blob."""

    api_token: str = ""
    webhook_secret: str | None = None
    check_interval_minutes: int = 15
    webhook_url: str = ""

    def effective_api_token(self) -> str:
        """Stored token, falling back to TX_API_TOKEN."""
        return self.api_token or os.getenv("TX_API_TOKEN", "")

    def effective_webhook_secret(self) -> str:
        """Stored webhook secret, falling back to TX_WEBHOOK_SECRET."""
        return self.webhook_secret or os.getenv("TX_WEBHOOK_SECRET", "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "apiToken": self.api_token,
            "webhookSecret": self.webhook_secret,
            "checkIntervalMinutes": self.check_interval_minutes,
            "webhookUrl": self.webhook_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """Create from dictionary."""
        return cls(
            api_token=data.get("apiToken") or "",
            webhook_secret=data.get("webhookSecret") or None,
            check_interval_minutes=int(data.get("checkIntervalMinutes", 15)),
            webhook_url=data.get("webhookUrl") or "",
        )


@dataclass
class FolderMapping:
    """Pairing of a source location, a translations destination and a remote project."""

    id: str
    name: str
    source_location: str  # Workspace folder ID scanned for documents
    translations_location: str  # Workspace folder ID receiving translations
    organization_slug: str
    project_slug: str
    formats: set[DocumentFormat] = field(default_factory=lambda: {DocumentFormat.DOCX})
    triggers: set[Trigger] = field(default_factory=lambda: {Trigger.TRANSLATED})

    def __post_init__(self) -> None:
        self.formats = {DocumentFormat(f) for f in self.formats}
        self.triggers = {Trigger(t) for t in self.triggers}
        if not self.id:
            raise ValueError("Folder mapping requires an id")
        if not self.formats:
            raise ValueError(f"Folder mapping '{self.name}' must enable at least one format")
        if not self.triggers:
            raise ValueError(f"Folder mapping '{self.name}' must enable at least one trigger")

    @property
    def project_id(self) -> str:
        """Compound project id on the translation platform."""
        return f"o:{self.organization_slug}:p:{self.project_slug}"

    def resource_id(self, resource: str) -> str:
        """Expand a bare resource slug into the compound resource id."""
        resource = resource.strip()
        if resource.startswith("o:"):
            return resource
        return f"{self.project_id}:r:{resource}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "sourceLocation": self.source_location,
            "translationsLocation": self.translations_location,
            "organizationSlug": self.organization_slug,
            "projectSlug": self.project_slug,
            "formats": sorted(f.value for f in self.formats),
            "triggers": sorted(t.value for t in self.triggers),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FolderMapping":
        """Create from dictionary.

        Raises:
            ValueError: If formats or triggers are empty or unknown
        """
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            source_location=data.get("sourceLocation", ""),
            translations_location=data.get("translationsLocation", ""),
            organization_slug=data.get("organizationSlug", ""),
            project_slug=data.get("projectSlug", ""),
            formats=set(data.get("formats") or []),
            triggers=set(data.get("triggers") or []),
        )


@dataclass
class FileMapping:
    """Tracked association between a discovered document and its remote resource."""

    file_id: str
    file_name: str
    folder_id: str  # FolderMapping.id
    resource_id: str = ""  # Empty until mapped by the owner
    last_modified: str = ""
    mime_type: str = ""
    size: int = 0
    url: str = ""
    date_added: str = field(default_factory=utc_now)
    date_mapped: str | None = None

    @property
    def is_pending(self) -> bool:
        """True until a resource has been assigned."""
        return not self.resource_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "folderId": self.folder_id,
            "resourceId": self.resource_id,
            "lastModifiedTimestamp": self.last_modified,
            "mimeType": self.mime_type,
            "size": self.size,
            "url": self.url,
            "dateAdded": self.date_added,
            "dateMapped": self.date_mapped,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileMapping":
        """Create from dictionary."""
        return cls(
            file_id=data["fileId"],
            file_name=data.get("fileName", ""),
            folder_id=str(data.get("folderId", "")),
            resource_id=data.get("resourceId") or "",
            last_modified=data.get("lastModifiedTimestamp", ""),
            mime_type=data.get("mimeType", ""),
            size=int(data.get("size") or 0),
            url=data.get("url", ""),
            date_added=data.get("dateAdded", ""),
            date_mapped=data.get("dateMapped"),
        )


@dataclass
class SyncConfig:
    """The single persisted configuration blob."""

    settings: Settings = field(default_factory=Settings)
    folders: list[FolderMapping] = field(default_factory=list)
    file_mappings: list[FileMapping] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "settings": self.settings.to_dict(),
            "folders": [f.to_dict() for f in self.folders],
            "fileMappings": [m.to_dict() for m in self.file_mappings],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        """Create from dictionary."""
        return cls(
            settings=Settings.from_dict(data.get("settings") or {}),
            folders=[FolderMapping.from_dict(f) for f in data.get("folders") or []],
            file_mappings=[FileMapping.from_dict(m) for m in data.get("fileMappings") or []],
        )

    def get_folder(self, folder_id: str) -> FolderMapping | None:
        """Get folder mapping by id."""
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def add_folder(self, folder: FolderMapping) -> None:
        """Add a folder mapping, replacing any with the same id."""
        self.folders = [f for f in self.folders if f.id != folder.id]
        self.folders.append(folder)

    def remove_folder(self, folder_id: str) -> bool:
        """Remove a folder mapping. File mappings are left in place."""
        original_len = len(self.folders)
        self.folders = [f for f in self.folders if f.id != folder_id]
        return len(self.folders) < original_len

    def mappings_for_folder(self, folder_id: str) -> list[FileMapping]:
        """File mappings discovered in the given folder."""
        return [m for m in self.file_mappings if m.folder_id == folder_id]

    def get_file_mapping(self, file_id: str, folder_id: str | None = None) -> FileMapping | None:
        """Get a file mapping by file id, optionally scoped to one folder."""
        for mapping in self.file_mappings:
            if mapping.file_id == file_id and (folder_id is None or mapping.folder_id == folder_id):
                return mapping
        return None

    def get_pending_mapping(self, file_id: str, folder_id: str | None = None) -> FileMapping | None:
        """First mapping of a document still awaiting a resource, optionally scoped to one folder."""
        for mapping in self.file_mappings:
            if mapping.file_id == file_id and mapping.is_pending and folder_id in (None, mapping.folder_id):
                return mapping
        return None

    def find_by_resource(self, resource_id: str) -> FileMapping | None:
        """First file mapping whose resource id matches the given one."""
        for mapping in self.file_mappings:
            if resource_ids_match(mapping.resource_id, resource_id):
                return mapping
        return None

    def is_orphaned(self, mapping: FileMapping) -> bool:
        """True when the mapping's folder no longer exists."""
        return self.get_folder(mapping.folder_id) is None
