"""Shared fixtures and test doubles."""

from typing import Iterable

import pytest

from txsync.core.activity import ActivityLog
from txsync.core.polling import JobState, JobStatus, PollPolicy
from txsync.core.store import ConfigStore, MemoryBackend
from txsync.core.workspace import DiscoveredFile, check_archive_signature
from txsync.models.config import (
    GOOGLE_DOC_MIME,
    DocumentFormat,
    FileMapping,
    FolderMapping,
    SyncConfig,
    Trigger,
)

ARCHIVE = b"PK\x03\x04fake-archive"


class FakeWorkspace:
    """In-memory document workspace."""

    def __init__(self) -> None:
        self.folders: dict[str, list[DiscoveredFile]] = {}
        self.failing_folders: set[str] = set()
        self.exports: dict[str, bytes] = {}
        self.imported: list[dict] = []

    def add(self, folder_id: str, file: DiscoveredFile, content: bytes = ARCHIVE) -> None:
        self.folders.setdefault(folder_id, []).append(file)
        self.exports[file.file_id] = content

    def list_documents(self, folder_id: str, formats: Iterable[DocumentFormat]) -> list[DiscoveredFile]:
        if folder_id in self.failing_folders:
            raise RuntimeError(f"folder {folder_id} is inaccessible")
        wanted = {fmt.native_mime_type for fmt in formats}
        return [f for f in self.folders.get(folder_id, []) if f.mime_type in wanted]

    def get_document(self, file_id: str) -> DiscoveredFile:
        for files in self.folders.values():
            for f in files:
                if f.file_id == file_id:
                    return f
        raise KeyError(file_id)

    def export_document(self, file_id: str, fmt: DocumentFormat) -> bytes:
        content = self.exports[file_id]
        check_archive_signature(content)
        return content

    def import_document(self, name: str, content: bytes, fmt: DocumentFormat, folder_id: str) -> str:
        self.imported.append({"name": name, "content": content, "format": fmt, "folder_id": folder_id})
        return f"imported-{len(self.imported)}"


class FakeClient:
    """Transifex client double with scripted job states."""

    def __init__(
        self,
        upload_states: list[JobState] | None = None,
        download_states: list[JobState] | None = None,
        content: bytes = ARCHIVE,
    ) -> None:
        self.upload_states = list(upload_states or [JobState(JobStatus.SUCCEEDED, "succeeded")])
        self.download_states = list(
            download_states or [JobState(JobStatus.SUCCEEDED, "303", location="https://files.example/t")]
        )
        self.content = content
        self.uploads: list[tuple[str, bytes]] = []
        self.downloads: list[tuple[str, str]] = []
        self.upload_polls = 0
        self.download_polls = 0
        self.fetched: list[str] = []

    def create_upload(self, resource_id: str, content: bytes) -> str:
        self.uploads.append((resource_id, content))
        return "upload-job"

    def get_upload_status(self, job_id: str) -> JobState:
        self.upload_polls += 1
        if len(self.upload_states) > 1:
            return self.upload_states.pop(0)
        return self.upload_states[0]

    def create_download(self, resource_id: str, language_code: str) -> str:
        self.downloads.append((resource_id, language_code))
        return "download-job"

    def get_download_status(self, job_id: str) -> JobState:
        self.download_polls += 1
        state = self.download_states.pop(0) if len(self.download_states) > 1 else self.download_states[0]
        if isinstance(state, Exception):
            raise state
        return state

    def fetch_content(self, url: str) -> bytes:
        self.fetched.append(url)
        return self.content


def make_folder(folder_id: str = "f1", triggers: set[Trigger] | None = None, **kwargs) -> FolderMapping:
    return FolderMapping(
        id=folder_id,
        name=kwargs.pop("name", f"Folder {folder_id}"),
        source_location=kwargs.pop("source_location", f"src-{folder_id}"),
        translations_location=kwargs.pop("translations_location", f"tr-{folder_id}"),
        organization_slug=kwargs.pop("organization_slug", "acme"),
        project_slug=kwargs.pop("project_slug", "docs"),
        formats=kwargs.pop("formats", {DocumentFormat.DOCX}),
        triggers=triggers or {Trigger.TRANSLATED},
    )


def make_file(file_id: str = "doc1", name: str = "Guide.docx", modified: str = "2026-10-01T10:00:00Z") -> DiscoveredFile:
    return DiscoveredFile(
        file_id=file_id,
        file_name=name,
        mime_type=GOOGLE_DOC_MIME,
        last_modified=modified,
        size=1024,
        url=f"https://docs.example/{file_id}",
    )


def make_mapping(
    file_id: str = "doc1",
    folder_id: str = "f1",
    resource_id: str = "",
    name: str = "Guide.docx",
    modified: str = "2026-10-01T10:00:00Z",
) -> FileMapping:
    return FileMapping(
        file_id=file_id,
        file_name=name,
        folder_id=folder_id,
        resource_id=resource_id,
        last_modified=modified,
        mime_type=GOOGLE_DOC_MIME,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials from the developer's environment out of tests."""
    for name in ("TX_API_TOKEN", "TX_WEBHOOK_SECRET", "TX_API_URL", "DRIVE_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> ConfigStore:
    return ConfigStore(backend)


@pytest.fixture
def activity(backend: MemoryBackend) -> ActivityLog:
    return ActivityLog(backend)


@pytest.fixture
def workspace() -> FakeWorkspace:
    return FakeWorkspace()


@pytest.fixture
def fast_policy() -> PollPolicy:
    return PollPolicy(interval=0, max_attempts=10)


@pytest.fixture
def seeded_config(store: ConfigStore) -> SyncConfig:
    """One folder with one mapped document."""
    config = SyncConfig(
        folders=[make_folder("f1")],
        file_mappings=[make_mapping(resource_id="o:acme:p:docs:r:guide")],
    )
    store.write(config)
    return config
