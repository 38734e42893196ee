"""Change detection over configured source locations."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from ..models.config import FileMapping, FolderMapping, SyncConfig, utc_now
from .activity import ActivityLog
from .orchestrator import OperationResult, SyncOrchestrator
from .store import ConfigStore
from .workspace import DiscoveredFile, DocumentWorkspace

logger = logging.getLogger(__name__)


@dataclass
class DetectedFile:
    """A discovered document and the folder mapping it was found under."""

    folder_id: str
    file: DiscoveredFile
    resource_id: str = ""  # Carried forward from an existing mapping


@dataclass
class ChangeSet:
    """New and updated documents found by one scan."""

    new_files: list[DetectedFile] = field(default_factory=list)
    updated_files: list[DetectedFile] = field(default_factory=list)
    failed_folders: list[str] = field(default_factory=list)

    def extend(self, other: "ChangeSet") -> None:
        self.new_files.extend(other.new_files)
        self.updated_files.extend(other.updated_files)
        self.failed_folders.extend(other.failed_folders)


class ChangeDetector:
    """Diffs workspace listings against known file mappings."""

    def __init__(
        self,
        workspace: DocumentWorkspace,
        store: ConfigStore,
        activity: ActivityLog,
    ) -> None:
        self.workspace = workspace
        self.store = store
        self.activity = activity

    def scan(self, folder: FolderMapping) -> list[DiscoveredFile]:
        """List documents in the folder's source location with an enabled format."""
        return self.workspace.list_documents(folder.source_location, folder.formats)

    def detect_folder(self, config: SyncConfig, folder: FolderMapping) -> ChangeSet:
        """Classify one folder's documents as new or updated.

        A scan failure is logged and reported in ``failed_folders``.
        """
        changes = ChangeSet()
        try:
            discovered = self.scan(folder)
        except Exception as e:
            logger.debug("Scan of %s failed", folder.name, exc_info=True)
            self.activity.append(f"Failed to scan folder {folder.name}: {e}")
            changes.failed_folders.append(folder.id)
            return changes

        known = {m.file_id: m for m in config.mappings_for_folder(folder.id)}
        for file in discovered:
            mapping = known.get(file.file_id)
            if mapping is None:
                changes.new_files.append(DetectedFile(folder.id, file))
            elif mapping.last_modified != file.last_modified:
                changes.updated_files.append(DetectedFile(folder.id, file, mapping.resource_id))

        logger.info(
            "Folder %s: %d documents, %d new, %d updated",
            folder.name, len(discovered), len(changes.new_files), len(changes.updated_files),
        )
        return changes

    def detect_changes(self, config: SyncConfig) -> ChangeSet:
        """Scan every folder mapping; one folder failing does not stop the rest."""
        changes = ChangeSet()
        for folder in config.folders:
            changes.extend(self.detect_folder(config, folder))
        return changes

    def process_new_files(self, new_files: list[DetectedFile]) -> list[FileMapping]:
        """Create pending file mappings for new documents, persisted as one batch.

        Returns:
            The mappings that were created
        """
        if not new_files:
            return []

        config = self.store.read()
        created: list[FileMapping] = []
        for detected in new_files:
            if config.get_file_mapping(detected.file.file_id, detected.folder_id) is not None:
                continue
            mapping = FileMapping(
                file_id=detected.file.file_id,
                file_name=detected.file.file_name,
                folder_id=detected.folder_id,
                last_modified=detected.file.last_modified,
                mime_type=detected.file.mime_type,
                size=detected.file.size,
                url=detected.file.url,
                date_added=utc_now(),
            )
            config.file_mappings.append(mapping)
            created.append(mapping)

        if created:
            self.store.write(config)
            names = ", ".join(m.file_name for m in created)
            self.activity.append(f"Found {len(created)} new file(s) awaiting resource mapping: {names}")
        return created

    def process_updated_files(
        self,
        updated_files: list[DetectedFile],
        orchestrator_factory: Callable[[], SyncOrchestrator],
    ) -> list[OperationResult]:
        """Upload every updated document that has a resource.

        Documents still pending a resource are skipped and logged. The
        orchestrator is only built once an upload is actually due.
        """
        results: list[OperationResult] = []
        orchestrator: SyncOrchestrator | None = None
        for detected in updated_files:
            if not detected.resource_id:
                self.activity.append(f"Skipped update of {detected.file.file_name}: no resource mapped yet")
                continue
            if orchestrator is None:
                orchestrator = orchestrator_factory()
            results.append(orchestrator.upload(detected.file.file_id, detected.resource_id, detected.folder_id))
        return results

    def run(
        self,
        orchestrator_factory: Callable[[], SyncOrchestrator],
        config: SyncConfig | None = None,
    ) -> ChangeSet:
        """One full check: detect, record new files, upload updated ones."""
        config = config or self.store.read()
        if not config.folders:
            logger.info("No folder mappings configured")
            return ChangeSet()

        changes = self.detect_changes(config)
        self.process_new_files(changes.new_files)
        self.process_updated_files(changes.updated_files, orchestrator_factory)
        return changes
