"""Owner-facing operations and the scheduled and webhook entry points."""

import logging
import os
import threading
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..models.config import MASKED_SECRET, FolderMapping, Settings, SyncConfig, utc_now
from .activity import ActivityLog
from .client import TransifexClient
from .detector import ChangeDetector, ChangeSet
from .errors import TransifexAPIError
from .orchestrator import Notifier, OperationResult, SyncOrchestrator
from .polling import PollPolicy
from .store import ConfigStore, JsonFileBackend, KeyValueBackend
from .webhook import WebhookRequest, WebhookResponse, WebhookRouter
from .workspace import DocumentWorkspace, DriveWorkspace

logger = logging.getLogger(__name__)

DEFAULT_HOME = "~/.txsync"
STORE_FILENAME = "store.json"


def default_home() -> Path:
    """Directory holding the store file (TXSYNC_HOME overrides)."""
    load_dotenv()
    return Path(os.getenv("TXSYNC_HOME", DEFAULT_HOME)).expanduser()


def mask_config(config: SyncConfig) -> dict[str, Any]:
    """Config as a dictionary with secrets replaced by the mask placeholder."""
    data = config.to_dict()
    settings = data["settings"]
    if settings.get("apiToken"):
        settings["apiToken"] = MASKED_SECRET
    if settings.get("webhookSecret"):
        settings["webhookSecret"] = MASKED_SECRET
    return data


def status_counts(config: SyncConfig) -> dict[str, int]:
    """Aggregate file-status counts."""
    counts = {"total": 0, "pending": 0, "mapped": 0, "orphaned": 0}
    for mapping in config.file_mappings:
        counts["total"] += 1
        if config.is_orphaned(mapping):
            counts["orphaned"] += 1
        elif mapping.is_pending:
            counts["pending"] += 1
        else:
            counts["mapped"] += 1
    return counts


class SyncService:
    """Wires the store, activity log, clients and workflows together.

    Every invocation reads configuration fresh from the store, so a service
    can be shared across timer ticks and webhook deliveries.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        workspace: DocumentWorkspace | None = None,
        client: TransifexClient | None = None,
        policy: PollPolicy | None = None,
        notifier: Notifier | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            backend: Key/value storage for config and activity log
            workspace: Document workspace (DriveWorkspace from env if not provided)
            client: Transifex client (built from stored settings if not provided)
            policy: Poll interval and attempt ceiling
            notifier: Completion notifier
            cancel: Event that aborts in-flight poll loops
        """
        self.store = ConfigStore(backend)
        self.activity = ActivityLog(backend)
        self._workspace = workspace
        self._client = client
        self.policy = policy or PollPolicy()
        self.notifier = notifier
        self.cancel = cancel or threading.Event()

    @classmethod
    def from_home(cls, home: Path | None = None, **kwargs: Any) -> "SyncService":
        """Create a service persisting to ``{home}/store.json``."""
        home = home or default_home()
        return cls(JsonFileBackend(home / STORE_FILENAME), **kwargs)

    @property
    def workspace(self) -> DocumentWorkspace:
        """Get or create the workspace client."""
        if self._workspace is None:
            self._workspace = DriveWorkspace()
        return self._workspace

    def client(self, config: SyncConfig | None = None) -> TransifexClient:
        """Get the injected client or build one from the stored API token.

        Raises:
            ValueError: If no API token is configured
        """
        if self._client is not None:
            return self._client
        config = config or self.store.read()
        return TransifexClient(api_token=config.settings.effective_api_token() or None)

    def orchestrator(self) -> SyncOrchestrator:
        return SyncOrchestrator(
            client=self.client(),
            workspace=self.workspace,
            store=self.store,
            activity=self.activity,
            policy=self.policy,
            notifier=self.notifier,
            cancel=self.cancel,
        )

    def detector(self) -> ChangeDetector:
        return ChangeDetector(self.workspace, self.store, self.activity)

    def router(self) -> WebhookRouter:
        return WebhookRouter(self.store, self.activity, self.orchestrator)

    def _persist(self, config: SyncConfig) -> OperationResult | None:
        """Write the config, returning a failure result instead of raising."""
        try:
            self.store.write(config)
        except OSError as e:
            logger.exception("Failed to save configuration")
            return OperationResult(success=False, message=f"Could not save configuration: {e}")
        return None

    # =========================================================================
    # Entry points (timer and webhook)
    # =========================================================================

    def run_scheduled_check(self) -> ChangeSet | None:
        """One timer tick: scan every folder and upload changed documents.

        Never raises; a failure is logged and None is returned.
        """
        try:
            return self.detector().run(self.orchestrator)
        except Exception as e:
            logger.exception("Scheduled check failed")
            self.activity.append(f"Scheduled check failed: {e}")
            return None

    def handle_webhook(self, request: WebhookRequest) -> WebhookResponse:
        """Process one webhook delivery. Never raises."""
        return self.router().handle(request)

    def watch(self, interval_minutes: int | None = None) -> None:
        """Run scheduled checks until stop() is called.

        Args:
            interval_minutes: Minutes between checks (default: from settings)
        """
        while not self.cancel.is_set():
            self.run_scheduled_check()
            minutes = interval_minutes or self.store.read().settings.check_interval_minutes
            logger.info("Next check in %d minute(s)", minutes)
            if self.cancel.wait(minutes * 60):
                break

    def stop(self) -> None:
        """Stop the watch loop and abort in-flight poll loops."""
        self.cancel.set()

    # =========================================================================
    # Owner operations
    # =========================================================================

    def get_config(self) -> dict[str, Any]:
        """Full configuration with secrets masked."""
        return mask_config(self.store.read())

    def save_config(self, data: dict[str, Any]) -> OperationResult:
        """Save settings and folder mappings.

        A secret resubmitted as the mask placeholder keeps its stored value.
        Sections missing from ``data`` are left unchanged; file mappings are
        never replaced through this operation.

        Args:
            data: Config dictionary in the shape returned by get_config
        """
        current = self.store.read()

        try:
            settings = current.settings
            if "settings" in data:
                submitted = dict(data.get("settings") or {})
                if submitted.get("apiToken") == MASKED_SECRET:
                    submitted["apiToken"] = current.settings.api_token
                if submitted.get("webhookSecret") == MASKED_SECRET:
                    submitted["webhookSecret"] = current.settings.webhook_secret
                settings = Settings.from_dict(submitted)

            folders = current.folders
            if "folders" in data:
                folders = [FolderMapping.from_dict(f) for f in data.get("folders") or []]
        except (KeyError, TypeError, ValueError) as e:
            return OperationResult(success=False, message=f"Invalid configuration: {e}")

        if not settings.effective_api_token():
            return OperationResult(success=False, message="API token is required")
        if settings.check_interval_minutes < 1:
            return OperationResult(success=False, message="Check interval must be at least one minute")
        folder_ids = [f.id for f in folders]
        if len(folder_ids) != len(set(folder_ids)):
            return OperationResult(success=False, message="Folder mapping ids must be unique")

        current.settings = settings
        current.folders = folders
        failure = self._persist(current)
        if failure is not None:
            return failure
        self.activity.append("Configuration saved")
        return OperationResult(success=True, message="Configuration saved")

    def test_connection(self, api_token: str | None = None) -> OperationResult:
        """Check that an API token (or the stored one) is accepted."""
        token = api_token if api_token and api_token != MASKED_SECRET else None
        try:
            client = TransifexClient(api_token=token) if token else self.client()
        except ValueError:
            return OperationResult(success=False, message="API token is required")

        try:
            client.verify_connection()
        except TransifexAPIError as e:
            if e.is_auth_error:
                return OperationResult(success=False, message="Invalid API token")
            return OperationResult(success=False, message=f"Connection failed: {e}")
        return OperationResult(success=True, message="Connected to Transifex")

    def trigger_upload(self, file_id: str, folder_id: str | None = None) -> OperationResult:
        """Upload one mapped document now.

        Args:
            file_id: Workspace document ID
            folder_id: Folder mapping the document was found under, when it
                is listed by more than one
        """
        config = self.store.read()
        mapping = config.get_file_mapping(file_id, folder_id)
        if mapping is None:
            return OperationResult(success=False, message=f"No file mapping for {file_id}")
        if mapping.is_pending:
            return OperationResult(success=False, message=f"{mapping.file_name} has no resource mapped")
        if config.is_orphaned(mapping):
            return OperationResult(success=False, message=f"Folder for {mapping.file_name} no longer exists")

        try:
            orchestrator = self.orchestrator()
        except ValueError as e:
            return OperationResult(success=False, message=str(e))
        return orchestrator.upload(file_id, mapping.resource_id, mapping.folder_id)

    def trigger_download(self, resource_id: str, language_code: str) -> OperationResult:
        """Download and import one translation now."""
        if not resource_id or not language_code:
            return OperationResult(success=False, message="Resource id and language are required")
        try:
            orchestrator = self.orchestrator()
        except ValueError as e:
            return OperationResult(success=False, message=str(e))
        return orchestrator.download(resource_id, language_code)

    def map_resource(self, file_id: str, resource_id: str, folder_id: str | None = None) -> OperationResult:
        """Assign a resource to a pending file mapping.

        A bare resource slug is expanded with the folder's organization and
        project. Nothing is written when the mapping is missing or already
        mapped. Without ``folder_id`` the first pending mapping of the
        document is used.
        """
        resource_id = (resource_id or "").strip()
        if not resource_id:
            return OperationResult(success=False, message="Resource id is required")

        config = self.store.read()
        mapping = config.get_pending_mapping(file_id, folder_id)
        if mapping is None:
            return OperationResult(success=False, message=f"No pending file mapping for {file_id}")

        folder = config.get_folder(mapping.folder_id)
        mapping.resource_id = folder.resource_id(resource_id) if folder else resource_id
        mapping.date_mapped = utc_now()
        failure = self._persist(config)
        if failure is not None:
            return failure

        message = f"Mapped {mapping.file_name} to {mapping.resource_id}"
        self.activity.append(message)
        return OperationResult(success=True, message=message, data={"resourceId": mapping.resource_id})

    def rescan_folder(self, folder_id: str) -> OperationResult:
        """Scan one folder now and process what it finds."""
        config = self.store.read()
        folder = config.get_folder(folder_id)
        if folder is None:
            return OperationResult(success=False, message=f"No folder mapping {folder_id}")

        detector = self.detector()
        changes = detector.detect_folder(config, folder)
        if changes.failed_folders:
            return OperationResult(success=False, message=f"Failed to scan folder {folder.name}")

        created = detector.process_new_files(changes.new_files)
        try:
            uploads = detector.process_updated_files(changes.updated_files, self.orchestrator)
        except ValueError as e:
            return OperationResult(success=False, message=str(e))

        message = f"Rescanned {folder.name}: {len(created)} new, {len(changes.updated_files)} updated"
        self.activity.append(message)
        return OperationResult(
            success=True,
            message=message,
            data={
                "newFiles": len(created),
                "updatedFiles": len(changes.updated_files),
                "uploaded": sum(1 for r in uploads if r.success),
            },
        )

    def add_folder(self, folder: FolderMapping) -> OperationResult:
        """Add or replace a folder mapping."""
        config = self.store.read()
        config.add_folder(folder)
        failure = self._persist(config)
        if failure is not None:
            return failure
        self.activity.append(f"Folder mapping {folder.name} saved")
        return OperationResult(success=True, message=f"Folder mapping {folder.name} saved")

    def remove_folder(self, folder_id: str) -> OperationResult:
        """Remove a folder mapping. Its file mappings remain, orphaned."""
        config = self.store.read()
        folder = config.get_folder(folder_id)
        if folder is None or not config.remove_folder(folder_id):
            return OperationResult(success=False, message=f"No folder mapping {folder_id}")
        failure = self._persist(config)
        if failure is not None:
            return failure

        orphaned = len(config.mappings_for_folder(folder_id))
        message = f"Folder mapping {folder.name} removed"
        if orphaned:
            message += f"; {orphaned} file mapping(s) left orphaned"
        self.activity.append(message)
        return OperationResult(success=True, message=message, data={"orphaned": orphaned})

    def list_languages(self, folder_id: str) -> OperationResult:
        """Languages configured on a folder's project."""
        config = self.store.read()
        folder = config.get_folder(folder_id)
        if folder is None:
            return OperationResult(success=False, message=f"No folder mapping {folder_id}")
        try:
            languages = self.client(config).get_project_languages(folder.project_id)
        except ValueError as e:
            return OperationResult(success=False, message=str(e))
        except TransifexAPIError as e:
            return OperationResult(success=False, message=f"Could not list languages: {e}")
        codes = [lang["code"] for lang in languages]
        return OperationResult(success=True, message=", ".join(codes), data={"languages": codes})

    def clear_activity_log(self) -> OperationResult:
        self.activity.clear()
        return OperationResult(success=True, message="Activity log cleared")

    def get_status_counts(self) -> dict[str, int]:
        return status_counts(self.store.read())
