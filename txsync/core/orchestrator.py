"""Upload and download workflows between the workspace and Transifex."""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models.config import DocumentFormat, FileMapping
from .activity import ActivityLog
from .client import TransifexClient
from .errors import TransifexAPIError, WorkspaceError
from .polling import PollOutcome, PollPolicy, PollResult, poll_job
from .store import ConfigStore
from .workspace import DocumentWorkspace

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """Result of an owner-visible operation."""

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, **self.data}


class Notifier(Protocol):
    """Delivers completion notices to the owner."""

    def notify(self, subject: str, message: str) -> None: ...


class LogNotifier:
    """Notifier that only writes to the Python log."""

    def notify(self, subject: str, message: str) -> None:
        logger.info("%s: %s", subject, message)


def normalize_language(language_code: str) -> str:
    """Strip the ``l:`` prefix from a platform language id."""
    return language_code[2:] if language_code.startswith("l:") else language_code


def translated_file_name(file_name: str, language_code: str) -> str:
    """Name for a translated copy: ``{base}_{LANG}`` plus the original extension.

    >>> translated_file_name("Guide.docx", "es")
    'Guide_ES.docx'
    """
    base, ext = os.path.splitext(file_name)
    return f"{base}_{normalize_language(language_code).upper()}{ext}"


class SyncOrchestrator:
    """Runs the asynchronous upload and download workflows.

    Each workflow polls its remote job under a PollPolicy and never raises;
    failures are logged to the activity log and reported in the result.
    """

    def __init__(
        self,
        client: TransifexClient,
        workspace: DocumentWorkspace,
        store: ConfigStore,
        activity: ActivityLog,
        policy: PollPolicy | None = None,
        notifier: Notifier | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.client = client
        self.workspace = workspace
        self.store = store
        self.activity = activity
        self.policy = policy or PollPolicy()
        self.notifier = notifier or LogNotifier()
        self.cancel = cancel or threading.Event()

    def _poll(self, check: Any, label: str) -> PollResult:
        return poll_job(check, policy=self.policy, cancel=self.cancel, label=label)

    def _fail(self, message: str) -> OperationResult:
        self.activity.append(message)
        return OperationResult(success=False, message=message)

    # =========================================================================
    # Upload
    # =========================================================================

    def upload(self, file_id: str, resource_id: str, folder_id: str | None = None) -> OperationResult:
        """Push a document's current content to its resource.

        Args:
            file_id: Workspace document ID
            resource_id: Compound resource id to update
            folder_id: Folder mapping whose file mapping is updated on success

        Returns:
            OperationResult; success only when the upload job succeeded
        """
        try:
            return self._upload(file_id, resource_id, folder_id)
        except (TransifexAPIError, WorkspaceError) as e:
            logger.debug("Upload of %s failed", file_id, exc_info=True)
            return self._fail(f"Upload failed for file {file_id}: {e}")
        except Exception as e:
            logger.exception("Unexpected error uploading %s", file_id)
            return self._fail(f"Upload failed for file {file_id}: {e}")

    def _upload(self, file_id: str, resource_id: str, folder_id: str | None) -> OperationResult:
        document = self.workspace.get_document(file_id)
        fmt = DocumentFormat.from_mime_type(document.mime_type)
        if fmt is None:
            return self._fail(f"Cannot upload {document.file_name}: unsupported type {document.mime_type}")

        content = self.workspace.export_document(file_id, fmt)
        job_id = self.client.create_upload(resource_id, content)
        logger.info("Started upload job %s for %s", job_id, document.file_name)

        result = self._poll(lambda: self.client.get_upload_status(job_id), f"upload {job_id}")

        if result.outcome is PollOutcome.SUCCEEDED:
            self._mark_uploaded(file_id, folder_id, document.last_modified)
            message = f"Uploaded {document.file_name} to {resource_id}"
            self.activity.append(message)
            return OperationResult(success=True, message=message, data={"jobId": job_id})

        return self._fail(self._describe_failure("Upload", document.file_name, result))

    def _mark_uploaded(self, file_id: str, folder_id: str | None, last_modified: str) -> None:
        config = self.store.read()
        mapping = config.get_file_mapping(file_id, folder_id)
        if mapping is None:
            logger.warning("Uploaded file %s has no mapping to update", file_id)
            return
        mapping.last_modified = last_modified
        self.store.write(config)

    # =========================================================================
    # Download
    # =========================================================================

    def download(self, resource_id: str, language_code: str) -> OperationResult:
        """Fetch a translation and import it into the folder's translations location.

        Args:
            resource_id: Resource id as named by the platform
            language_code: Language code (``es``, ``pt_BR`` or ``l:es``)

        Returns:
            OperationResult; success only when the translated document was created
        """
        try:
            return self._download(resource_id, language_code)
        except (TransifexAPIError, WorkspaceError) as e:
            logger.debug("Download of %s/%s failed", resource_id, language_code, exc_info=True)
            return self._fail(f"Download failed for {resource_id} ({language_code}): {e}")
        except Exception as e:
            logger.exception("Unexpected error downloading %s/%s", resource_id, language_code)
            return self._fail(f"Download failed for {resource_id} ({language_code}): {e}")

    def _download(self, resource_id: str, language_code: str) -> OperationResult:
        job_id = self.client.create_download(resource_id, language_code)
        logger.info("Started download job %s for %s (%s)", job_id, resource_id, language_code)

        result = self._poll(lambda: self.client.get_download_status(job_id), f"download {job_id}")
        if result.outcome is not PollOutcome.SUCCEEDED:
            return self._fail(self._describe_failure("Download", resource_id, result))

        location = result.state.location if result.state is not None else None
        if not location:
            return self._fail(f"Download of {resource_id} finished without a file location")
        content = self.client.fetch_content(location)

        config = self.store.read()
        mapping = config.find_by_resource(resource_id)
        if mapping is None:
            return self._fail(f"No file mapping for resource {resource_id}; translation discarded")

        folder = config.get_folder(mapping.folder_id)
        if folder is None:
            return self._fail(
                f"Folder {mapping.folder_id} for {mapping.file_name} no longer exists; translation discarded"
            )

        fmt = self._format_for(mapping)
        name = translated_file_name(mapping.file_name, language_code)
        new_id = self.workspace.import_document(name, content, fmt, folder.translations_location)

        message = f"Imported {name} into {folder.name}"
        self.notifier.notify("Translation imported", message)
        self.activity.append(message)
        return OperationResult(success=True, message=message, data={"fileId": new_id, "fileName": name})

    @staticmethod
    def _format_for(mapping: FileMapping) -> DocumentFormat:
        return DocumentFormat.from_mime_type(mapping.mime_type) or DocumentFormat.DOCX

    @staticmethod
    def _describe_failure(operation: str, subject: str, result: PollResult) -> str:
        if result.outcome is PollOutcome.TIMED_OUT:
            return f"{operation} of {subject} timed out after {result.attempts} checks"
        if result.outcome is PollOutcome.CANCELLED:
            return f"{operation} of {subject} was cancelled"
        if result.outcome is PollOutcome.UNEXPECTED and result.state is not None:
            return f"{operation} of {subject} stopped on unexpected status '{result.state.raw_status}'"
        if result.error is not None:
            return f"{operation} of {subject} failed: {result.error}"
        details = result.state.details if result.state is not None else None
        return f"{operation} of {subject} failed: {details or 'no details'}"

