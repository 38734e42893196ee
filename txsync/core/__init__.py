"""Core sync functionality."""

from .activity import ActivityLog
from .client import TransifexClient
from .detector import ChangeDetector, ChangeSet, DetectedFile
from .errors import ExportError, TransifexAPIError, WorkspaceError
from .orchestrator import OperationResult, SyncOrchestrator
from .polling import JobState, JobStatus, PollOutcome, PollPolicy, poll_job
from .service import SyncService
from .store import ConfigStore, JsonFileBackend, MemoryBackend
from .webhook import EventType, WebhookEvent, WebhookRequest, WebhookRouter
from .workspace import DiscoveredFile, DriveWorkspace

__all__ = [
    "ActivityLog",
    "ChangeDetector",
    "ChangeSet",
    "ConfigStore",
    "DetectedFile",
    "DiscoveredFile",
    "DriveWorkspace",
    "EventType",
    "ExportError",
    "JobState",
    "JobStatus",
    "JsonFileBackend",
    "MemoryBackend",
    "OperationResult",
    "PollOutcome",
    "PollPolicy",
    "SyncOrchestrator",
    "SyncService",
    "TransifexAPIError",
    "TransifexClient",
    "WebhookEvent",
    "WebhookRequest",
    "WebhookRouter",
    "WorkspaceError",
    "poll_job",
]
