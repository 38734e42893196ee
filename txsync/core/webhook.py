"""Routing of translation lifecycle webhooks to downloads."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..models.config import Trigger
from .activity import ActivityLog
from .auth import verify_signature
from .orchestrator import OperationResult, SyncOrchestrator
from .store import ConfigStore

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Webhook events the platform sends."""

    TRANSLATION_COMPLETED = "translation_completed"
    REVIEW_COMPLETED = "review_completed"
    PROOFREAD_COMPLETED = "proofread_completed"
    TRANSLATION_COMPLETED_UPDATED = "translation_completed_updated"


EVENT_TRIGGERS: dict[EventType, Trigger] = {
    EventType.TRANSLATION_COMPLETED: Trigger.TRANSLATED,
    EventType.REVIEW_COMPLETED: Trigger.REVIEWED,
    EventType.PROOFREAD_COMPLETED: Trigger.PROOFREAD,
    EventType.TRANSLATION_COMPLETED_UPDATED: Trigger.UPDATED,
}


@dataclass
class WebhookEvent:
    """A parsed webhook payload."""

    event_type: EventType
    resource_id: str
    language: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def trigger(self) -> Trigger:
        return EVENT_TRIGGERS[self.event_type]

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "WebhookEvent":
        """Create from a decoded JSON body.

        Raises:
            ValueError: If the event name is unknown or a field is missing
        """
        event_type = EventType(payload.get("event", ""))
        resource_id = payload.get("resource") or ""
        language = payload.get("language") or ""
        if not resource_id or not language:
            raise ValueError("Webhook payload is missing resource or language")
        return cls(event_type=event_type, resource_id=resource_id, language=language, payload=payload)


@dataclass
class WebhookRequest:
    """An inbound webhook delivery."""

    body: bytes
    headers: dict[str, str] = field(default_factory=dict)
    method: str = "POST"


@dataclass
class WebhookResponse:
    """Reply sent back to the platform."""

    status: int
    message: str


class WebhookRouter:
    """Validates deliveries and triggers downloads for opted-in folders."""

    def __init__(
        self,
        store: ConfigStore,
        activity: ActivityLog,
        orchestrator_factory: Callable[[], SyncOrchestrator],
    ) -> None:
        """Initialize the router.

        Args:
            store: Configuration store
            activity: Activity log
            orchestrator_factory: Builds the orchestrator when a download is due
        """
        self.store = store
        self.activity = activity
        self.orchestrator_factory = orchestrator_factory
        self._handlers: dict[EventType, Callable[[WebhookEvent], OperationResult | None]] = {
            event_type: self._handle_completion for event_type in EventType
        }

    @staticmethod
    def verify(request: WebhookRequest, secret: str | None) -> bool:
        """Check a delivery's signature. Without a secret every delivery passes."""
        if not secret:
            return True
        return verify_signature(request.headers, request.body, secret, request.method)

    def route(self, event: WebhookEvent) -> OperationResult | None:
        """Dispatch an event to its handler.

        Returns:
            The download result, or None when nothing was triggered
        """
        return self._handlers[event.event_type](event)

    def _handle_completion(self, event: WebhookEvent) -> OperationResult | None:
        config = self.store.read()

        mapping = config.find_by_resource(event.resource_id)
        if mapping is None:
            self.activity.append(f"Webhook {event.event_type.value}: no file mapped to {event.resource_id}")
            return None

        folder = config.get_folder(mapping.folder_id)
        if folder is None:
            self.activity.append(
                f"Webhook {event.event_type.value}: folder for {mapping.file_name} no longer exists"
            )
            return None

        if event.trigger not in folder.triggers:
            self.activity.append(
                f"Webhook {event.event_type.value} for {mapping.file_name} ({event.language}) "
                f"ignored: folder {folder.name} does not download on '{event.trigger.value}'"
            )
            return None

        logger.info("Downloading %s (%s) after %s", mapping.file_name, event.language, event.event_type.value)
        return self.orchestrator_factory().download(event.resource_id, event.language)

    def handle(self, request: WebhookRequest) -> WebhookResponse:
        """Verify, parse and route one delivery. Never raises."""
        try:
            secret = self.store.read().settings.effective_webhook_secret()
            if not self.verify(request, secret):
                self.activity.append("Rejected webhook with an invalid signature")
                return WebhookResponse(401, "invalid signature")

            try:
                payload = json.loads(request.body or b"{}")
            except ValueError:
                self.activity.append("Rejected webhook with a malformed body")
                return WebhookResponse(400, "malformed body")
            if not isinstance(payload, dict):
                self.activity.append("Rejected webhook with a malformed body")
                return WebhookResponse(400, "malformed body")

            try:
                event = WebhookEvent.from_payload(payload)
            except ValueError as e:
                self.activity.append(f"Ignored webhook event '{payload.get('event', '')}': {e}")
                return WebhookResponse(200, "ignored")

            result = self.route(event)
            if result is None:
                return WebhookResponse(200, "no action")
            return WebhookResponse(200, result.message)
        except Exception as e:
            logger.exception("Webhook handling failed")
            self.activity.append(f"Webhook handling failed: {e}")
            return WebhookResponse(500, "internal error")
