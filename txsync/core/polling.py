"""Bounded polling of asynchronous remote jobs."""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .errors import TransifexAPIError

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    """Statuses an asynchronous job reports."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    @classmethod
    def parse(cls, value: str) -> "JobStatus | None":
        """Map a raw status string to a member, or None if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class JobState:
    """One poll response."""

    status: JobStatus | None  # None for a status string we do not know
    raw_status: str = ""
    details: Any = None
    location: str | None = None  # Set when a download is ready


class PollOutcome(str, Enum):
    """How a poll loop ended."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    UNEXPECTED = "unexpected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollPolicy:
    """Fixed delay between polls and the attempt ceiling."""

    interval: float = 15.0
    max_attempts: int = 10


@dataclass
class PollResult:
    """Final result of a poll loop."""

    outcome: PollOutcome
    attempts: int
    state: JobState | None = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is PollOutcome.SUCCEEDED


def poll_job(
    check: Callable[[], JobState],
    policy: PollPolicy | None = None,
    cancel: threading.Event | None = None,
    label: str = "job",
) -> PollResult:
    """Poll a job until it settles, the attempt ceiling is hit, or it is cancelled.

    Pending and processing states are re-polled after ``policy.interval``
    seconds. Transient API errors (5xx, transport failures) use up an attempt
    and are retried; any other API error ends the loop as failed. An unknown
    status string ends the loop as unexpected.

    Args:
        check: Callable returning the job's current state
        policy: Interval and attempt ceiling (defaults to 15s x 10)
        cancel: Event that aborts the wait between polls when set
        label: Job description used in log messages

    Returns:
        PollResult; this function does not raise for job outcomes
    """
    policy = policy or PollPolicy()
    cancel = cancel or threading.Event()
    state: JobState | None = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            state = check()
        except TransifexAPIError as e:
            if not e.is_transient:
                return PollResult(PollOutcome.FAILED, attempt, state, e)
            logger.warning("%s poll %d/%d hit a transient error: %s", label, attempt, policy.max_attempts, e)
        else:
            if state.status is JobStatus.SUCCEEDED:
                return PollResult(PollOutcome.SUCCEEDED, attempt, state)
            if state.status is JobStatus.FAILED:
                return PollResult(PollOutcome.FAILED, attempt, state)
            if state.status is None:
                return PollResult(PollOutcome.UNEXPECTED, attempt, state)
            logger.debug("%s is %s (poll %d/%d)", label, state.status.value, attempt, policy.max_attempts)

        if attempt < policy.max_attempts and cancel.wait(policy.interval):
            return PollResult(PollOutcome.CANCELLED, attempt, state)

    return PollResult(PollOutcome.TIMED_OUT, policy.max_attempts, state)
