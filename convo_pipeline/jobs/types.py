"""Job system type definitions."""

from enum import Enum


class JobType(str, Enum):
    """Job types handled by the dispatcher."""

    SENTIMENT_ANALYSIS = "sentiment_analysis"
    CONTENT_NORMALIZATION = "content_normalization"
    TREND_ANALYSIS = "trend_analysis"


class JobStatus(str, Enum):
    """Job lifecycle statuses.

    pending -> processing -> completed | failed, never backwards.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """Forward-only transitions; re-applying the same status is allowed."""
        if target == self:
            return True
        return target in _FORWARD_TRANSITIONS[self]


_FORWARD_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class JobPriority(str, Enum):
    """Job priority. Higher rank is claimed first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    JobPriority.LOW: 1,
    JobPriority.MEDIUM: 2,
    JobPriority.HIGH: 3,
}


class ScheduledTaskType(str, Enum):
    """Recurring task kinds that enqueue or maintain work."""

    SENTIMENT_BATCH = "sentiment_batch"
    TREND_ANALYSIS = "trend_analysis"
    DATA_CLEANUP = "data_cleanup"


class TaskSchedule(str, Enum):
    """Simple recurrence schedules for scheduled tasks."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class Sentiment(str, Enum):
    """Sentiment labels produced by providers."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
