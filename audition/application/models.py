from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.EXPIRED)


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    CAPTURED = "captured"


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Outcome(str, Enum):
    SUBMITTED = "submitted"
    SKIPPED = "skipped"
    DISCARDED = "discarded"
    FAILED = "failed"


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    hard_limit_seconds: int


@dataclass(frozen=True)
class CapturedAnswer:
    question_id: str
    payload: bytes
    duration_seconds: float
    mime_type: str = "audio/wav"


@dataclass(frozen=True)
class UploadResult:
    success: bool
    remote_answer_id: Optional[str] = None
    transcript: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    title: str
    message: str


@dataclass
class QuestionOutcome:
    question_id: str
    outcome: Outcome
    remote_answer_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SessionRecord:
    """Terminal summary of one audition attempt."""
    session_id: str
    user_id: str
    opportunity_id: str
    status: SessionStatus
    outcomes: List[QuestionOutcome] = field(default_factory=list)
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def submitted_count(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome == Outcome.SUBMITTED)


@dataclass(frozen=True)
class SessionView:
    """Snapshot of everything the question screen renders."""
    status: SessionStatus
    question_number: int
    question_count: int
    question_text: str
    question_clock: str
    global_clock: str
    recording_state: RecordingState
    is_overtime: bool
    is_uploading: bool
    is_transitioning: bool

    @property
    def progress_percent(self) -> int:
        if not self.question_count:
            return 0
        return round(self.question_number / self.question_count * 100)

    @property
    def questions_remaining(self) -> int:
        return max(self.question_count - self.question_number, 0)


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{secs:02d}"


def question_from_wire(data: Mapping[str, Any], default_hard_limit: int) -> Question:
    """
    Build a Question from a backend payload.

    Older backends send ``text``/``duration`` while the current one sends
    ``question_text``/``time_limit_seconds``; both shapes are accepted here
    and nowhere else.
    """
    if "id" not in data:
        raise ValueError("question payload has no id")
    text = data.get("question_text") or data.get("text")
    if not text:
        raise ValueError(f"question {data['id']} has no text")
    limit = data.get("time_limit_seconds")
    if limit is None:
        limit = data.get("duration")
    if limit is None:
        limit = default_hard_limit
    limit = int(limit)
    if limit <= 0:
        raise ValueError(f"question {data['id']} has a non-positive time limit")
    return Question(id=str(data["id"]), text=str(text), hard_limit_seconds=limit)
