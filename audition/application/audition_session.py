"""
Timed audition state machine.

One controller drives one candidate through the question list of one
opportunity. It owns the exam clock, the per-question clock and the
recording device, and hands captured answers to the uploader one at a time.

Transitions that talk to the network (submit, skip, expiry) run as a single
in-flight asyncio task; a trigger that arrives while one is running is a
no-op, so a manual stop and a timeout can never both submit the same answer.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from audition.core.config import Settings
from audition.core.exceptions import BackendError, DeviceError, SessionStateError
from audition.core.interfaces import AnswerUploader, Notifier
from audition.core.logging import bind_session_context, clear_session_context
from audition.managers.backend_client import AuditionBackendClient
from audition.processors.recorder import RecordingDevice
from .countdown import CountdownTimer
from .models import (
    CapturedAnswer,
    Notification,
    NotificationLevel,
    Outcome,
    Question,
    QuestionOutcome,
    RecordingState,
    SessionRecord,
    SessionStatus,
    SessionView,
    UploadResult,
)

logger = structlog.get_logger(__name__)


class AuditionSessionController:
    def __init__(self, *,
                 session_id: str,
                 user_id: str,
                 opportunity_id: str,
                 questions: Sequence[Question],
                 recorder: RecordingDevice,
                 uploader: AnswerUploader,
                 notifier: Notifier,
                 global_time_limit: int = 1800,
                 overtime_warning_seconds: int = 30,
                 transition_delay: float = 0.0,
                 final_upload_grace: float = 10.0,
                 auto_start_recording: bool = True,
                 allow_no_device: bool = False,
                 survey_client: Optional[AuditionBackendClient] = None):
        if not questions:
            raise ValueError("an audition needs at least one question")
        self.session_id = session_id
        self.user_id = user_id
        self.opportunity_id = opportunity_id
        self._questions = tuple(questions)
        self._recorder = recorder
        self._uploader = uploader
        self._notifier = notifier
        self._survey_client = survey_client

        self._overtime_warning = overtime_warning_seconds
        self._transition_delay = transition_delay
        self._final_upload_grace = final_upload_grace
        self._auto_start = auto_start_recording
        self._allow_no_device = allow_no_device

        self._status = SessionStatus.NOT_STARTED
        self._index = 0
        self._global_timer = CountdownTimer(global_time_limit)
        self._question_timer = CountdownTimer(self._questions[0].hard_limit_seconds)
        self._global_timer.on_expire(self._on_global_timeout)
        self._question_timer.on_expire(self._on_question_timeout)

        self._task: Optional[asyncio.Task] = None
        self._expiry_task: Optional[asyncio.Task] = None
        self._terminating = False
        self._uploading = False
        self._transitioning = False
        self._last_upload_error: Optional[str] = None
        self._outcomes: List[QuestionOutcome] = []
        self._started_at: Optional[datetime] = None
        self._ended_at: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "AuditionSessionController":
        kwargs.setdefault("global_time_limit", settings.GLOBAL_TIME_LIMIT_SECONDS)
        kwargs.setdefault("overtime_warning_seconds", settings.OVERTIME_WARNING_SECONDS)
        kwargs.setdefault("transition_delay", settings.TRANSITION_DELAY_SECONDS)
        kwargs.setdefault("final_upload_grace", settings.FINAL_UPLOAD_GRACE_SECONDS)
        kwargs.setdefault("auto_start_recording", settings.AUTO_START_RECORDING)
        kwargs.setdefault("allow_no_device", settings.ALLOW_NO_DEVICE)
        return cls(**kwargs)

    # -- observable state ------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def questions(self) -> Sequence[Question]:
        return self._questions

    @property
    def active_question(self) -> Optional[Question]:
        if self._status != SessionStatus.IN_PROGRESS:
            return None
        return self._questions[self._index]

    @property
    def recording_state(self) -> RecordingState:
        return self._recorder.state

    @property
    def global_timer(self) -> CountdownTimer:
        return self._global_timer

    @property
    def question_timer(self) -> CountdownTimer:
        return self._question_timer

    @property
    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_overtime(self) -> bool:
        return (self._status == SessionStatus.IN_PROGRESS
                and self._question_timer.remaining <= self._overtime_warning)

    def view(self) -> SessionView:
        count = len(self._questions)
        question = self._questions[min(self._index, count - 1)]
        return SessionView(
            status=self._status,
            question_number=min(self._index + 1, count),
            question_count=count,
            question_text=question.text,
            question_clock=self._question_timer.formatted,
            global_clock=self._global_timer.formatted,
            recording_state=self._recorder.state,
            is_overtime=self.is_overtime,
            is_uploading=self._uploading,
            is_transitioning=self._transitioning,
        )

    def record(self) -> SessionRecord:
        return SessionRecord(
            session_id=self.session_id,
            user_id=self.user_id,
            opportunity_id=self.opportunity_id,
            status=self._status,
            outcomes=list(self._outcomes),
            started_at=self._started_at,
            ended_at=self._ended_at,
        )

    # -- commands ----------------------------------------------------------

    async def start(self) -> None:
        if self._status != SessionStatus.NOT_STARTED:
            raise SessionStateError(f"Cannot start a session that is {self._status.value}")

        try:
            await self._recorder.acquire()
        except DeviceError as e:
            if not self._allow_no_device:
                self._notify(NotificationLevel.ERROR, e.title, str(e))
                raise
            self._notify(
                NotificationLevel.WARNING,
                e.title,
                f"{e}. Continuing without recording; unanswered questions will be skipped.",
            )
            self._auto_start = False

        bind_session_context(self.session_id, self.user_id, self.opportunity_id)
        self._status = SessionStatus.IN_PROGRESS
        self._started_at = datetime.now(timezone.utc)
        self._global_timer.start()
        logger.info("session_started", questions=len(self._questions),
                    global_limit=self._global_timer.initial_duration)
        await self._enter_question(0)

    async def start_recording(self) -> bool:
        """Manually start recording the active question when the recorder is idle."""
        self._require_in_progress()
        if self.is_busy or self._terminating:
            return False
        if self._recorder.state != RecordingState.IDLE:
            return False
        started = await self._start_capture()
        if started and not self._question_timer.is_running and not self._question_timer.is_expired:
            self._question_timer.start()
        return started

    async def stop_recording(self) -> Optional[CapturedAnswer]:
        """Manually stop recording; the question clock stops with it."""
        self._require_in_progress()
        if self.is_busy or self._terminating:
            return None
        captured = await self._recorder.stop_recording()
        if captured is not None:
            self._question_timer.stop()
        return captured

    async def submit_and_advance(self) -> bool:
        """Submit the captured (or still recording) answer and move on."""
        self._require_in_progress()
        return await self._run_transition(lambda: self._submit_current(manual=True))

    async def skip_question(self) -> bool:
        """Move on without submitting. A held answer is discarded with a warning."""
        self._require_in_progress()
        return await self._run_transition(self._skip_current)

    def tick(self) -> None:
        """Advance both clocks by one second. Called by the session runner."""
        if self._status != SessionStatus.IN_PROGRESS or self._terminating:
            return
        self._global_timer.tick()
        if self._terminating:
            return
        self._question_timer.tick()

    async def settle(self) -> None:
        """Wait until no transition is in flight."""
        while True:
            pending = [t for t in (self._task, self._expiry_task) if t is not None and not t.done()]
            if not pending:
                break
            await asyncio.wait(pending)
        for task in (self._task, self._expiry_task):
            if task is not None and task.done() and not task.cancelled() and task.exception():
                raise task.exception()

    async def close(self) -> None:
        """Release the device. An unfinished session ends as expired."""
        if self._status == SessionStatus.IN_PROGRESS:
            self._terminating = True
            for task in (self._task, self._expiry_task):
                if task is not None and not task.done():
                    task.cancel()
                    await asyncio.wait({task})
            if self._status == SessionStatus.IN_PROGRESS:
                logger.warning("session_abandoned", index=self._index)
                await self._finish(SessionStatus.EXPIRED)
        await self._recorder.release()

    async def submit_feedback(self, rating: int, reason: Optional[str] = None) -> bool:
        if not self._status.is_terminal:
            raise SessionStateError("Feedback is collected after the audition ends")
        if self._survey_client is None:
            raise SessionStateError("No feedback endpoint configured")
        if not 1 <= rating <= 5:
            self._notify(NotificationLevel.ERROR, "Rating Required",
                         "Please select a rating from 1 to 5 before submitting.")
            return False
        try:
            await self._survey_client.submit_survey(
                self.session_id, rating, reason=reason, status=self._status.value
            )
        except BackendError as e:
            self._notify(NotificationLevel.ERROR, "Submission Failed", e.message)
            return False
        self._notify(NotificationLevel.SUCCESS, "Thank You!",
                     "Your feedback has been recorded successfully.")
        return True

    # -- transitions -------------------------------------------------------

    async def _run_transition(self, factory: Callable[[], Awaitable[bool]]) -> bool:
        if self.is_busy or self._terminating:
            return False
        task = asyncio.create_task(factory())
        self._task = task
        await asyncio.wait({task})
        if task.cancelled():
            return False
        return task.result()

    async def _enter_question(self, index: int) -> None:
        if self._terminating:
            return
        self._index = index
        question = self._questions[index]
        self._last_upload_error = None
        await self._recorder.reset()
        self._question_timer.reset(question.hard_limit_seconds)
        self._question_timer.start()
        logger.info("question_entered", index=index, question_id=question.id,
                    hard_limit=question.hard_limit_seconds)
        if self._auto_start:
            await self._start_capture()

    async def _start_capture(self) -> bool:
        question = self._questions[self._index]
        try:
            await self._recorder.start_recording(question.id)
        except DeviceError as e:
            logger.warning("recording_unavailable", question_id=question.id, error=str(e))
            self._notify(NotificationLevel.ERROR, e.title, str(e))
            return False
        return True

    async def _submit_current(self, manual: bool) -> bool:
        question = self._questions[self._index]
        state = self._recorder.state

        if state == RecordingState.IDLE:
            if manual:
                self._notify(NotificationLevel.ERROR, "No Recording",
                             "Please record your answer before advancing.")
                return False
            logger.info("question_skipped", question_id=question.id, reason="no_recording")
            self._outcomes.append(QuestionOutcome(question.id, Outcome.SKIPPED))
            await self._advance()
            return True

        self._question_timer.stop()
        if state == RecordingState.RECORDING:
            captured = await self._recorder.stop_recording()
        else:
            captured = self._recorder.captured

        result = await self._upload(question, captured)
        if not result.success:
            self._last_upload_error = result.error
            self._notify(NotificationLevel.ERROR, "Upload Failed",
                         result.error or "Failed to submit answer. Please try again.")
            return False

        await self._recorder.reset()
        self._outcomes.append(QuestionOutcome(question.id, Outcome.SUBMITTED,
                                              remote_answer_id=result.remote_answer_id))
        self._notify(NotificationLevel.SUCCESS, "Answer Submitted",
                     f"Question {self._index + 1} recorded successfully!")
        await self._advance()
        return True

    async def _skip_current(self) -> bool:
        question = self._questions[self._index]
        self._question_timer.stop()
        if self._recorder.state == RecordingState.IDLE:
            outcome = QuestionOutcome(question.id, Outcome.SKIPPED)
        else:
            self._notify(NotificationLevel.WARNING, "Answer Not Submitted",
                         f"Your answer to question {self._index + 1} was discarded without being submitted.")
            if self._last_upload_error:
                outcome = QuestionOutcome(question.id, Outcome.FAILED, error=self._last_upload_error)
            else:
                outcome = QuestionOutcome(question.id, Outcome.DISCARDED)
        await self._recorder.reset()
        self._outcomes.append(outcome)
        logger.info("question_skipped", question_id=question.id, outcome=outcome.outcome.value)
        await self._advance()
        return True

    async def _upload(self, question: Question, captured: CapturedAnswer) -> UploadResult:
        self._uploading = True
        try:
            return await self._uploader.submit(
                self.session_id, question.id, question.text, captured.payload, captured.mime_type
            )
        except Exception as e:
            logger.exception("uploader_raised", question_id=question.id)
            return UploadResult(success=False, error=str(e))
        finally:
            self._uploading = False

    async def _advance(self) -> None:
        if self._terminating:
            return
        if self._transition_delay > 0:
            self._transitioning = True
            try:
                await asyncio.sleep(self._transition_delay)
            finally:
                self._transitioning = False
            if self._terminating:
                return
        if self._index >= len(self._questions) - 1:
            self._index = len(self._questions)
            await self._finish(SessionStatus.COMPLETED)
        else:
            await self._enter_question(self._index + 1)

    async def _finish(self, status: SessionStatus) -> None:
        if self._status.is_terminal:
            return
        self._terminating = True
        self._question_timer.stop()
        self._global_timer.stop()
        await self._recorder.release()
        self._status = status
        self._ended_at = datetime.now(timezone.utc)
        logger.info("session_finished", status=status.value,
                    submitted=sum(1 for o in self._outcomes if o.outcome == Outcome.SUBMITTED),
                    questions=len(self._questions))
        if status == SessionStatus.COMPLETED:
            self._notify(NotificationLevel.SUCCESS, "Audition Complete",
                         "All questions answered. Please complete the survey.")
        clear_session_context()

    # -- timer callbacks ---------------------------------------------------

    def _on_question_timeout(self) -> None:
        if self.is_busy or self._terminating:
            return
        question = self._questions[self._index]
        logger.info("question_timeout", question_id=question.id,
                    recording_state=self._recorder.state.value)
        self._task = asyncio.create_task(self._submit_current(manual=False))

    def _on_global_timeout(self) -> None:
        if self._terminating:
            return
        self._terminating = True
        self._question_timer.stop()
        logger.info("global_timeout", index=self._index)
        self._expiry_task = asyncio.create_task(self._expire())

    async def _expire(self) -> None:
        self._notify(NotificationLevel.INFO, "Time's Up!",
                     "The audition time has ended. Please complete the survey.")

        pending = self._task
        if pending is not None and not pending.done():
            done, _ = await asyncio.wait({pending}, timeout=self._final_upload_grace)
            if not done:
                logger.warning("transition_cancelled_at_deadline", index=self._index)
                pending.cancel()
                await asyncio.wait({pending})

        if self._index < len(self._questions):
            await self._salvage_current()
        await self._finish(SessionStatus.EXPIRED)

    async def _salvage_current(self) -> None:
        """Best-effort submission of whatever the active question captured."""
        question = self._questions[self._index]
        if any(o.question_id == question.id for o in self._outcomes):
            return
        state = self._recorder.state
        if state == RecordingState.RECORDING:
            captured = await self._recorder.stop_recording()
        elif state == RecordingState.CAPTURED:
            captured = self._recorder.captured
        else:
            self._outcomes.append(QuestionOutcome(question.id, Outcome.SKIPPED))
            return

        try:
            result = await asyncio.wait_for(self._upload(question, captured),
                                            timeout=self._final_upload_grace)
        except asyncio.TimeoutError:
            result = UploadResult(success=False, error="Upload did not finish before the deadline")

        if result.success:
            self._outcomes.append(QuestionOutcome(question.id, Outcome.SUBMITTED,
                                                  remote_answer_id=result.remote_answer_id))
        else:
            self._outcomes.append(QuestionOutcome(question.id, Outcome.FAILED, error=result.error))
            self._notify(NotificationLevel.ERROR, "Upload Failed",
                         result.error or "Your last answer could not be submitted.")
        await self._recorder.reset()

    # -- helpers -----------------------------------------------------------

    def _require_in_progress(self) -> None:
        if self._status != SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Session is {self._status.value}")

    def _notify(self, level: NotificationLevel, title: str, message: str) -> None:
        self._notifier.notify(Notification(level=level, title=title, message=message))
