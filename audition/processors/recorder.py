import time
from typing import Callable, List, Optional

import structlog

from audition.application.models import CapturedAnswer, RecordingState
from audition.core.exceptions import DeviceReleasedError, RecorderBusyError
from audition.core.interfaces import AudioStream, CaptureBackend

logger = structlog.get_logger(__name__)


class RecordingDevice:
    """
    Owns the microphone stream and the answer being captured.

    The stream is acquired lazily on the first recording (or by ``acquire``
    during the system check) and kept warm across questions. ``release``
    closes it for good; the device refuses to reopen afterwards so nothing
    can prompt for the microphone once the session is over.
    """

    def __init__(self, backend: CaptureBackend, clock: Callable[[], float] = time.monotonic):
        self._backend = backend
        self._clock = clock
        self._stream: Optional[AudioStream] = None
        self._state = RecordingState.IDLE
        self._chunks: List[bytes] = []
        self._question_id: Optional[str] = None
        self._started_at: Optional[float] = None
        self._captured: Optional[CapturedAnswer] = None
        self._released = False

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def captured(self) -> Optional[CapturedAnswer]:
        return self._captured

    @property
    def question_id(self) -> Optional[str]:
        return self._question_id

    @property
    def is_acquired(self) -> bool:
        return self._stream is not None

    @property
    def is_released(self) -> bool:
        return self._released

    async def acquire(self) -> None:
        if self._released:
            raise DeviceReleasedError("Recording device has already been released")
        if self._stream is not None:
            return
        logger.info("device_acquire")
        self._stream = await self._backend.open_stream()
        logger.info("device_acquired", mime_type=self._stream.mime_type)

    async def start_recording(self, question_id: str) -> None:
        if self._state == RecordingState.RECORDING:
            return
        if self._state == RecordingState.CAPTURED:
            raise RecorderBusyError(
                f"Answer for question {self._question_id} must be reset before recording again"
            )
        await self.acquire()
        self._chunks = []
        self._question_id = question_id
        self._started_at = self._clock()
        self._stream.start(self._chunks.append)
        self._state = RecordingState.RECORDING
        logger.debug("recording_started", question_id=question_id)

    async def stop_recording(self) -> Optional[CapturedAnswer]:
        if self._state != RecordingState.RECORDING:
            return None
        await self._stream.stop()
        payload = self._stream.encode(self._chunks)
        duration = self._clock() - self._started_at
        self._chunks = []
        self._captured = CapturedAnswer(
            question_id=self._question_id,
            payload=payload,
            duration_seconds=round(duration, 2),
            mime_type=self._stream.mime_type,
        )
        self._state = RecordingState.CAPTURED
        logger.debug(
            "recording_stopped",
            question_id=self._question_id,
            size=len(payload),
            duration=self._captured.duration_seconds,
        )
        return self._captured

    async def reset(self) -> None:
        if self._state == RecordingState.RECORDING:
            await self._stream.stop()
        self._chunks = []
        self._captured = None
        self._question_id = None
        self._started_at = None
        self._state = RecordingState.IDLE

    async def release(self) -> None:
        if self._released:
            return
        await self.reset()
        if self._stream is not None:
            self._stream.close()
            self._stream = None
            logger.info("device_released")
        self._released = True

    async def __aenter__(self) -> "RecordingDevice":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()
