# tests/conftest.py
import asyncio
import os
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from audition.application.audition_session import AuditionSessionController
from audition.application.models import Question, UploadResult
from audition.application.notifications import NotificationLog
from audition.core.interfaces import AnswerUploader, AudioStream, CaptureBackend
from audition.processors.recorder import RecordingDevice


@pytest.fixture
def test_env_vars():
    """Set up test environment variables."""
    os.environ["ENVIRONMENT"] = "testing"
    os.environ["DEBUG"] = "true"
    os.environ["APP_NAME"] = "Audition Test"
    yield
    # Clean up
    os.environ.pop("ENVIRONMENT", None)
    os.environ.pop("DEBUG", None)
    os.environ.pop("APP_NAME", None)


@pytest.fixture
def settings(test_env_vars, tmp_path):
    """Get test settings with uploads going to a temp directory."""
    from audition.core.config import Settings
    return Settings(UPLOAD_DIR=tmp_path / "uploads")


@pytest.fixture
def app(settings):
    """Create test app instance."""
    from audition.interface.api.main import create_app
    return create_app(settings)


@pytest.fixture
def client(app):
    """Create test client."""
    return TestClient(app)


class FakeStream(AudioStream):
    mime_type = "audio/wav"

    def __init__(self):
        self.on_chunk = None
        self.starts = 0
        self.stops = 0
        self.closed = False

    def start(self, on_chunk):
        self.starts += 1
        self.on_chunk = on_chunk
        on_chunk(b"\x01\x02")

    def emit(self, data: bytes):
        self.on_chunk(data)

    async def stop(self):
        self.stops += 1
        self.on_chunk = None

    def encode(self, chunks):
        return b"WAV:" + b"".join(chunks)

    def close(self):
        self.closed = True


class FakeCaptureBackend(CaptureBackend):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.opens = 0
        self.streams: List[FakeStream] = []

    async def open_stream(self):
        self.opens += 1
        if self.error is not None:
            raise self.error
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeStream:
        return self.streams[-1]


class RecordingUploader(AnswerUploader):
    """Records every submission; can fail or block on demand."""

    def __init__(self):
        self.calls = []
        self.fail_with: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None

    async def submit(self, session_id, question_id, question_text, payload, mime_type="audio/wav"):
        self.calls.append((session_id, question_id, question_text, payload))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with:
            return UploadResult(success=False, error=self.fail_with)
        return UploadResult(success=True, remote_answer_id=f"answer-{len(self.calls)}")

    @property
    def question_ids(self):
        return [call[1] for call in self.calls]


@pytest.fixture
def capture_backend():
    return FakeCaptureBackend()


@pytest.fixture
def uploader():
    return RecordingUploader()


@pytest.fixture
def notifier():
    return NotificationLog()


@pytest.fixture
def questions():
    return [
        Question(id="q1", text="Tell us about a project you are proud of.", hard_limit_seconds=90),
        Question(id="q2", text="How do you structure scalable APIs?", hard_limit_seconds=90),
        Question(id="q3", text="Explain a time you optimized backend performance.", hard_limit_seconds=90),
    ]


@pytest.fixture
def make_controller(capture_backend, uploader, notifier, questions):
    """Build a controller wired to the in-memory fakes."""
    def factory(**overrides):
        kwargs = dict(
            session_id="sub-1",
            user_id="user-1",
            opportunity_id="1",
            questions=questions,
            recorder=RecordingDevice(capture_backend),
            uploader=uploader,
            notifier=notifier,
            global_time_limit=1800,
        )
        kwargs.update(overrides)
        return AuditionSessionController(**kwargs)
    return factory


async def advance(controller, seconds: int):
    """Tick the controller ``seconds`` times, letting transitions finish."""
    for _ in range(seconds):
        controller.tick()
        await controller.settle()
