from abc import ABC, abstractmethod
from typing import Callable, List

from audition.application.models import Notification, UploadResult


class AudioStream(ABC):
    """An acquired capture device. Owned exclusively by the RecordingDevice."""

    mime_type: str = "audio/wav"

    @abstractmethod
    def start(self, on_chunk: Callable[[bytes], None]) -> None:
        """Begin delivering raw audio chunks to ``on_chunk``."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivering chunks. Any buffered audio is flushed first."""
        pass

    @abstractmethod
    def encode(self, chunks: List[bytes]) -> bytes:
        """Wrap raw chunks into a single container payload."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device."""
        pass


class CaptureBackend(ABC):
    @abstractmethod
    async def open_stream(self) -> AudioStream:
        """Acquire the device. Raises a DeviceError subtype on failure."""
        pass


class AnswerUploader(ABC):
    @abstractmethod
    async def submit(self,
                     session_id: str,
                     question_id: str,
                     question_text: str,
                     payload: bytes,
                     mime_type: str = "audio/wav") -> UploadResult:
        """Send one answer. Failures are reported in the result, never raised."""
        pass


class Notifier(ABC):
    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Surface a message to the candidate."""
        pass
