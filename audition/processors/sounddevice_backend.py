import asyncio
import io
from typing import Callable, List, Optional

import numpy as np
import soundfile as sf
import structlog

from audition.core.exceptions import (
    DeviceError,
    DeviceNotFoundError,
    DevicePermissionError,
    DeviceUnsupportedError,
)
from audition.core.interfaces import AudioStream, CaptureBackend

logger = structlog.get_logger(__name__)


class SoundDeviceStream(AudioStream):
    """
    Microphone input through PortAudio.

    PortAudio invokes the callback on its own thread, so every chunk is handed
    back to the event loop with ``call_soon_threadsafe``.
    """

    mime_type = "audio/wav"

    def __init__(self, sd_module, loop: asyncio.AbstractEventLoop,
                 sample_rate: int, channels: int, chunk_size: int):
        self._sd = sd_module
        self._loop = loop
        self.sample_rate = sample_rate
        self.channels = channels
        self._on_chunk: Optional[Callable[[bytes], None]] = None
        self._stream = sd_module.RawInputStream(
            samplerate=sample_rate,
            channels=channels,
            dtype="int16",
            blocksize=chunk_size,
            callback=self._callback,
        )

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("input_stream_status", status=str(status))
        on_chunk = self._on_chunk
        if on_chunk is not None:
            self._loop.call_soon_threadsafe(on_chunk, bytes(indata))

    def start(self, on_chunk: Callable[[bytes], None]) -> None:
        self._on_chunk = on_chunk
        self._stream.start()

    async def stop(self) -> None:
        await asyncio.to_thread(self._stream.stop)
        # let chunks queued by the callback thread reach the buffer
        await asyncio.sleep(0)
        self._on_chunk = None

    def encode(self, chunks: List[bytes]) -> bytes:
        samples = np.frombuffer(b"".join(chunks), dtype=np.int16)
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels)
        buffer = io.BytesIO()
        sf.write(buffer, samples, self.sample_rate, format="WAV", subtype="PCM_16")
        return buffer.getvalue()

    def close(self) -> None:
        self._on_chunk = None
        self._stream.close()


class SoundDeviceBackend(CaptureBackend):
    def __init__(self, sample_rate: int = 16000, channels: int = 1, chunk_size: int = 1024):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_size = chunk_size

    async def open_stream(self) -> AudioStream:
        try:
            import sounddevice as sd
        except OSError as e:
            # raised when the PortAudio shared library is missing
            raise DeviceUnsupportedError(f"Audio capture is not available: {e}") from e

        try:
            sd.query_devices(kind="input")
        except (ValueError, sd.PortAudioError) as e:
            raise DeviceNotFoundError("No microphone device found") from e

        try:
            return SoundDeviceStream(
                sd,
                asyncio.get_running_loop(),
                sample_rate=self.sample_rate,
                channels=self.channels,
                chunk_size=self.chunk_size,
            )
        except sd.PortAudioError as e:
            logger.error("input_stream_open_failed", error=str(e))
            raise _open_error(e) from e


def _open_error(error: Exception) -> DeviceError:
    text = str(error).lower()
    if "permission" in text or "denied" in text or "not allowed" in text:
        return DevicePermissionError(f"Microphone access was denied: {error}")
    return DeviceError(f"Unable to access microphone: {error}")
