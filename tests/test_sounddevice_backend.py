# tests/test_sounddevice_backend.py
import sys
import types

import pytest

from audition.core.exceptions import DeviceError, DeviceNotFoundError, DevicePermissionError
from audition.processors.sounddevice_backend import SoundDeviceBackend


class FakePortAudioError(Exception):
    pass


def fake_sounddevice(open_error=None, query_error=None):
    def query_devices(kind=None):
        if query_error is not None:
            raise query_error
        return {"name": "Built-in Microphone"}

    def raw_input_stream(**kwargs):
        if open_error is not None:
            raise open_error
        return types.SimpleNamespace(**kwargs)

    return types.SimpleNamespace(
        PortAudioError=FakePortAudioError,
        query_devices=query_devices,
        RawInputStream=raw_input_stream,
    )


@pytest.mark.asyncio
async def test_permission_failure_is_reported_as_permission_error(monkeypatch):
    error = FakePortAudioError("Error opening RawInputStream: Permission denied [PaErrorCode -9997]")
    monkeypatch.setitem(sys.modules, "sounddevice", fake_sounddevice(open_error=error))

    with pytest.raises(DevicePermissionError) as exc_info:
        await SoundDeviceBackend().open_stream()
    assert exc_info.value.title == "Microphone Permission Denied"


@pytest.mark.asyncio
async def test_other_open_failure_is_generic_device_error(monkeypatch):
    error = FakePortAudioError("Error opening RawInputStream: Device unavailable [PaErrorCode -9985]")
    monkeypatch.setitem(sys.modules, "sounddevice", fake_sounddevice(open_error=error))

    with pytest.raises(DeviceError) as exc_info:
        await SoundDeviceBackend().open_stream()
    assert type(exc_info.value) is DeviceError


@pytest.mark.asyncio
async def test_missing_input_device(monkeypatch):
    monkeypatch.setitem(sys.modules, "sounddevice",
                        fake_sounddevice(query_error=ValueError("No input device matching")))

    with pytest.raises(DeviceNotFoundError):
        await SoundDeviceBackend().open_stream()


@pytest.mark.asyncio
async def test_open_returns_stream(monkeypatch):
    monkeypatch.setitem(sys.modules, "sounddevice", fake_sounddevice())

    stream = await SoundDeviceBackend(sample_rate=8000, channels=1).open_stream()
    assert stream.mime_type == "audio/wav"
    assert stream.sample_rate == 8000
