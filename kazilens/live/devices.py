"""Audio device boundary: provider interface and the sounddevice (PortAudio) implementation."""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union

import numpy as np

from kazilens.errors import DeviceUnavailable

logger = logging.getLogger(__name__)

DeviceSelector = Union[int, str, None]
CaptureCallback = Callable[[np.ndarray], None]

_handle_ids = itertools.count(1)


class PlaybackHandle:
    """A buffer scheduled on an output device."""

    def __init__(self, start_time: float, duration: float, on_stop: Optional[Callable[["PlaybackHandle"], None]] = None):
        self.id = next(_handle_ids)
        self.start_time = start_time
        self.duration = duration
        self.stopped = False
        self.finished = False
        self._on_stop = on_stop

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def stop(self):
        """Halt playback. Does not fire the finish callback."""
        if self.stopped or self.finished:
            return
        self.stopped = True
        if self._on_stop:
            self._on_stop(self)

    def __repr__(self):
        return f"PlaybackHandle(id={self.id}, start={self.start_time:.3f}, duration={self.duration:.3f})"


class InputDevice(ABC):
    """Microphone opened at a fixed rate and block size."""

    @abstractmethod
    def start(self, callback: CaptureCallback):
        """Begin invoking callback(samples) once per captured block."""
        pass

    @abstractmethod
    def stop(self):
        pass

    @abstractmethod
    def close(self):
        pass


class OutputDevice(ABC):
    """Speaker with its own clock that plays buffers at scheduled times."""

    sample_rate: int

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Seconds elapsed on the device clock."""
        pass

    @abstractmethod
    def play(self, samples: np.ndarray, start_at: float,
             on_finished: Callable[[PlaybackHandle], None]) -> PlaybackHandle:
        """Schedule samples to start at start_at; on_finished fires when they have played out."""
        pass

    @abstractmethod
    def close(self):
        pass


class DeviceProvider(ABC):
    """Opens input/output devices for a session."""

    @abstractmethod
    def open_input(self, sample_rate: int, channels: int, blocksize: int) -> InputDevice:
        """Raises DeviceUnavailable if the microphone cannot be opened."""
        pass

    @abstractmethod
    def open_output(self, sample_rate: int, channels: int) -> OutputDevice:
        """Raises DeviceUnavailable if the speaker cannot be opened."""
        pass


# -------------------- sounddevice implementation --------------------

def _sounddevice():
    # PortAudio is loaded on import; keep it out of module import so the API can run headless.
    try:
        import sounddevice as sd
    except OSError as e:
        raise DeviceUnavailable(f"PortAudio not available: {e}") from e
    return sd


def list_audio_devices():
    """
    Returns available audio devices with their input/output channel counts.
    """
    try:
        sd = _sounddevice()
        devices = []
        for idx, d in enumerate(sd.query_devices()):
            devices.append(
                {
                    "index": idx,
                    "name": d.get("name", f"Device {idx}"),
                    "max_input_channels": int(d.get("max_input_channels", 0)),
                    "max_output_channels": int(d.get("max_output_channels", 0)),
                    "default_samplerate": int(d.get("default_samplerate", 0) or 0),
                }
            )
    except Exception as e:
        return {
            "ok": False,
            "error": repr(e),
            "devices": [],
        }

    return {
        "ok": True,
        "devices": devices,
    }


class SoundDeviceInput(InputDevice):
    def __init__(self, device: DeviceSelector, sample_rate: int, channels: int, blocksize: int):
        sd = _sounddevice()
        self._callback: Optional[CaptureCallback] = None
        self._closed = False
        try:
            self._stream = sd.InputStream(
                device=device,
                samplerate=int(sample_rate),
                channels=int(channels),
                dtype="float32",
                blocksize=int(blocksize),
                callback=self._audio_cb,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailable(f"microphone unavailable: {e}") from e

    def _audio_cb(self, indata, frames, time_info, status):
        if status:
            logger.debug("input status: %s", status)
        callback = self._callback
        if callback is None:
            return
        try:
            callback(indata[:, 0].copy())
        except Exception:
            logger.exception("capture callback failed")

    def start(self, callback: CaptureCallback):
        self._callback = callback
        self._stream.start()

    def stop(self):
        self._callback = None
        if not self._closed:
            self._stream.stop()

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._callback = None
        self._stream.close()


class _Voice:
    """Render-side state of one scheduled buffer."""

    def __init__(self, handle: PlaybackHandle, samples: np.ndarray, start_frame: int,
                 on_finished: Callable[[PlaybackHandle], None]):
        self.handle = handle
        self.samples = samples
        self.start_frame = start_frame
        self.on_finished = on_finished

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)


class SoundDeviceOutput(OutputDevice):
    """
    OutputStream that mixes scheduled buffers into its render callback.
    The device clock is the number of frames rendered so far.
    """

    def __init__(self, device: DeviceSelector, sample_rate: int, channels: int):
        sd = _sounddevice()
        self.sample_rate = int(sample_rate)
        self._channels = int(channels)
        self._frame = 0
        self._voices: List[_Voice] = []
        self._lock = threading.Lock()
        self._closed = False
        try:
            self._stream = sd.OutputStream(
                device=device,
                samplerate=self.sample_rate,
                channels=self._channels,
                dtype="float32",
                callback=self._render,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceUnavailable(f"speaker unavailable: {e}") from e
        try:
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._closed = True
            self._stream.close()
            raise DeviceUnavailable(f"speaker could not start: {e}") from e

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frame / self.sample_rate

    def play(self, samples, start_at, on_finished):
        mono = np.asarray(samples, dtype=np.float32).reshape(len(samples), -1)[:, 0]
        duration = len(mono) / self.sample_rate
        handle = PlaybackHandle(start_at, duration, on_stop=self._cancel)
        voice = _Voice(handle, mono, int(round(start_at * self.sample_rate)), on_finished)
        with self._lock:
            self._voices.append(voice)
        return handle

    def _cancel(self, handle: PlaybackHandle):
        with self._lock:
            self._voices = [v for v in self._voices if v.handle is not handle]

    def _render(self, outdata, frames, time_info, status):
        if status:
            logger.debug("output status: %s", status)
        outdata.fill(0)
        finished = []
        with self._lock:
            block_start = self._frame
            block_end = block_start + frames
            remaining = []
            for v in self._voices:
                lo = max(block_start, v.start_frame)
                hi = min(block_end, v.end_frame)
                if hi > lo:
                    src = v.samples[lo - v.start_frame:hi - v.start_frame]
                    outdata[lo - block_start:hi - block_start, :] += src[:, None]
                if v.end_frame <= block_end:
                    finished.append(v)
                else:
                    remaining.append(v)
            self._voices = remaining
            self._frame = block_end

        np.clip(outdata, -1.0, 1.0, out=outdata)

        # callbacks run outside the device lock; listeners take their own locks
        for v in finished:
            v.handle.finished = True
            try:
                v.on_finished(v.handle)
            except Exception:
                logger.exception("playback finish callback failed")

    def close(self):
        if self._closed:
            return
        self._closed = True
        with self._lock:
            self._voices = []
        self._stream.stop()
        self._stream.close()


class SoundDeviceProvider(DeviceProvider):
    def __init__(self, input_device: DeviceSelector = None, output_device: DeviceSelector = None):
        self.input_device = input_device
        self.output_device = output_device

    def open_input(self, sample_rate, channels, blocksize):
        return SoundDeviceInput(self.input_device, sample_rate, channels, blocksize)

    def open_output(self, sample_rate, channels):
        return SoundDeviceOutput(self.output_device, sample_rate, channels)
