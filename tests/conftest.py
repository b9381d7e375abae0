"""Fakes for the device and stream boundaries of the live session."""

import asyncio
from typing import List, Optional

import numpy as np
import pytest

from kazilens.errors import DeviceUnavailable, LiveConnectionError
from kazilens.live.devices import DeviceProvider, InputDevice, OutputDevice, PlaybackHandle
from kazilens.live.messages import Closed, StreamError
from kazilens.live.stream import LiveConfig, LiveConnector, LiveStream


class FakeInput(InputDevice):
    def __init__(self, sample_rate, channels, blocksize):
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = blocksize
        self.callback = None
        self.started = False
        self.close_count = 0

    @property
    def closed(self):
        return self.close_count > 0

    def start(self, callback):
        self.callback = callback
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.close_count += 1
        self.callback = None

    def feed(self, samples):
        """Simulate one capture callback from the audio thread."""
        if self.started and self.callback is not None:
            self.callback(np.asarray(samples, dtype=np.float32))


class FakeOutput(OutputDevice):
    def __init__(self, sample_rate, channels):
        self.sample_rate = sample_rate
        self.channels = channels
        self.now = 0.0
        self.played: List[PlaybackHandle] = []
        self._callbacks = {}
        self.close_count = 0

    @property
    def closed(self):
        return self.close_count > 0

    @property
    def current_time(self):
        return self.now

    def play(self, samples, start_at, on_finished):
        handle = PlaybackHandle(start_at, len(samples) / self.sample_rate)
        self.played.append(handle)
        self._callbacks[handle.id] = on_finished
        return handle

    def finish(self, handle):
        """Simulate the device reaching the end of a scheduled buffer."""
        handle.finished = True
        self._callbacks.pop(handle.id)(handle)

    def close(self):
        self.close_count += 1


class FakeDeviceProvider(DeviceProvider):
    def __init__(self, fail_input=False, fail_output=False):
        self.fail_input = fail_input
        self.fail_output = fail_output
        self.inputs: List[FakeInput] = []
        self.outputs: List[FakeOutput] = []

    def open_input(self, sample_rate, channels, blocksize):
        if self.fail_input:
            raise DeviceUnavailable("microphone permission denied")
        device = FakeInput(sample_rate, channels, blocksize)
        self.inputs.append(device)
        return device

    def open_output(self, sample_rate, channels):
        if self.fail_output:
            raise DeviceUnavailable("no speaker")
        device = FakeOutput(sample_rate, channels)
        self.outputs.append(device)
        return device

    def leaked(self):
        """Devices opened but not closed exactly once."""
        return [d for d in self.inputs + self.outputs if d.close_count != 1]


class FakeStream(LiveStream):
    def __init__(self):
        self.sent = []
        self.close_count = 0
        self.fail_send = False
        self._events: "asyncio.Queue" = asyncio.Queue()

    @property
    def closed(self):
        return self.close_count > 0

    def push(self, event):
        self._events.put_nowait(event)

    async def send_audio(self, chunk):
        if self.fail_send:
            raise ConnectionResetError("socket reset")
        self.sent.append(chunk)

    async def events(self):
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, (Closed, StreamError)):
                return

    async def close(self):
        self.close_count += 1


class FakeConnector(LiveConnector):
    def __init__(self, stream: Optional[FakeStream] = None, fail: bool = False,
                 gate: Optional[asyncio.Event] = None):
        self.stream = stream or FakeStream()
        self.fail = fail
        self.gate = gate
        self.configs: List[LiveConfig] = []

    async def connect(self, config):
        self.configs.append(config)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise LiveConnectionError("connection refused")
        return self.stream


async def settle(rounds: int = 20):
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def wait_for_state(session, state, timeout: float = 1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while session.state != state:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"session stuck in {session.state}, expected {state}")
        await asyncio.sleep(0.005)


def pcm_silence(seconds: float, sample_rate: int = 24000) -> bytes:
    return bytes(2 * int(round(seconds * sample_rate)))


@pytest.fixture
def devices():
    return FakeDeviceProvider()


@pytest.fixture
def stream():
    return FakeStream()


@pytest.fixture
def connector(stream):
    return FakeConnector(stream)
