from types import SimpleNamespace

import numpy as np
import pytest

from kazilens.errors import DeviceUnavailable
from kazilens.live import devices
from kazilens.live.devices import SoundDeviceInput, SoundDeviceOutput


class FakePortAudioError(Exception):
    pass


class FakeStream:
    fail_start = False

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.started = False
        self.stop_count = 0
        self.close_count = 0

    def start(self):
        if self.fail_start:
            raise FakePortAudioError("device busy")
        self.started = True

    def stop(self):
        self.stop_count += 1

    def close(self):
        self.close_count += 1


@pytest.fixture
def fake_sd(monkeypatch):
    created = []

    def make(fail_start=False):
        def factory(**kwargs):
            stream = FakeStream(**kwargs)
            stream.fail_start = fail_start
            created.append(stream)
            return stream
        return factory

    module = SimpleNamespace(
        PortAudioError=FakePortAudioError,
        InputStream=make(),
        OutputStream=make(),
        created=created,
        make=make,
    )
    monkeypatch.setattr(devices, "_sounddevice", lambda: module)
    return module


def render(output, frames):
    block = np.zeros((frames, 1), dtype=np.float32)
    output._render(block, frames, None, None)
    return block[:, 0]


class TestSoundDeviceOutput:
    def test_back_to_back_buffers_render_gaplessly(self, fake_sd):
        output = SoundDeviceOutput(None, 8, 1)
        finished = []
        first = output.play(np.full(5, 0.5, dtype=np.float32), 0.0, finished.append)
        second = output.play(np.full(5, 0.25, dtype=np.float32), first.end_time, finished.append)

        audio = np.concatenate([render(output, 4) for _ in range(3)])

        assert audio.tolist() == [0.5] * 5 + [0.25] * 5 + [0.0, 0.0]
        assert finished == [first, second]
        assert first.finished and second.finished

    def test_clock_counts_rendered_frames(self, fake_sd):
        output = SoundDeviceOutput(None, 8, 1)
        assert output.current_time == 0.0
        render(output, 4)
        render(output, 8)
        assert output.current_time == 12 / 8

    def test_stopped_handle_is_silenced(self, fake_sd):
        output = SoundDeviceOutput(None, 8, 1)
        finished = []
        handle = output.play(np.ones(8, dtype=np.float32), 0.0, finished.append)
        handle.stop()

        assert not render(output, 8).any()
        assert finished == []
        assert handle.stopped and not handle.finished

    def test_finish_callback_runs_outside_device_lock(self, fake_sd):
        output = SoundDeviceOutput(None, 8, 1)
        lock_held = []
        output.play(np.ones(2, dtype=np.float32), 0.0, lambda h: lock_held.append(output._lock.locked()))
        render(output, 4)
        assert lock_held == [False]

    def test_failed_start_closes_stream(self, fake_sd):
        fake_sd.OutputStream = fake_sd.make(fail_start=True)
        with pytest.raises(DeviceUnavailable):
            SoundDeviceOutput(None, 24000, 1)
        assert [s.close_count for s in fake_sd.created] == [1]

    def test_close_is_idempotent(self, fake_sd):
        output = SoundDeviceOutput(None, 24000, 1)
        output.close()
        output.close()
        stream = fake_sd.created[0]
        assert stream.stop_count == 1
        assert stream.close_count == 1


class TestSoundDeviceInput:
    def test_callback_receives_first_channel(self, fake_sd):
        device = SoundDeviceInput(None, 16000, 2, 4)
        stream = fake_sd.created[0]
        assert stream.kwargs["blocksize"] == 4
        blocks = []
        device.start(blocks.append)
        assert stream.started

        indata = np.array([[0.1, 0.9], [0.2, 0.9], [0.3, 0.9], [0.4, 0.9]], dtype=np.float32)
        stream.callback(indata, 4, None, None)
        indata[:] = 0

        assert len(blocks) == 1
        assert blocks[0].tolist() == pytest.approx([0.1, 0.2, 0.3, 0.4])

    def test_stopped_input_delivers_nothing(self, fake_sd):
        device = SoundDeviceInput(None, 16000, 1, 4)
        stream = fake_sd.created[0]
        blocks = []
        device.start(blocks.append)
        device.stop()
        stream.callback(np.zeros((4, 1), dtype=np.float32), 4, None, None)
        assert blocks == []

        device.close()
        device.close()
        assert stream.close_count == 1
