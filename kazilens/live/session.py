"""
Live mock-interview session controller.

Owns the device handles, the stream handle and both pipelines for one conversation:

    IDLE --start--> CONNECTING --open--> ACTIVE --stop--> CLOSED
    CONNECTING --failure--> IDLE, CONNECTING --stop--> CLOSED
    ACTIVE --remote close / transport error--> IDLE

While ACTIVE a supervisor task runs the capture sender and the inbound receiver;
whichever ends first (normally the receiver, on remote close or error) takes the
other down with it and triggers teardown. stop() cancels the supervisor first so
no send is in flight when the stream closes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from kazilens.config import Config
from kazilens.errors import DeviceUnavailable, LiveConnectionError, SessionBusy
from kazilens.live.capture import CapturePipeline
from kazilens.live.devices import DeviceProvider, InputDevice, OutputDevice
from kazilens.live.interruption import InterruptionHandler
from kazilens.live.messages import (
    AudioFragment,
    Closed,
    Interrupted,
    ServerEvent,
    StreamError,
    TranscriptFragment,
)
from kazilens.live.playback import PlaybackPipeline
from kazilens.live.stream import LiveConfig, LiveConnector, LiveStream
from kazilens.models import SessionContext, SessionState, TranscriptLine
from kazilens.prompt import build_interviewer_instruction

logger = logging.getLogger(__name__)

TranscriptCallback = Callable[[TranscriptLine], None]


class LiveSession:
    def __init__(
        self,
        devices: DeviceProvider,
        connector: LiveConnector,
        *,
        model: Optional[str] = None,
        voice: Optional[str] = None,
        input_sample_rate: Optional[int] = None,
        output_sample_rate: Optional[int] = None,
        blocksize: Optional[int] = None,
        send_queue_maxsize: Optional[int] = None,
        transcript_window: Optional[int] = None,
        on_transcript: Optional[TranscriptCallback] = None,
    ):
        self._devices = devices
        self._connector = connector
        self.model = model or Config.LIVE_MODEL
        self.voice = voice or Config.LIVE_VOICE
        self.input_sample_rate = input_sample_rate or Config.LIVE_INPUT_SAMPLE_RATE
        self.output_sample_rate = output_sample_rate or Config.LIVE_OUTPUT_SAMPLE_RATE
        self.blocksize = blocksize or Config.LIVE_CAPTURE_BLOCKSIZE
        self.send_queue_maxsize = send_queue_maxsize or Config.LIVE_SEND_QUEUE_MAXSIZE
        self._on_transcript = on_transcript

        self._state = SessionState.IDLE
        self._transcript: Deque[TranscriptLine] = deque(maxlen=transcript_window or Config.TRANSCRIPT_WINDOW)
        self._system_instruction: Optional[str] = None

        self._input: Optional[InputDevice] = None
        self._output: Optional[OutputDevice] = None
        self._stream: Optional[LiveStream] = None
        self._supervisor: Optional[asyncio.Task] = None
        self._attempt: Optional[object] = None
        self._stop_requested = False
        self._teardown_lock = asyncio.Lock()

        self.capture: Optional[CapturePipeline] = None
        self.playback: Optional[PlaybackPipeline] = None
        self.interruption: Optional[InterruptionHandler] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> List[TranscriptLine]:
        return list(self._transcript)

    @property
    def system_instruction(self) -> Optional[str]:
        return self._system_instruction

    # -------------------- lifecycle --------------------

    async def start(self, context: SessionContext) -> None:
        """
        Open devices, connect, and go ACTIVE.

        Raises:
            SessionBusy: a session is already connecting or active
            DeviceUnavailable: microphone or speaker could not be opened (no stream is opened)
            LiveConnectionError: the live stream could not be opened
        """
        if self._state not in (SessionState.IDLE, SessionState.CLOSED):
            raise SessionBusy(f"Live session is already {self._state.value}")

        attempt = object()
        self._attempt = attempt
        self._state = SessionState.CONNECTING
        self.last_error = None
        self._transcript.clear()
        self._system_instruction = build_interviewer_instruction(context)
        logger.info("Starting live session (role=%s)", context.role)

        try:
            self._input = self._devices.open_input(self.input_sample_rate, 1, self.blocksize)
            self._output = self._devices.open_output(self.output_sample_rate, 1)
        except DeviceUnavailable as e:
            self._release_devices()
            self._state = SessionState.IDLE
            self.last_error = str(e)
            logger.error("Audio device unavailable: %s", e)
            raise

        config = LiveConfig(model=self.model, voice=self.voice, system_instruction=self._system_instruction)
        try:
            stream = await self._connector.connect(config)
        except asyncio.CancelledError:
            if self._attempt is attempt:
                self._release_devices()
                self._state = SessionState.IDLE
            raise
        except Exception as e:
            self.last_error = str(e)
            if self._attempt is not attempt:
                logger.info("Abandoned connection attempt failed: %s", e)
                return
            self._release_devices()
            self._state = SessionState.IDLE
            logger.error("Could not open live stream: %s", e)
            if isinstance(e, LiveConnectionError):
                raise
            raise LiveConnectionError(str(e)) from e

        if self._attempt is not attempt:
            # stop() ran while we were connecting; devices are already released
            logger.info("Session stopped while connecting; closing late stream")
            await stream.close()
            return

        self._stream = stream
        self.playback = PlaybackPipeline(self._output)
        self.interruption = InterruptionHandler(self.playback)
        self.capture = CapturePipeline(self._input, asyncio.get_running_loop(), maxsize=self.send_queue_maxsize)
        self._state = SessionState.ACTIVE
        self.capture.start()
        self._stop_requested = False
        self._supervisor = asyncio.create_task(self._supervise(stream), name="live-session")
        logger.info("Live session active")

    async def stop(self) -> None:
        """End the session. Safe to call in any state, any number of times."""
        state = self._state
        if state in (SessionState.IDLE, SessionState.CLOSED):
            return

        if state == SessionState.CONNECTING:
            self._attempt = None
            self._release_devices()
            self._state = SessionState.CLOSED
            logger.info("Live session stopped while connecting")
            return

        # every caller waits for the supervisor, so no send is in flight when the stream closes
        supervisor = self._supervisor
        if supervisor is not None and supervisor is not asyncio.current_task():
            if not self._stop_requested:
                self._stop_requested = True
                supervisor.cancel()
            await asyncio.wait({supervisor})

        await self._teardown(SessionState.CLOSED)

    async def _supervise(self, stream: LiveStream):
        tasks = [
            asyncio.create_task(self.capture.run_sender(stream), name="live-sender"),
            asyncio.create_task(self._receive(stream), name="live-receiver"),
        ]
        error: Optional[BaseException] = None
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for t in done:
                if not t.cancelled() and t.exception() is not None:
                    error = t.exception()
        finally:
            for t in tasks:
                if not t.done():
                    t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if error is not None:
            self.last_error = str(error)
            logger.error("Live session transport error: %s", error)
        await asyncio.shield(self._teardown(SessionState.IDLE))

    async def _teardown(self, final_state: SessionState):
        async with self._teardown_lock:
            if self._state != SessionState.ACTIVE:
                return
            if self.capture:
                self.capture.stop()
            if self.playback:
                self.playback.reset()

            stream, self._stream = self._stream, None
            if stream is not None:
                try:
                    await stream.close()
                except Exception as e:
                    logger.warning("Error closing live stream: %s", e)

            self._release_devices()
            self._state = final_state
            logger.info("Live session %s", final_state.value)

    def _release_devices(self):
        input_device, self._input = self._input, None
        output_device, self._output = self._output, None
        for device in (input_device, output_device):
            if device is None:
                continue
            try:
                device.close()
            except Exception as e:
                logger.warning("Error closing audio device: %s", e)

    # -------------------- inbound --------------------

    async def _receive(self, stream: LiveStream):
        async for event in stream.events():
            if isinstance(event, Closed):
                logger.info("Remote closed the live stream: %s", event.reason)
                return
            if isinstance(event, StreamError):
                raise LiveConnectionError(event.message)
            self._dispatch(event)

    def _dispatch(self, event: ServerEvent):
        if isinstance(event, TranscriptFragment):
            line = TranscriptLine("You" if event.direction == "input" else "Coach", event.text)
            self._transcript.append(line)
            if self._on_transcript:
                try:
                    self._on_transcript(line)
                except Exception:
                    logger.exception("transcript listener failed")
        elif isinstance(event, AudioFragment):
            self.playback.enqueue(event.data)
        elif isinstance(event, Interrupted):
            self.interruption.handle()

    # -------------------- status --------------------

    def status(self) -> Dict[str, Any]:
        capture = self.capture
        playback = self.playback
        return {
            "state": self._state.value,
            "transcript": [line.to_dict() for line in self._transcript],
            "capture": {
                "running": capture.running if capture else False,
                "chunks_captured": capture.chunks_captured if capture else 0,
                "chunks_sent": capture.chunks_sent if capture else 0,
                "chunks_dropped": capture.chunks_dropped if capture else 0,
                "queue_size": capture.queue_size if capture else 0,
            },
            "playback": {
                "pending": len(playback.pending) if playback else 0,
                "cursor": playback.cursor if playback else 0.0,
                "fragments_scheduled": playback.fragments_scheduled if playback else 0,
                "decode_errors": playback.decode_errors if playback else 0,
                "interruptions": self.interruption.interruptions if self.interruption else 0,
            },
            "last_error": self.last_error,
        }
