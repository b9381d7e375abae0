"""
Capture pipeline: microphone blocks -> PCM16 chunks -> bounded send queue -> stream.

The device callback runs on the PortAudio thread and never blocks; it hands each
encoded chunk to the event loop, where it is queued. A single sender coroutine
drains the queue onto the stream in capture order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import numpy as np

from kazilens.live.codec import OutboundChunk, make_chunk
from kazilens.live.devices import InputDevice
from kazilens.live.stream import LiveStream

logger = logging.getLogger(__name__)


class CapturePipeline:
    def __init__(self, input_device: InputDevice, loop: asyncio.AbstractEventLoop, maxsize: int = 32):
        self._input = input_device
        self._loop = loop
        self._queue: "asyncio.Queue[OutboundChunk]" = asyncio.Queue(maxsize=maxsize)
        self._running = False

        self.chunks_captured = 0
        self.chunks_sent = 0
        self.chunks_dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    def start(self):
        self._running = True
        self._input.start(self.on_block)
        logger.info("Capture started")

    def stop(self):
        if not self._running:
            return
        self._running = False
        self._input.stop()
        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1
        logger.info("Capture stopped (sent=%d, dropped=%d, discarded=%d)",
                    self.chunks_sent, self.chunks_dropped, discarded)

    def on_block(self, samples: np.ndarray):
        """Device callback. Safe to call from any thread."""
        if not self._running:
            return
        chunk = make_chunk(samples)
        try:
            self._loop.call_soon_threadsafe(self._put, chunk)
        except RuntimeError:
            # loop already closed during shutdown
            logger.debug("capture block after loop shutdown; dropped")

    def _put(self, chunk: OutboundChunk):
        if not self._running:
            return
        self.chunks_captured += 1
        # backpressure: drop oldest if behind to keep audio current
        if self._queue.full():
            self._queue.get_nowait()
            self._queue.task_done()
            self.chunks_dropped += 1
            logger.warning("Send queue full; dropped oldest chunk (total dropped=%d)", self.chunks_dropped)
        self._queue.put_nowait(chunk)

    async def run_sender(self, stream: LiveStream):
        """Drain the queue onto the stream until cancelled. Transport errors propagate."""
        while True:
            chunk = await self._queue.get()
            try:
                await stream.send_audio(chunk)
                self.chunks_sent += 1
                logger.debug("sent chunk (%d samples)", chunk.sample_count)
            finally:
                self._queue.task_done()

    async def flush(self, timeout: Optional[float] = None):
        """Wait until every queued chunk has been handed to the stream."""
        await asyncio.wait_for(self._queue.join(), timeout)
