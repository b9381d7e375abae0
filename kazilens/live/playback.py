"""
Playback pipeline: inbound PCM16 fragments -> float buffers -> gapless schedule on the output device.

Each fragment starts at max(cursor, device now) and pushes the cursor forward by its
duration, so streamed fragments play back-to-back in arrival order without any
server-side timestamps. Cursor and pending-set updates happen under one lock because
the output device reports finished buffers from its own thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Optional, Union

from kazilens.errors import DecodeError
from kazilens.live.codec import decode_fragment
from kazilens.live.devices import OutputDevice, PlaybackHandle

logger = logging.getLogger(__name__)


class PlaybackPipeline:
    def __init__(self, output_device: OutputDevice, channels: int = 1):
        self._output = output_device
        self._channels = channels
        self._lock = threading.RLock()
        self._cursor = 0.0
        self._pending: Dict[int, PlaybackHandle] = {}

        self.fragments_scheduled = 0
        self.decode_errors = 0

    @property
    def cursor(self) -> float:
        with self._lock:
            return self._cursor

    @property
    def pending(self) -> Dict[int, PlaybackHandle]:
        """Snapshot of scheduled-but-unfinished handles, keyed by handle id."""
        with self._lock:
            return dict(self._pending)

    def enqueue(self, payload: Union[bytes, str]) -> Optional[PlaybackHandle]:
        """Decode and schedule one fragment. Malformed fragments are skipped and return None."""
        try:
            samples = decode_fragment(payload, channels=self._channels)
        except DecodeError as e:
            self.decode_errors += 1
            logger.warning("Skipping malformed audio fragment: %s", e)
            return None

        with self._lock:
            start = max(self._cursor, self._output.current_time)
            handle = self._output.play(samples, start, self._on_finished)
            self._pending[handle.id] = handle
            self._cursor = start + handle.duration
            self.fragments_scheduled += 1

        logger.debug("scheduled fragment %d at %.3fs (%.3fs)", handle.id, start, handle.duration)
        return handle

    def _on_finished(self, handle: PlaybackHandle):
        with self._lock:
            self._pending.pop(handle.id, None)

    def halt(self) -> int:
        """Stop everything pending and rewind the cursor to device now. Returns the number halted."""
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
            for handle in handles:
                handle.stop()
            self._cursor = self._output.current_time
        return len(handles)

    def reset(self):
        """Session teardown: stop everything and zero the cursor."""
        with self._lock:
            handles = list(self._pending.values())
            self._pending.clear()
            for handle in handles:
                handle.stop()
            self._cursor = 0.0
