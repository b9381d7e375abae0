"""Barge-in: the user started talking over the coach, so drop everything queued for playback."""

import logging

from kazilens.live.playback import PlaybackPipeline

logger = logging.getLogger(__name__)


class InterruptionHandler:
    def __init__(self, playback: PlaybackPipeline):
        self._playback = playback
        self.interruptions = 0

    def handle(self) -> int:
        halted = self._playback.halt()
        self.interruptions += 1
        logger.info("Interrupted: halted %d scheduled buffer(s), cursor reset to %.3fs",
                    halted, self._playback.cursor)
        return halted
