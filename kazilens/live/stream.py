"""Bidirectional stream to the Gemini Live conversational agent."""

from __future__ import annotations

import contextlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from kazilens.errors import LiveConnectionError
from kazilens.live.codec import OutboundChunk
from kazilens.live.messages import Closed, ServerEvent, StreamError, parse_server_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveConfig:
    model: str
    voice: str
    system_instruction: str


class LiveStream(ABC):
    """An open live session: audio goes out, typed events come in."""

    @abstractmethod
    async def send_audio(self, chunk: OutboundChunk) -> None:
        pass

    @abstractmethod
    def events(self) -> AsyncIterator[ServerEvent]:
        """Yield inbound events until the stream ends; the last one is Closed or StreamError."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Idempotent."""
        pass


class LiveConnector(ABC):
    @abstractmethod
    async def connect(self, config: LiveConfig) -> LiveStream:
        """Open a stream. Raises LiveConnectionError on failure."""
        pass


def build_connect_config(config: LiveConfig) -> types.LiveConnectConfig:
    return types.LiveConnectConfig(
        response_modalities=[types.Modality.AUDIO],
        input_audio_transcription=types.AudioTranscriptionConfig(),
        output_audio_transcription=types.AudioTranscriptionConfig(),
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=config.voice)
            )
        ),
        system_instruction=types.Content(parts=[types.Part(text=config.system_instruction)]),
    )


class GeminiLiveStream(LiveStream):
    def __init__(self, session, stack: contextlib.AsyncExitStack):
        self._session = session
        self._stack = stack
        self._closed = False

    async def send_audio(self, chunk: OutboundChunk) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=chunk.data, mime_type=chunk.mime_type)
        )

    async def events(self) -> AsyncIterator[ServerEvent]:
        try:
            while not self._closed:
                # receive() ends after each turn_complete; an empty pass means the socket is gone
                got_any = False
                async for message in self._session.receive():
                    got_any = True
                    for event in parse_server_message(message):
                        yield event
                if not got_any:
                    yield Closed("stream ended")
                    return
        except ConnectionClosedOK as e:
            yield Closed(f"remote closed: {e}")
        except ConnectionClosed as e:
            yield StreamError(f"connection dropped: {e}", e)
        except Exception as e:
            yield StreamError(f"receive failed: {type(e).__name__}: {e}", e)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()


class GeminiLiveConnector(LiveConnector):
    """Opens live sessions through google-genai. The client is created lazily per connect."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    def _client(self) -> genai.Client:
        from kazilens.config import Config

        api_key = self._api_key or Config.get_gemini_key()
        if not api_key:
            raise LiveConnectionError("GEMINI_API_KEY is not set")
        return genai.Client(api_key=api_key)

    async def connect(self, config: LiveConfig) -> LiveStream:
        client = self._client()
        stack = contextlib.AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                client.aio.live.connect(model=config.model, config=build_connect_config(config))
            )
        except Exception as e:
            await stack.aclose()
            raise LiveConnectionError(f"could not open live stream: {type(e).__name__}: {e}") from e
        logger.info("Live stream open (model=%s, voice=%s)", config.model, config.voice)
        return GeminiLiveStream(session, stack)
