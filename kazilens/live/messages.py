"""
Inbound events from the live stream.

Server messages are loosely typed; parse_server_message turns each one into
a list of typed events so nothing untyped reaches the session or playback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Literal, Optional, Union


@dataclass(frozen=True)
class TranscriptFragment:
    direction: Literal["input", "output"]  # input = the user, output = the coach
    text: str


@dataclass(frozen=True)
class AudioFragment:
    data: Union[bytes, str]  # raw PCM16 or base64 text
    mime_type: str = "audio/pcm;rate=24000"


@dataclass(frozen=True)
class Interrupted:
    pass


@dataclass(frozen=True)
class Closed:
    reason: str = ""


@dataclass(frozen=True)
class StreamError:
    message: str
    error: Optional[BaseException] = None


ServerEvent = Union[TranscriptFragment, AudioFragment, Interrupted, Closed, StreamError]


def _get(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def parse_server_message(message: Any) -> List[ServerEvent]:
    """
    Extract events from one LiveServerMessage (or an equivalent dict).
    Order: output transcript, input transcript, audio parts, interruption.
    """
    events: List[ServerEvent] = []
    content = _get(message, "server_content")
    if content is None:
        return events

    out_tr = _get(_get(content, "output_transcription"), "text")
    if out_tr:
        events.append(TranscriptFragment("output", str(out_tr)))

    in_tr = _get(_get(content, "input_transcription"), "text")
    if in_tr:
        events.append(TranscriptFragment("input", str(in_tr)))

    model_turn = _get(content, "model_turn")
    for part in _get(model_turn, "parts") or []:
        inline = _get(part, "inline_data")
        data = _get(inline, "data")
        if not data:
            continue
        mime_type = str(_get(inline, "mime_type") or "audio/pcm;rate=24000")
        if not mime_type.startswith("audio/"):
            continue
        events.append(AudioFragment(data=data, mime_type=mime_type))

    if _get(content, "interrupted"):
        events.append(Interrupted())

    return events
