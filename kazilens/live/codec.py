"""PCM16 encode/decode helpers shared by the capture and playback pipelines."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Union

import numpy as np

from kazilens.errors import DecodeError

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

_PCM_SCALE = 32768.0


@dataclass
class OutboundChunk:
    """One captured block, encoded and tagged for the outbound stream."""
    data: bytes
    mime_type: str = INPUT_MIME_TYPE

    @property
    def sample_count(self) -> int:
        return len(self.data) // 2

    def to_dict(self):
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "mimeType": self.mime_type,
        }


def _first_channel(samples: np.ndarray) -> np.ndarray:
    x = np.asarray(samples)
    if x.ndim == 2 and x.shape[1] >= 1:
        return x[:, 0]
    return x.reshape(-1)


def float_to_pcm16(samples) -> bytes:
    """
    Convert float samples in [-1, 1] to PCM16 little-endian bytes.
    Scales by 32768 and clips so a full-scale +1.0 lands on 32767 instead of wrapping.
    """
    f = _first_channel(samples).astype(np.float32)
    scaled = np.clip(f * _PCM_SCALE, -32768.0, 32767.0)
    return scaled.astype("<i2").tobytes(order="C")


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """
    Convert PCM16 little-endian bytes to float32 samples in [-1, 1].
    Returns shape (frames,) for mono, (frames, channels) otherwise.
    """
    if not data:
        raise DecodeError("empty audio fragment")
    frame_bytes = 2 * channels
    if len(data) % frame_bytes:
        raise DecodeError(f"fragment length {len(data)} is not a multiple of {frame_bytes}")

    f = np.frombuffer(data, dtype="<i2").astype(np.float32) / _PCM_SCALE
    if channels == 1:
        return f
    return f.reshape(-1, channels)


def decode_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"invalid base64 audio: {e}") from e


def decode_fragment(payload: Union[bytes, bytearray, str], channels: int = 1) -> np.ndarray:
    """Decode an inbound fragment (raw bytes or base64 text) to float32 samples."""
    if isinstance(payload, str):
        payload = decode_base64(payload)
    return pcm16_to_float(bytes(payload), channels=channels)


def make_chunk(samples) -> OutboundChunk:
    """Encode one capture block into an outbound chunk."""
    return OutboundChunk(data=float_to_pcm16(samples))
