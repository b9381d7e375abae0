"""Realtime voice session engine for mock-interview practice."""

from kazilens.live.session import LiveSession
from kazilens.live.devices import DeviceProvider, SoundDeviceProvider
from kazilens.live.stream import GeminiLiveConnector, LiveConnector


def create_live_session(**kwargs) -> LiveSession:
    """Build a session wired to the local sound devices and Gemini Live."""
    from kazilens.config import Config

    devices = SoundDeviceProvider(Config.LIVE_INPUT_DEVICE, Config.LIVE_OUTPUT_DEVICE)
    return LiveSession(devices, GeminiLiveConnector(), **kwargs)


__all__ = [
    "LiveSession",
    "DeviceProvider",
    "SoundDeviceProvider",
    "LiveConnector",
    "GeminiLiveConnector",
    "create_live_session",
]
