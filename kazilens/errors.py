"""Error kinds surfaced by the voice session engine and the batch AI calls."""


class KaziLensError(Exception):
    """Base class for application errors."""


class DeviceUnavailable(KaziLensError):
    """Microphone or speaker could not be acquired."""


class SessionBusy(DeviceUnavailable):
    """A live session is already connecting or active and holds the devices."""


class LiveConnectionError(KaziLensError, ConnectionError):
    """The live stream could not be opened or dropped mid-session."""


class DecodeError(KaziLensError, ValueError):
    """An inbound audio fragment could not be decoded."""


class ProviderError(KaziLensError):
    """A batch AI call to the generation endpoint failed."""


class QuotaExceeded(ProviderError):
    """Rate limit still hit after all retries were spent."""

    def __init__(self, message: str = "Quota exceeded. Please wait a moment and try again."):
        super().__init__(message)


class RateLimited(ProviderError):
    """The AI endpoint answered 429 / RESOURCE_EXHAUSTED."""
