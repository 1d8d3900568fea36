"""Audio acquisition for realtime transports.

The WebRTC flow sends live microphone tracks; the WebSocket flow sends audio that was captured beforehand. Both sources
are protocols so that applications can plug in their own capture.
"""

import logging
from typing import Iterator, Protocol

from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from ..types.exceptions import NegotiationError

logger = logging.getLogger(__name__)

MICROPHONE_DENIED = "Microphone permission denied"


class MicrophoneSource(Protocol):
    """Live audio input."""

    async def open(self) -> list[MediaStreamTrack]:
        """Acquire the microphone and return its audio tracks.

        Raises:
            NegotiationError: If the microphone cannot be acquired.
        """
        ...

    async def stop(self) -> None:
        """Stop every acquired track."""
        ...


class AudioSource(Protocol):
    """Buffered audio input."""

    async def read(self) -> bytes:
        """Return the buffered audio in the session's input format."""
        ...

    async def stop(self) -> None:
        """Release the buffer."""
        ...


class MediaPlayerMicrophone:
    """Microphone backed by an FFmpeg capture device.

    Attributes:
        device: Capture device, e.g. "default" for PulseAudio or "hw:0" for ALSA.
        format: FFmpeg input format, e.g. "pulse", "alsa", "avfoundation".
    """

    def __init__(self, device: str = "default", format: str = "pulse", options: dict[str, str] | None = None) -> None:
        """Initialize the microphone.

        Args:
            device: Capture device.
            format: FFmpeg input format.
            options: FFmpeg input options.
        """
        self.device = device
        self.format = format
        self._options = options or {}
        self._player: MediaPlayer | None = None

    async def open(self) -> list[MediaStreamTrack]:
        """Open the capture device."""
        try:
            self._player = MediaPlayer(self.device, format=self.format, options=self._options)
        except Exception as error:
            logger.warning(
                "device=<%s>, format=<%s>, error=<%s> | failed to open microphone", self.device, self.format, error
            )
            raise NegotiationError(MICROPHONE_DENIED) from error

        if self._player.audio is None:
            raise NegotiationError(MICROPHONE_DENIED)

        logger.debug("device=<%s>, format=<%s> | microphone opened", self.device, self.format)
        return [self._player.audio]

    async def stop(self) -> None:
        """Stop the audio track."""
        player, self._player = self._player, None
        if player is not None and player.audio is not None:
            player.audio.stop()


class PcmBufferSource:
    """Audio captured into memory before the session starts."""

    def __init__(self, data: bytes) -> None:
        """Initialize with raw audio bytes."""
        self._data: bytes | None = data

    async def read(self) -> bytes:
        """Return the buffered audio."""
        return self._data or b""

    async def stop(self) -> None:
        """Drop the buffer."""
        self._data = None


def iter_chunks(data: bytes, size: int) -> Iterator[bytes]:
    """Split audio into chunks of at most `size` bytes."""
    for offset in range(0, len(data), size):
        yield data[offset : offset + size]
