"""Interfaces to the native side of the bridge."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models.capture import CaptureKind, CaptureOutcome
from ..protocol import CaptureOptions


class CapabilitiesInvoker(ABC):
    """Shows a native capture UI and reports how it ended."""

    @abstractmethod
    async def capture(self, kind: CaptureKind, options: CaptureOptions) -> CaptureOutcome:
        """
        Runs one native capture and waits for its completion.

        Args:
            kind: Which capture UI to show.
            options: Options of the running command.

        Returns:
            Exactly one outcome. Failures are reported as a FAILED outcome,
            not raised.
        """


class MediaPlayer(ABC):
    """Launches the native media player."""

    @abstractmethod
    async def launch_player(self, path: str) -> None:
        """
        Opens `path` in the player.

        Raises:
            NativeCaptureError: If the player could not be launched.
        """
