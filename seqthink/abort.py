"""Cooperative cancellation shared by the runners, the stream and the tools."""

import asyncio
from enum import Enum


class AbortReason(str, Enum):
    """Why a run was cancelled."""

    USER_STOPPED = "user-stopped"
    # The whole conversation is being discarded; partial output is dropped too.
    NEW_CHAT = "new-chat"


class AbortSignal:
    """One-shot abort flag with a reason, awaitable from coroutines."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: AbortReason | None = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> AbortReason | None:
        return self._reason

    @property
    def discards_output(self) -> bool:
        """True when the caller wants nothing back, not even partial text."""
        return self.aborted and self._reason == AbortReason.NEW_CHAT

    def abort(self, reason: AbortReason = AbortReason.USER_STOPPED) -> None:
        """Set the signal; the first reason wins."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> AbortReason | None:
        await self._event.wait()
        return self._reason
