"""
Cooperative cancellation for pipeline requests.

An AbortController owns an AbortSignal that is threaded through every
layer: the transport races its in-flight call against the signal, and
retry delays stop waiting as soon as it fires.

Usage:
    controller = AbortController()
    request = PipelineRequest(url=..., abort_signal=controller.signal)
    ...
    controller.abort()
"""

import asyncio
from typing import Any, Optional

import structlog

from storage_pipeline.exceptions import AbortError

logger = structlog.get_logger(__name__)


class AbortSignal:
    """Read side of a cancellation token, backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Any = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Suspend until the signal fires."""
        await self._event.wait()

    def _trigger(self, reason: Any) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def __repr__(self) -> str:
        return f"AbortSignal(aborted={self.aborted})"


class AbortController:
    """Write side of a cancellation token."""

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        """Fire the signal. Subsequent calls are no-ops."""
        logger.debug("Abort requested", reason=reason)
        self.signal._trigger(reason)


async def delay(
    delay_in_ms: float,
    abort_signal: Optional[AbortSignal] = None,
    abort_message: str = "The delay was aborted.",
) -> None:
    """
    Wait for ``delay_in_ms`` milliseconds, unless the signal fires first.

    Args:
        delay_in_ms: Milliseconds to wait (negative values wait 0)
        abort_signal: Optional signal that cuts the wait short
        abort_message: Message for the AbortError raised on cancellation

    Raises:
        AbortError: If the signal is already aborted or fires mid-wait
    """
    seconds = max(0.0, delay_in_ms) / 1000.0

    if abort_signal is None:
        await asyncio.sleep(seconds)
        return

    if abort_signal.aborted:
        raise AbortError(abort_message)

    try:
        await asyncio.wait_for(abort_signal.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return

    raise AbortError(abort_message)
