"""Admission control for spec runs.

Each run spawns a browser-class process, so at most one may be in flight.
A second request fails fast instead of queueing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from cypress_mcp.runner.process import RunProcess

__all__ = ["RunSlot", "SlotLease"]


class SlotLease:
    """Proof of admission. Releasing it frees the slot exactly once."""

    def __init__(self, slot: RunSlot) -> None:
        self._slot = slot
        self._released = False
        self.process: RunProcess | None = None

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Free the slot. Returns False if this lease was already released."""
        if self._released:
            return False
        self._released = True
        self._slot._free(self)
        return True


class RunSlot:
    """Single-occupancy slot: ``idle`` or ``running``.

    ``try_acquire`` checks and sets in one synchronous step, so two
    coroutines can never both be admitted between event-loop switches.
    """

    def __init__(self) -> None:
        self._lease: SlotLease | None = None

    @property
    def state(self) -> Literal["idle", "running"]:
        return "idle" if self._lease is None else "running"

    @property
    def is_idle(self) -> bool:
        return self._lease is None

    @property
    def lease(self) -> SlotLease | None:
        """The lease currently holding the slot, if any."""
        return self._lease

    def try_acquire(self) -> SlotLease | None:
        """Take the slot, or return None if a run is already in flight."""
        if self._lease is not None:
            return None
        self._lease = SlotLease(self)
        return self._lease

    def reset(self) -> None:
        """Force the slot idle. Used on shutdown after the process is signalled."""
        if self._lease is not None:
            self._lease._released = True
        self._lease = None

    def _free(self, lease: SlotLease) -> None:
        # A lease orphaned by reset() must not free its successor's slot
        if self._lease is lease:
            self._lease = None
