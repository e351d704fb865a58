"""Cancellation handles for live feeds and listeners."""

from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class Subscription:
    """Handle that releases a listener or live query when cancelled."""

    release: Callable[[], None] | None = None
    _active: bool = field(default=True, init=False)

    @property
    def active(self) -> bool:
        """Whether the subscription is still live."""
        return self._active

    def cancel(self) -> None:
        """Release the subscription. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        if self.release is not None:
            self.release()
