"""
Reconciliation of pushed device status against locally issued commands.

The device notifies its full state at least once a second and on every
change, including the transitional values it passes through while applying
a command. Pending targets record what an in-flight command expects the
device to converge on; until every target resolves, pushes are absorbed
instead of being published.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Mapping, Optional

from .models import DeviceState, Field

logger = logging.getLogger(__name__)


class StatusReconciler:
    """Owns the cached DeviceState and the pending target set."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.state: Optional[DeviceState] = None
        self.last_update: Optional[float] = None
        self._pending: dict[str, object] = {}

    @property
    def pending(self) -> dict[str, object]:
        return dict(self._pending)

    def seconds_since_update(self) -> Optional[float]:
        return self.elapsed_since(self.last_update)

    def elapsed_since(self, timestamp: Optional[float]) -> Optional[float]:
        """Seconds from ``timestamp`` (a previous ``last_update``) to now."""
        if timestamp is None:
            return None
        return self._clock() - timestamp

    def add_pending(self, field: Field, value: object) -> None:
        self._pending[field.value] = value

    def clear_pending(self, field: Field) -> None:
        self._pending.pop(field.value, None)

    @contextmanager
    def pending_targets(self, targets: Mapping[Field, object]) -> Iterator[None]:
        """Register targets for the duration of a command, always releasing them."""
        for field, value in targets.items():
            self.add_pending(field, value)
        try:
            yield
        finally:
            for field in targets:
                self.clear_pending(field)

    def reconcile(self, incoming: DeviceState) -> Optional[DeviceState]:
        """Process one status push.

        Returns:
            The snapshot to publish, or None when the push is discarded or
            withheld
        """
        self.last_update = self._clock()

        changed = incoming.diff(self.state)
        if not changed:
            return None

        for name, target in list(self._pending.items()):
            if name not in changed:
                continue
            value = getattr(incoming, name)
            if value == target:
                del self._pending[name]
            elif isinstance(target, int) and value == target - 1:
                # Heuristic: the firmware briefly reports target - 1 while
                # applying a compensated write. Wait for the next push.
                logger.debug(f"Transitional {name}={value} (target {target})")
                return None
            else:
                logger.debug(f"Pending {name}={target} superseded by {value}")
                del self._pending[name]

        if self._pending:
            logger.debug(f"Withholding state, pending: {self._pending}")
            return None

        self.state = incoming
        return incoming
