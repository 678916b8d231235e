"""Component health registry consumed by the status aggregator."""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ComponentHealth:
    """Last reported health of a component."""

    component: str
    status: HealthStatus
    reason: str = ""
    message: str = ""
    last_transition_time: datetime = field(default_factory=datetime.utcnow)

    def same_as(self, other: Optional["ComponentHealth"]) -> bool:
        return (
            other is not None
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
        )


class HealthReporter(ABC):
    """Sink for degraded/healthy signals."""

    @abstractmethod
    def set_degraded(self, component: str, reason: str, message: str) -> None:
        pass

    @abstractmethod
    def set_healthy(self, component: str) -> None:
        pass


TransitionListener = Callable[[ComponentHealth], None]


class StatusRegistry(HealthReporter):
    """
    Process-wide health state keyed by component id.

    Writes are last-write-wins. Repeating the current state is a no-op, so
    listeners and logs only see real transitions.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._components: dict[str, ComponentHealth] = {}
        self._listeners: list[TransitionListener] = []

    def add_listener(self, listener: TransitionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def set_degraded(self, component: str, reason: str, message: str) -> None:
        self._record(
            ComponentHealth(
                component=component,
                status=HealthStatus.DEGRADED,
                reason=reason,
                message=message,
            )
        )

    def set_healthy(self, component: str) -> None:
        self._record(ComponentHealth(component=component, status=HealthStatus.HEALTHY))

    def _record(self, health: ComponentHealth) -> None:
        with self._lock:
            if health.same_as(self._components.get(health.component)):
                return
            self._components[health.component] = health
            listeners = list(self._listeners)

        if health.status == HealthStatus.DEGRADED:
            logger.warning(f"{health.component} degraded: {health.reason}: {health.message}")
        else:
            logger.info(f"{health.component} healthy")

        for listener in listeners:
            try:
                listener(health)
            except Exception as e:
                logger.error(f"Error in health transition listener: {e}", exc_info=True)

    def get(self, component: str) -> Optional[ComponentHealth]:
        with self._lock:
            return self._components.get(component)

    def is_degraded(self, component: str) -> bool:
        health = self.get(component)
        return health is not None and health.status == HealthStatus.DEGRADED

    def snapshot(self) -> dict[str, ComponentHealth]:
        with self._lock:
            return dict(self._components)


_default_registry: Optional[StatusRegistry] = None
_default_lock = threading.Lock()


def get_status_registry() -> StatusRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = StatusRegistry()
        return _default_registry
