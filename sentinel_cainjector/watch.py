"""ConfigMap watch and the dispatch loop that drives reconciliation passes."""

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from kubernetes import watch as k8s_watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from .cluster import ClusterConnection
from .config import Settings, get_settings
from .context import ReconcileContext
from .filters import accepts
from .models import CANONICAL_BUNDLE_REF, PassResult, ReconcileRequest, WatchEvent
from .reconciler import ReconcileDriver
from .retry import RetryPolicy
from .status import get_status_registry
from .store import ConfigMapStore

logger = logging.getLogger(__name__)


class ConfigMapWatcher:
    """
    Watches ConfigMaps in every namespace until stopped.

    Each watch request is bounded by a server-side timeout and resumed from
    the last seen resourceVersion, so ``stop()`` takes effect within one
    timeout even when no events arrive. Transport and API errors restart the
    watch with capped exponential backoff; an expired resourceVersion (410)
    restarts it from the current state.
    """

    def __init__(
        self,
        cluster: ClusterConnection,
        timeout_seconds: int = 60,
        max_backoff_seconds: float = 30.0,
        initial_backoff_seconds: float = 1.0,
    ):
        """
        Initialize ConfigMap watcher.

        Args:
            cluster: Cluster connection
            timeout_seconds: Server-side timeout of a single watch request
            max_backoff_seconds: Upper bound on the delay between failed watches
            initial_backoff_seconds: Delay after the first failed watch
        """
        self.cluster = cluster
        self.core_v1 = cluster.core_v1
        self.timeout_seconds = timeout_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.initial_backoff_seconds = initial_backoff_seconds
        self._watch = k8s_watch.Watch()
        self._stopped = threading.Event()
        self._handlers: list[Callable[[WatchEvent], None]] = []

    def register_handler(self, handler: Callable[[WatchEvent], None]) -> None:
        """
        Register a handler for watch events.

        Args:
            handler: Callback function that takes WatchEvent
        """
        self._handlers.append(handler)

    def _emit_event(self, event: WatchEvent) -> None:
        for handler in self._handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in watch event handler: {e}", exc_info=True)

    @staticmethod
    def to_watch_event(raw: dict[str, Any]) -> Optional[WatchEvent]:
        """Convert a raw watch stream item, None for items without a ConfigMap."""
        obj = raw.get("object")
        metadata = getattr(obj, "metadata", None)
        if metadata is None or not metadata.name:
            return None
        return WatchEvent(
            event_type=raw["type"],
            name=metadata.name,
            namespace=metadata.namespace,
            labels=dict(metadata.labels or {}),
            resource_version=metadata.resource_version,
            timestamp=datetime.utcnow(),
        )

    def _backoff(self, failures: int) -> float:
        delay = self.initial_backoff_seconds * (2 ** (failures - 1))
        return min(delay, self.max_backoff_seconds)

    def watch(self) -> None:
        """Watch ConfigMaps for changes until ``stop()`` is called."""
        resource_version: Optional[str] = None
        failures = 0
        while not self._stopped.is_set():
            try:
                logger.info(f"Starting watch on configmaps in all namespaces (from {resource_version})")
                for raw in self._watch.stream(
                    self.core_v1.list_config_map_for_all_namespaces,
                    resource_version=resource_version,
                    timeout_seconds=self.timeout_seconds,
                ):
                    event = self.to_watch_event(raw)
                    if event is None:
                        continue
                    resource_version = event.resource_version
                    failures = 0
                    self._emit_event(event)
                continue
            except ApiException as e:
                if e.status == 410:  # Resource version too old
                    logger.warning("Watch expired, restarting...")
                    resource_version = None
                    continue
                error: Exception = e
            except HTTPError as e:
                error = e

            failures += 1
            delay = self._backoff(failures)
            logger.warning(f"Watch on configmaps failed ({error}), retrying in {delay:.1f}s")
            self._stopped.wait(delay)

        logger.info("ConfigMap watch stopped")

    def stop(self) -> None:
        """Stop watching; an in-flight request ends at its timeout at the latest."""
        self._stopped.set()
        self._watch.stop()


class InjectorController:
    """
    Dispatches filtered ConfigMap notifications to reconciliation passes.

    Requests are deduplicated while queued and a request is never processed
    by two workers at once; a request that arrives while its key is being
    processed runs again afterwards. Passes that ask for requeue come back
    with per-key exponential backoff.
    """

    def __init__(
        self,
        driver: ReconcileDriver,
        watcher: ConfigMapWatcher,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the controller.

        Args:
            driver: Reconcile driver run for each request
            watcher: ConfigMap watcher feeding notifications
            settings: Application settings
        """
        self.driver = driver
        self.watcher = watcher
        self.settings = settings or get_settings()
        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._dirty: set[ReconcileRequest] = set()
        self._processing: set[ReconcileRequest] = set()
        self._failures: dict[ReconcileRequest, int] = {}
        self._tasks: list[asyncio.Task] = []

    def _handle_event(self, event: WatchEvent) -> None:
        """Called from the watch thread."""
        if not self._running or self._loop is None:
            return
        if not accepts(event):
            return

        logger.debug(f"Received {event.event_type} event for configmap {event.ref}")
        request = ReconcileRequest.for_ref(event.ref)
        self._loop.call_soon_threadsafe(self.enqueue, request)

    def enqueue(self, request: ReconcileRequest) -> None:
        """Queue ``request`` unless it is already waiting."""
        if self._queue is None or request in self._dirty:
            return
        self._dirty.add(request)
        if request in self._processing:
            return
        self._queue.put_nowait(request)

    def _requeue_after(self, request: ReconcileRequest) -> float:
        failures = self._failures.get(request, 0) + 1
        self._failures[request] = failures
        delay = self.settings.requeue_base_delay_seconds * (2 ** (failures - 1))
        return min(delay, self.settings.requeue_max_delay_seconds)

    async def _worker(self, worker_id: int) -> None:
        while self._running:
            request = await self._queue.get()
            self._dirty.discard(request)
            self._processing.add(request)
            try:
                result = await self._process(request)
                if result is not None and result.requeue:
                    delay = self._requeue_after(request)
                    logger.info(f"Requeueing {request.ref} in {delay:.3f}s ({result.condition.value})")
                    self._loop.call_later(delay, self.enqueue, request)
                elif result is not None:
                    self._failures.pop(request, None)
            finally:
                self._processing.discard(request)
                if request in self._dirty:
                    self._queue.put_nowait(request)
                self._queue.task_done()

    async def _process(self, request: ReconcileRequest) -> Optional[PassResult]:
        ctx = ReconcileContext(timeout=self.settings.reconcile_timeout_seconds)
        try:
            return await asyncio.to_thread(self.driver.reconcile, request, ctx)
        except asyncio.CancelledError:
            ctx.cancel()
            raise
        except Exception as e:
            logger.error(f"Error reconciling configmap {request.ref}: {e}", exc_info=True)
            return None

    async def _periodic_resync(self) -> None:
        """Re-enqueue the canonical bundle at a fixed interval."""
        while self._running:
            try:
                await asyncio.sleep(self.settings.resync_interval_seconds)
                logger.debug("Running periodic resync")
                self.enqueue(ReconcileRequest.for_ref(CANONICAL_BUNDLE_REF))
            except asyncio.CancelledError:
                break

    async def _run_watch(self) -> None:
        try:
            await asyncio.to_thread(self.watcher.watch)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"ConfigMap watch terminated: {e}", exc_info=True)

    async def start(self) -> None:
        """Start the controller."""
        if self._running:
            logger.warning("Injector controller already running")
            return

        self._running = True
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        logger.info(
            f"Starting injector controller with "
            f"{self.settings.max_concurrent_reconciles} workers"
        )

        self.watcher.register_handler(self._handle_event)
        self._tasks.append(asyncio.create_task(self._run_watch()))
        for worker_id in range(self.settings.max_concurrent_reconciles):
            self._tasks.append(asyncio.create_task(self._worker(worker_id)))
        self._tasks.append(asyncio.create_task(self._periodic_resync()))

        # Bring everything in line once at startup.
        self.enqueue(ReconcileRequest.for_ref(CANONICAL_BUNDLE_REF))

    async def stop(self) -> None:
        """Stop the controller."""
        logger.info("Stopping injector controller")
        self._running = False
        self.watcher.stop()

        for task in self._tasks:
            task.cancel()

        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()


def create_controller(settings: Optional[Settings] = None) -> InjectorController:
    """
    Wire an InjectorController against the configured cluster.

    Args:
        settings: Application settings (cached settings when omitted)

    Returns:
        A controller ready to ``start()``
    """
    settings = settings or get_settings()
    cluster = ClusterConnection.from_settings(settings)
    driver = ReconcileDriver(
        ConfigMapStore(cluster),
        get_status_registry(),
        retry_policy=RetryPolicy.from_settings(settings),
    )
    watcher = ConfigMapWatcher(
        cluster,
        timeout_seconds=settings.watch_timeout_seconds,
        max_backoff_seconds=settings.watch_max_backoff_seconds,
    )
    return InjectorController(driver, watcher, settings)
