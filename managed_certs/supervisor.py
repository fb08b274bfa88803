"""Starts and stops the controller loops together."""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .config import CACHE_SYNC_TIMEOUT_SECONDS
from .exceptions import CacheSyncTimeout

logger = logging.getLogger(__name__)


class SubController(ABC):
    """A loop run by the Controller in its own thread."""

    name = "subcontroller"

    @abstractmethod
    def run(self, stop_event: threading.Event, errors: queue.Queue) -> None:
        """
        Run until stop_event is set.

        Fatal errors are put on the errors queue, which makes the Controller
        stop every sub-controller.
        """
        pass


class Controller:
    """Runs sub-controllers once the informer cache has synced."""

    def __init__(
        self,
        informer,
        sub_controllers: List[SubController],
        cache_sync_timeout: float = CACHE_SYNC_TIMEOUT_SECONDS,
    ):
        """
        Initialize the controller.

        Args:
            informer: Change notification source with start() and wait_for_cache_sync()
            sub_controllers: Loops to run
            cache_sync_timeout: Seconds to wait for the informer cache
        """
        self.informer = informer
        self.sub_controllers = sub_controllers
        self.cache_sync_timeout = cache_sync_timeout

    def run(self, stop_event: threading.Event) -> None:
        """
        Run until stop_event is set or a sub-controller reports a fatal error.

        The informer watch thread and every sub-controller have stopped when
        this returns.

        Raises:
            CacheSyncTimeout: if the informer cache did not sync in time
            Exception: the first fatal error reported by a sub-controller
        """
        informer_stop = threading.Event()
        informer_thread = self.informer.start(informer_stop)
        try:
            self._run_sub_controllers(stop_event)
        finally:
            informer_stop.set()
            informer_thread.join()
            logger.info("Informer stopped")

    def _run_sub_controllers(self, stop_event: threading.Event) -> None:
        logger.info("Waiting for ManagedCertificate cache sync")
        if not self.informer.wait_for_cache_sync(self.cache_sync_timeout, stop_event):
            if stop_event.is_set():
                logger.info("Received stop signal before cache sync")
                return
            raise CacheSyncTimeout("Timed out waiting for cache sync")
        logger.info("Cache synced")

        errors: queue.Queue = queue.Queue()
        stop_events = []
        threads = []
        for sub_controller in self.sub_controllers:
            sub_stop = threading.Event()
            thread = threading.Thread(
                target=sub_controller.run,
                args=(sub_stop, errors),
                name=sub_controller.name,
                daemon=True
            )
            stop_events.append(sub_stop)
            threads.append(thread)
            thread.start()

        logger.info("Waiting for stop signal or error")
        error = self._wait(stop_event, errors)

        logger.info("Shutting down")
        for sub_stop in stop_events:
            sub_stop.set()
        for thread in threads:
            thread.join()

        if error is not None:
            raise error

    @staticmethod
    def _wait(stop_event: threading.Event, errors: queue.Queue) -> Optional[Exception]:
        while not stop_event.is_set():
            try:
                error = errors.get(timeout=0.5)
            except queue.Empty:
                continue
            logger.error(f"Sub-controller failed: {error}")
            return error

        logger.info("Received stop signal")
        return None
