"""Watches ManagedCertificate objects and keeps a local cache of them."""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from kubernetes.client.rest import ApiException

from .config import WATCH_RETRY_SECONDS, WATCH_TIMEOUT_SECONDS
from .crd_client import ManagedCertificateClient
from .models import ManagedCertificate, ResourceKey

logger = logging.getLogger(__name__)

Handler = Callable[[ResourceKey], None]


class ManagedCertificateInformer:
    """
    List-and-watch cache of ManagedCertificates.

    Subscribers registered with add_handler are called with the key of every
    object that is added, modified or deleted. Handlers are called
    synchronously from the watch thread and must not block.
    """

    def __init__(self, crd_client: ManagedCertificateClient, namespace: str = ""):
        """
        Initialize the informer.

        Args:
            crd_client: Client for the ManagedCertificate CRD
            namespace: Namespace to watch ("" for all namespaces)
        """
        self.crd_client = crd_client
        self.namespace = namespace

        self._cache: Dict[ResourceKey, ManagedCertificate] = {}
        self._lock = threading.RLock()
        self._handlers: List[Handler] = []
        self._synced = threading.Event()
        self._resource_version = ""

    def add_handler(self, handler: Handler) -> None:
        """Subscribe to changes of ManagedCertificates."""
        self._handlers.append(handler)

    def has_synced(self) -> bool:
        """True once the initial list has been loaded into the cache."""
        return self._synced.is_set()

    def wait_for_cache_sync(self, timeout: float, stop_event: Optional[threading.Event] = None) -> bool:
        """
        Block until the cache has synced.

        Returns:
            True if synced, False on timeout or if stop_event was set first
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._synced.is_set()
            if self._synced.wait(timeout=min(1.0, remaining)):
                return True
            if stop_event is not None and stop_event.is_set():
                return False

    def get(self, key: ResourceKey) -> Optional[ManagedCertificate]:
        with self._lock:
            return self._cache.get(key)

    def list(self) -> List[ManagedCertificate]:
        with self._lock:
            return list(self._cache.values())

    def _notify(self, key: ResourceKey) -> None:
        for handler in self._handlers:
            try:
                handler(key)
            except Exception as e:
                logger.error(f"Handler failed for {key}: {e}")

    def relist(self) -> None:
        """Replace the cache with a fresh list, notifying about every change."""
        items, resource_version = self.crd_client.list_certificates(self.namespace)
        fresh = {}
        for item in items:
            mcrt = ManagedCertificate.from_crd(item)
            fresh[mcrt.key] = mcrt

        with self._lock:
            removed = set(self._cache) - set(fresh)
            self._cache = fresh
            self._resource_version = resource_version

        self._synced.set()
        logger.info(f"Listed {len(fresh)} ManagedCertificates")

        for key in list(fresh) + sorted(removed):
            self._notify(key)

    def handle_event(self, event_type: str, crd_object: dict) -> None:
        """
        Apply a watch event to the cache.

        Args:
            event_type: ADDED, MODIFIED, DELETED or BOOKMARK
            crd_object: The ManagedCertificate object from the event
        """
        resource_version = crd_object.get("metadata", {}).get("resourceVersion", "")
        if resource_version:
            self._resource_version = resource_version

        if event_type == "BOOKMARK":
            return

        mcrt = ManagedCertificate.from_crd(crd_object)
        with self._lock:
            if event_type in ("ADDED", "MODIFIED"):
                self._cache[mcrt.key] = mcrt
            elif event_type == "DELETED":
                self._cache.pop(mcrt.key, None)
            else:
                logger.warning(f"Ignoring {event_type} event for {mcrt.key}")
                return

        logger.debug(f"ManagedCertificate {event_type}: {mcrt.key}")
        self._notify(mcrt.key)

    def watch(self, stop_event: threading.Event) -> None:
        """Watch for ManagedCertificate events until stop_event is set."""
        logger.info("Starting ManagedCertificate watcher...")
        needs_list = True

        while not stop_event.is_set():
            try:
                if needs_list:
                    self.relist()
                    needs_list = False

                for event in self.crd_client.watch_certificates(
                    namespace=self.namespace,
                    resource_version=self._resource_version,
                    timeout=WATCH_TIMEOUT_SECONDS
                ):
                    if stop_event.is_set():
                        break

                    if event["type"] == "ERROR":
                        # Typically 410 Gone: our resourceVersion is too old
                        logger.info(f"Watch returned an error, relisting: {event['object']}")
                        needs_list = True
                        break

                    self.handle_event(event["type"], event["object"])

            except ApiException as e:
                logger.error(f"ManagedCertificate watch error: {e}")
                needs_list = needs_list or e.status == 410
                stop_event.wait(WATCH_RETRY_SECONDS)
            except Exception as e:
                logger.error(f"Unexpected error in ManagedCertificate watcher: {e}")
                needs_list = True
                stop_event.wait(WATCH_RETRY_SECONDS)

    def start(self, stop_event: threading.Event) -> threading.Thread:
        """Run the watcher in a background thread."""
        thread = threading.Thread(
            target=self.watch,
            args=(stop_event,),
            name="managedcertificate-watcher",
            daemon=True
        )
        thread.start()
        return thread
