"""Worker and resync loops of the ManagedCertificate controller."""

import logging
import queue
import threading
from typing import List, Optional, Set

from .config import CERTIFICATE_NAME_PREFIX, RESYNC_INTERVAL_SECONDS, WORKER_COUNT
from .exceptions import ProviderError, StateInitializationError
from .models import ResourceKey
from .reconciler import Reconciler
from .ssl_manager import SslCertificateManager
from .state import CertificateState
from .supervisor import SubController
from .workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)


class ManagedCertificateController(SubController):
    """
    Keeps SslCertificates in sync with ManagedCertificate objects.

    Changes reported by the informer are queued and handled by worker
    threads. A periodic resync prunes the state, deletes SslCertificates no
    ManagedCertificate owns and requeues every ManagedCertificate, so the
    controller converges even when change notifications are lost.
    """

    name = "managedcertificate-controller"

    def __init__(
        self,
        lister,
        state: CertificateState,
        ssl_manager: SslCertificateManager,
        reconciler: Reconciler,
        work_queue: Optional[RateLimitingQueue] = None,
        workers: int = WORKER_COUNT,
        resync_interval: float = RESYNC_INTERVAL_SECONDS,
    ):
        """
        Initialize the controller.

        Args:
            lister: Source of ManagedCertificates with list() and get(key)
            state: ManagedCertificate -> SslCertificate name mapping
            ssl_manager: SslCertificate lifecycle operations
            reconciler: Per-key reconciliation logic
            work_queue: Queue of ResourceKeys waiting to be reconciled
            workers: Number of worker threads
            resync_interval: Seconds between full resyncs
        """
        self.lister = lister
        self.state = state
        self.ssl_manager = ssl_manager
        self.reconciler = reconciler
        self.queue = work_queue or RateLimitingQueue(name="managedcertificates")
        self.workers = workers
        self.resync_interval = resync_interval

    def enqueue(self, key: ResourceKey) -> None:
        self.queue.add(key)

    def initialize_state(self) -> int:
        """
        Rebuild the state from the certificate names recorded in ManagedCertificate status.

        Returns:
            Number of entries loaded

        Raises:
            StateInitializationError: if the ManagedCertificates cannot be listed
        """
        try:
            mcrts = self.lister.list()
        except Exception as e:
            raise StateInitializationError(f"Could not initialize state: {e}") from e

        count = 0
        for mcrt in mcrts:
            if mcrt.status.certificate_name:
                self.state.put(mcrt.key, mcrt.status.certificate_name)
                count += 1

        logger.info(f"Initialized state with {count} SslCertificate(s)")
        return count

    def process_next_item(self) -> bool:
        """
        Reconcile one key from the queue.

        Returns:
            False once the queue has been shut down
        """
        key, shutdown = self.queue.get()
        if shutdown:
            return False

        try:
            self.reconciler.reconcile(key)
        except Exception as e:
            logger.error(f"Error reconciling {key} (attempt {self.queue.num_requeues(key) + 1}): {e}")
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)
        finally:
            self.queue.done(key)

        return True

    def run_worker(self) -> None:
        while self.process_next_item():
            pass

    def delete_obsolete_state(self, keys_in_cluster: Set[ResourceKey]) -> None:
        for key in self.state.all_keys() - keys_in_cluster:
            # Created after the listing and already provisioned by a worker
            if self.lister.get(key) is not None:
                continue
            # Probably deleted by the user while no notification reached us
            self.state.delete(key)
            logger.info(f"Deleted {key} from state, because such ManagedCertificate does not exist in the cluster")

    def delete_obsolete_ssl_certificates(self) -> List[str]:
        """
        Delete SslCertificates created by this controller that no state entry references.

        Each deletion is attempted independently.

        Returns:
            Names that could not be deleted

        Raises:
            ProviderError: if the SslCertificates cannot be listed
        """
        ssl_certificates = self.ssl_manager.ssl_client.list()
        known = self.state.referenced_certificate_names()

        failed = []
        for ssl_certificate in ssl_certificates:
            name = ssl_certificate.name
            if name in known or not name.startswith(CERTIFICATE_NAME_PREFIX):
                continue
            try:
                self.ssl_manager.delete(name)
                logger.info(f"Deleted SslCertificate {name}, because there is no such SslCertificate in state")
            except Exception as e:
                logger.error(f"Could not delete orphaned SslCertificate {name}: {e}")
                failed.append(name)
        return failed

    def synchronize_all(self) -> None:
        """Run one full resync pass."""
        mcrts = self.lister.list()
        keys_in_cluster = {mcrt.key for mcrt in mcrts}

        self.delete_obsolete_state(keys_in_cluster)

        try:
            self.delete_obsolete_ssl_certificates()
        except ProviderError as e:
            logger.error(f"Could not list SslCertificates: {e}")
            return

        for key in keys_in_cluster:
            self.enqueue(key)
        logger.debug(f"Resync queued {len(keys_in_cluster)} ManagedCertificate(s)")

    def run_resync(self, stop_event: threading.Event) -> None:
        logger.info(f"Starting periodic resync (interval: {self.resync_interval}s)")
        while not stop_event.is_set():
            try:
                self.synchronize_all()
            except Exception as e:
                logger.error(f"Unexpected error during resync: {e}")
            stop_event.wait(self.resync_interval)

    def run(self, stop_event: threading.Event, errors: queue.Queue) -> None:
        """Run workers and the resync loop until stop_event is set."""
        try:
            self.initialize_state()
        except StateInitializationError as e:
            logger.error(str(e))
            errors.put(e)
            self.queue.shut_down()
            return

        threads = [
            threading.Thread(target=self.run_worker, name=f"worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        threads.append(threading.Thread(
            target=self.run_resync,
            args=(stop_event,),
            name="resync",
            daemon=True
        ))
        for thread in threads:
            thread.start()

        stop_event.wait()
        logger.info("Stopping ManagedCertificate controller...")
        self.queue.shut_down()
        for thread in threads:
            thread.join()
