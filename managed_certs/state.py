"""Thread-safe mapping of ManagedCertificates to the SslCertificates they own."""

import logging
import threading
from typing import Dict, Optional, Set

from .models import ResourceKey

logger = logging.getLogger(__name__)


class CertificateState:
    """
    Records which SslCertificate was created for each ManagedCertificate.

    This is the controller's view of which provisioned certificates it owns.
    Not persisted; rebuilt from ManagedCertificate status on startup.
    """

    def __init__(self):
        """Initialize the state."""
        self._certificates: Dict[ResourceKey, str] = {}
        # Names being created right now, not yet recorded with put()
        self._pending: Set[str] = set()
        self._lock = threading.RLock()

    def put(self, key: ResourceKey, certificate_name: str) -> None:
        """Associate an SslCertificate name with a ManagedCertificate."""
        with self._lock:
            self._certificates[key] = certificate_name
        logger.debug(f"State: {key} -> {certificate_name}")

    def get(self, key: ResourceKey) -> Optional[str]:
        """
        Get the SslCertificate name for a ManagedCertificate.

        Returns:
            The certificate name, or None if no entry exists
        """
        with self._lock:
            return self._certificates.get(key)

    def delete(self, key: ResourceKey) -> None:
        """Remove the entry for a ManagedCertificate, if any."""
        with self._lock:
            removed = self._certificates.pop(key, None)
        if removed is not None:
            logger.debug(f"State: removed {key} -> {removed}")

    def all_keys(self) -> Set[ResourceKey]:
        with self._lock:
            return set(self._certificates)

    def all_certificate_names(self) -> Set[str]:
        with self._lock:
            return set(self._certificates.values())

    def mark_pending(self, certificate_name: str) -> None:
        """Protect a certificate that is being created from garbage collection."""
        with self._lock:
            self._pending.add(certificate_name)

    def clear_pending(self, certificate_name: str) -> None:
        with self._lock:
            self._pending.discard(certificate_name)

    def referenced_certificate_names(self) -> Set[str]:
        """Names owned by an entry or currently being created."""
        with self._lock:
            return set(self._certificates.values()) | self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._certificates)
