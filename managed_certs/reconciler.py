"""Reconciliation logic for a single ManagedCertificate."""

import logging
import uuid
from typing import Callable

from kubernetes.client.rest import ApiException

from .config import CERTIFICATE_NAME_PREFIX
from .crd_client import ManagedCertificateClient
from .models import ManagedCertificate, ResourceKey, SslCertificate
from .ssl_manager import SslCertificateManager
from .state import CertificateState

logger = logging.getLogger(__name__)


def random_certificate_name() -> str:
    """Generate a name for a new SslCertificate."""
    return f"{CERTIFICATE_NAME_PREFIX}{uuid.uuid4()}"


class Reconciler:
    """Brings the SslCertificate of one ManagedCertificate in line with the object."""

    def __init__(
        self,
        lister,
        state: CertificateState,
        ssl_manager: SslCertificateManager,
        crd_client: ManagedCertificateClient,
        name_generator: Callable[[], str] = random_certificate_name,
    ):
        """
        Initialize the reconciler.

        Args:
            lister: Source of ManagedCertificates with a get(key) method
            state: ManagedCertificate -> SslCertificate name mapping
            ssl_manager: SslCertificate lifecycle operations
            crd_client: Client used to write status back
            name_generator: Produces names for new SslCertificates
        """
        self.lister = lister
        self.state = state
        self.ssl_manager = ssl_manager
        self.crd_client = crd_client
        self.name_generator = name_generator

    def reconcile(self, key: ResourceKey) -> None:
        """
        Reconcile the ManagedCertificate identified by key.

        Raises on any failed external call; the caller requeues the key.
        """
        mcrt = self.lister.get(key)
        certificate_name = self.state.get(key)

        if mcrt is None:
            if certificate_name is None:
                logger.debug(f"ManagedCertificate {key} is gone and owns nothing, no action needed")
                return

            logger.info(f"ManagedCertificate {key} was deleted, removing SslCertificate {certificate_name}")
            # Events can still be recorded against the deleted object
            self.ssl_manager.delete(certificate_name, ManagedCertificate(namespace=key.namespace, name=key.name))
            self.state.delete(key)
            return

        problems = mcrt.validate()
        if problems:
            logger.warning(f"Skipping invalid ManagedCertificate {key}: {'; '.join(problems)}")
            return

        if certificate_name is not None:
            if self.ssl_manager.exists(certificate_name, mcrt):
                self._update_status(mcrt, self.ssl_manager.get(certificate_name, mcrt))
                return
            logger.info(f"SslCertificate {certificate_name} of {key} does not exist, recreating it")
        else:
            certificate_name = self.name_generator()

        self._create(mcrt, certificate_name)
        self._update_status(mcrt, self.ssl_manager.get(certificate_name, mcrt))

    def _create(self, mcrt: ManagedCertificate, certificate_name: str) -> None:
        self.state.mark_pending(certificate_name)
        try:
            self.ssl_manager.create(certificate_name, mcrt)
            self.state.put(mcrt.key, certificate_name)
        finally:
            self.state.clear_pending(certificate_name)

    def _update_status(self, mcrt: ManagedCertificate, ssl_certificate: SslCertificate) -> None:
        """Write the observed SslCertificate status to the ManagedCertificate if it changed."""
        status = ssl_certificate.to_status()
        if status == mcrt.status:
            return

        try:
            self.crd_client.update_status(mcrt.key, status)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"ManagedCertificate {mcrt.key} disappeared before its status was updated")
                return
            raise

        logger.info(f"ManagedCertificate {mcrt.key} status: {status.certificate_status or 'unknown'}")
