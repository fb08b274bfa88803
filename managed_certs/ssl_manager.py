"""Manipulates SslCertificates and reports provisioning API errors as events."""

import logging
from typing import Optional

from .events import EventRecorder
from .exceptions import NotFoundError, ProviderError, QuotaExceededError
from .models import ManagedCertificate, SslCertificate
from .ssl_client import SslCertificateClient

logger = logging.getLogger(__name__)


class SslCertificateManager:
    """
    Lifecycle operations on SslCertificates.

    Every operation takes an optional ManagedCertificate that the events are
    attached to. Without one (e.g. when deleting an orphaned certificate) the
    outcome is only logged.
    """

    def __init__(self, ssl_client: SslCertificateClient, events: EventRecorder):
        self.ssl_client = ssl_client
        self.events = events

    def create(self, certificate_name: str, mcrt: ManagedCertificate) -> None:
        """
        Create an SslCertificate for the domains of mcrt.

        Emits a TooManyCertificates event if the quota is exceeded, a
        BackendError event on any other error and a Create event on success.
        """
        logger.info(f"Creating SslCertificate {certificate_name} for ManagedCertificate {mcrt.key}")
        try:
            self.ssl_client.create(certificate_name, mcrt.domains)
        except QuotaExceededError as e:
            logger.warning(f"SslCertificate quota exceeded creating {certificate_name} for {mcrt.key}: {e}")
            self.events.too_many_certificates(mcrt, e)
            raise
        except ProviderError as e:
            logger.error(f"Error creating SslCertificate {certificate_name} for {mcrt.key}: {e}")
            self.events.backend_error(mcrt, e)
            raise

        self.events.create(mcrt, certificate_name)
        logger.info(f"Created SslCertificate {certificate_name} for ManagedCertificate {mcrt.key}")

    def delete(self, certificate_name: str, mcrt: Optional[ManagedCertificate] = None) -> None:
        """
        Delete an SslCertificate, existing or not.

        A missing certificate counts as deleted and produces no event.
        """
        logger.info(f"Deleting SslCertificate {certificate_name}")
        try:
            self.ssl_client.delete(certificate_name)
        except NotFoundError:
            logger.info(f"SslCertificate {certificate_name} already deleted")
            return
        except ProviderError as e:
            logger.error(f"Error deleting SslCertificate {certificate_name}: {e}")
            if mcrt is not None:
                self.events.backend_error(mcrt, e)
            raise

        if mcrt is not None:
            self.events.delete(mcrt, certificate_name)
        logger.info(f"Deleted SslCertificate {certificate_name}")

    def exists(self, certificate_name: str, mcrt: Optional[ManagedCertificate] = None) -> bool:
        try:
            return self.ssl_client.exists(certificate_name)
        except ProviderError as e:
            logger.error(f"Error checking SslCertificate {certificate_name}: {e}")
            if mcrt is not None:
                self.events.backend_error(mcrt, e)
            raise

    def get(self, certificate_name: str, mcrt: Optional[ManagedCertificate] = None) -> SslCertificate:
        try:
            return self.ssl_client.get(certificate_name)
        except ProviderError as e:
            logger.error(f"Error fetching SslCertificate {certificate_name}: {e}")
            if mcrt is not None:
                self.events.backend_error(mcrt, e)
            raise
