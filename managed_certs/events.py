"""Kubernetes events attached to ManagedCertificate objects."""

import logging
from datetime import datetime, timezone

from kubernetes import client
from kubernetes.client.rest import ApiException

from .config import (
    CRD_GROUP,
    CRD_KIND,
    CRD_VERSION,
    EVENT_COMPONENT,
    EVENT_REASON_BACKEND_ERROR,
    EVENT_REASON_CREATE,
    EVENT_REASON_DELETE,
    EVENT_REASON_TOO_MANY_CERTIFICATES,
)
from .models import ManagedCertificate

logger = logging.getLogger(__name__)


class EventRecorder:
    """Emits Create, Delete, TooManyCertificates and BackendError events."""

    def __init__(self, core_api=None):
        self.v1 = core_api or client.CoreV1Api()

    def create(self, mcrt: ManagedCertificate, certificate_name: str) -> None:
        self._emit(mcrt, "Normal", EVENT_REASON_CREATE, f"Create SslCertificate {certificate_name}")

    def delete(self, mcrt: ManagedCertificate, certificate_name: str) -> None:
        self._emit(mcrt, "Normal", EVENT_REASON_DELETE, f"Delete SslCertificate {certificate_name}")

    def too_many_certificates(self, mcrt: ManagedCertificate, err: Exception) -> None:
        self._emit(mcrt, "Warning", EVENT_REASON_TOO_MANY_CERTIFICATES, f"Too many certificates: {err}")

    def backend_error(self, mcrt: ManagedCertificate, err: Exception) -> None:
        self._emit(mcrt, "Warning", EVENT_REASON_BACKEND_ERROR, str(err))

    def _emit(self, mcrt: ManagedCertificate, type_: str, reason: str, message: str) -> None:
        now = datetime.now(timezone.utc)
        event = client.CoreV1Event(
            metadata=client.V1ObjectMeta(generate_name=f"{mcrt.name}-", namespace=mcrt.namespace),
            type=type_,
            reason=reason,
            message=message,
            involved_object=client.V1ObjectReference(
                api_version=f"{CRD_GROUP}/{CRD_VERSION}",
                kind=CRD_KIND,
                name=mcrt.name,
                namespace=mcrt.namespace,
                uid=mcrt.uid or None,
            ),
            source=client.V1EventSource(component=EVENT_COMPONENT),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )

        try:
            self.v1.create_namespaced_event(namespace=mcrt.namespace, body=event)
            logger.debug(f"Event {reason} for {mcrt.key}: {message}")
        except ApiException as e:
            # Events are best-effort
            logger.warning(f"Could not record {reason} event for {mcrt.key}: {e}")
