"""Client for interacting with the ManagedCertificate CRD."""

import logging
from typing import Any, Dict, Iterator, List, Tuple

from kubernetes import client, watch

from .config import CRD_GROUP, CRD_PLURAL, CRD_VERSION, WATCH_TIMEOUT_SECONDS
from .models import CertificateStatus, ResourceKey

logger = logging.getLogger(__name__)


class ManagedCertificateClient:
    """Client for ManagedCertificate custom resources."""

    def __init__(self, custom_api=None):
        """Initialize the CRD client."""
        self.custom_api = custom_api or client.CustomObjectsApi()

    def list_certificates(self, namespace: str = "") -> Tuple[List[Dict[str, Any]], str]:
        """
        List all ManagedCertificate objects.

        Args:
            namespace: Namespace to list from ("" for all namespaces)

        Returns:
            Tuple of (objects, resourceVersion of the list)

        Raises:
            ApiException: if the list call fails
        """
        if namespace:
            response = self.custom_api.list_namespaced_custom_object(
                group=CRD_GROUP,
                version=CRD_VERSION,
                namespace=namespace,
                plural=CRD_PLURAL
            )
        else:
            response = self.custom_api.list_cluster_custom_object(
                group=CRD_GROUP,
                version=CRD_VERSION,
                plural=CRD_PLURAL
            )
        resource_version = response.get("metadata", {}).get("resourceVersion", "")
        return response.get("items", []), resource_version

    def update_status(self, key: ResourceKey, status: CertificateStatus) -> None:
        """
        Replace the status of a ManagedCertificate through the status subresource.

        Raises:
            ApiException: if the patch fails
        """
        self.custom_api.patch_namespaced_custom_object_status(
            group=CRD_GROUP,
            version=CRD_VERSION,
            namespace=key.namespace,
            plural=CRD_PLURAL,
            name=key.name,
            body={"status": status.to_dict()}
        )
        logger.debug(f"Updated status for ManagedCertificate {key}: {status.certificate_status}")

    def watch_certificates(
        self, namespace: str = "", resource_version: str = "", timeout: int = WATCH_TIMEOUT_SECONDS
    ) -> Iterator[Dict[str, Any]]:
        """
        Create a watch stream for ManagedCertificate objects.

        Args:
            namespace: Namespace to watch ("" for all namespaces)
            resource_version: Start watching after this version
            timeout: Watch timeout in seconds

        Yields:
            Watch events
        """
        w = watch.Watch()
        kwargs: Dict[str, Any] = {
            "group": CRD_GROUP,
            "version": CRD_VERSION,
            "plural": CRD_PLURAL,
            "timeout_seconds": timeout,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version

        if namespace:
            stream = w.stream(
                self.custom_api.list_namespaced_custom_object,
                namespace=namespace,
                **kwargs
            )
        else:
            stream = w.stream(self.custom_api.list_cluster_custom_object, **kwargs)

        try:
            for event in stream:
                yield event
        finally:
            w.stop()
