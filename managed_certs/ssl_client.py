"""Clients for the SslCertificate provisioning API."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from .config import COMPUTE_API_URL, HTTP_TIMEOUT_SECONDS, METADATA_URL
from .exceptions import BackendError, NotFoundError, QuotaExceededError
from .models import SslCertificate

logger = logging.getLogger(__name__)


class SslCertificateClient(ABC):
    """Abstract base class for SslCertificate backends."""

    @abstractmethod
    def create(self, name: str, domains: List[str]) -> None:
        """Create a managed SslCertificate for the domains."""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete an SslCertificate. Raises NotFoundError if it does not exist."""
        pass

    @abstractmethod
    def get(self, name: str) -> SslCertificate:
        """Fetch an SslCertificate. Raises NotFoundError if it does not exist."""
        pass

    @abstractmethod
    def list(self) -> List[SslCertificate]:
        """List all SslCertificates in the project."""
        pass

    def exists(self, name: str) -> bool:
        """Return True if the SslCertificate exists."""
        try:
            self.get(name)
        except NotFoundError:
            return False
        return True


class MetadataTokenSource:
    """Fetches and caches access tokens from the GCE metadata server."""

    # Refresh this many seconds before the token expires
    EXPIRY_MARGIN_SECONDS = 60

    def __init__(self, session: requests.Session, metadata_url: str = METADATA_URL):
        self._session = session
        self._url = metadata_url.rstrip("/")
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def _metadata(self, path: str) -> requests.Response:
        response = self._session.get(
            f"{self._url}/{path}",
            headers={"Metadata-Flavor": "Google"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response

    def project_id(self) -> str:
        try:
            return self._metadata("project/project-id").text.strip()
        except requests.exceptions.RequestException as e:
            raise BackendError(f"Could not discover the project from the metadata server: {e}") from e

    def token(self) -> str:
        with self._lock:
            if self._token is None or time.monotonic() >= self._expires_at:
                try:
                    data = self._metadata("instance/service-accounts/default/token").json()
                    self._token = data["access_token"]
                    expires_in = int(data.get("expires_in", 0))
                except (requests.exceptions.RequestException, KeyError, TypeError, ValueError) as e:
                    raise BackendError(f"Could not get an access token from the metadata server: {e}") from e
                self._expires_at = time.monotonic() + expires_in - self.EXPIRY_MARGIN_SECONDS
                logger.debug("Refreshed metadata server access token")
            return self._token


class ComputeSslCertificateClient(SslCertificateClient):
    """SslCertificate backend on the Compute Engine REST API."""

    def __init__(
        self,
        project: str = "",
        api_url: str = COMPUTE_API_URL,
        session: Optional[requests.Session] = None,
        token_source: Optional[MetadataTokenSource] = None,
    ):
        """
        Initialize the client.

        Args:
            project: GCP project ("" to discover it from the metadata server)
            api_url: Compute API base URL
            session: HTTP session to use
            token_source: Access token provider
        """
        self._session = session or requests.Session()
        self._tokens = token_source or MetadataTokenSource(self._session)
        self.project = project or self._tokens.project_id()
        self._url = f"{api_url.rstrip('/')}/projects/{self.project}/global/sslCertificates"
        logger.info(f"Using SslCertificates of project {self.project}")

    def _request(self, method: str, path: str = "", **kwargs) -> Dict[str, Any]:
        url = f"{self._url}/{path}" if path else self._url
        try:
            headers = {"Authorization": f"Bearer {self._tokens.token()}"}
            response = self._session.request(
                method, url, headers=headers, timeout=HTTP_TIMEOUT_SECONDS, **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise BackendError(f"{method} {url} failed: {e}") from e

        if not response.ok:
            raise _classify_error(response)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {url} returned invalid JSON: {e}", status=response.status_code) from e

    def create(self, name: str, domains: List[str]) -> None:
        body = {
            "name": name,
            "type": "MANAGED",
            "managed": {"domains": list(domains)},
        }
        self._request("POST", json=body)

    def delete(self, name: str) -> None:
        self._request("DELETE", name)

    def get(self, name: str) -> SslCertificate:
        return SslCertificate.from_api(self._request("GET", name))

    def list(self) -> List[SslCertificate]:
        certificates = []
        params: Dict[str, str] = {}
        while True:
            data = self._request("GET", params=params)
            certificates.extend(SslCertificate.from_api(item) for item in data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return certificates
            params = {"pageToken": page_token}


def _classify_error(response: requests.Response) -> Exception:
    """Map a failed Compute API response onto NotFoundError, QuotaExceededError or BackendError."""
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}

    message = error.get("message") or response.text or response.reason
    if response.status_code == 404:
        return NotFoundError(message)

    reasons = {e.get("reason") for e in error.get("errors", []) if isinstance(e, dict)}
    if response.status_code == 403 and "quotaExceeded" in reasons:
        return QuotaExceededError(message)

    return BackendError(f"HTTP {response.status_code}: {message}", status=response.status_code)
