"""Fakes shared by the controller tests."""

from typing import Dict, List, Optional, Tuple

import pytest

from managed_certs.exceptions import BackendError, NotFoundError
from managed_certs.models import (
    CertificateStatus,
    ManagedCertificate,
    ResourceKey,
    SslCertificate,
)
from managed_certs.ssl_client import SslCertificateClient
from managed_certs.ssl_manager import SslCertificateManager
from managed_certs.state import CertificateState


class FakeSslClient(SslCertificateClient):
    """In-memory SslCertificate backend with injectable errors."""

    def __init__(self) -> None:
        self.certificates: Dict[str, SslCertificate] = {}
        self.create_error: Optional[Exception] = None
        self.delete_errors: Dict[str, Exception] = {}
        self.get_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.calls: List[Tuple[str, str]] = []

    def create(self, name: str, domains: List[str]) -> None:
        self.calls.append(("create", name))
        if self.create_error is not None:
            raise self.create_error
        if name in self.certificates:
            raise BackendError(f"{name} already exists", status=409)
        self.certificates[name] = SslCertificate(
            name=name,
            domains=list(domains),
            status="PROVISIONING",
            domain_status={d: "PROVISIONING" for d in domains},
        )

    def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        if name in self.delete_errors:
            raise self.delete_errors[name]
        if name not in self.certificates:
            raise NotFoundError(name)
        del self.certificates[name]

    def get(self, name: str) -> SslCertificate:
        self.calls.append(("get", name))
        if self.get_error is not None:
            raise self.get_error
        if name not in self.certificates:
            raise NotFoundError(name)
        return self.certificates[name]

    def list(self) -> List[SslCertificate]:
        self.calls.append(("list", ""))
        if self.list_error is not None:
            raise self.list_error
        return list(self.certificates.values())


class FakeEventRecorder:
    """Records events instead of sending them to the API server."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, ResourceKey]] = []

    def create(self, mcrt: ManagedCertificate, certificate_name: str) -> None:
        self.events.append(("Create", mcrt.key))

    def delete(self, mcrt: ManagedCertificate, certificate_name: str) -> None:
        self.events.append(("Delete", mcrt.key))

    def too_many_certificates(self, mcrt: ManagedCertificate, err: Exception) -> None:
        self.events.append(("TooManyCertificates", mcrt.key))

    def backend_error(self, mcrt: ManagedCertificate, err: Exception) -> None:
        self.events.append(("BackendError", mcrt.key))

    def reasons(self) -> List[str]:
        return [reason for reason, _ in self.events]


class FakeLister:
    """Stands in for the informer cache."""

    def __init__(self) -> None:
        self.objects: Dict[ResourceKey, ManagedCertificate] = {}
        self.list_error: Optional[Exception] = None

    def add(self, mcrt: ManagedCertificate) -> ManagedCertificate:
        self.objects[mcrt.key] = mcrt
        return mcrt

    def remove(self, key: ResourceKey) -> None:
        self.objects.pop(key, None)

    def get(self, key: ResourceKey) -> Optional[ManagedCertificate]:
        return self.objects.get(key)

    def list(self) -> List[ManagedCertificate]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.objects.values())


class FakeCrdClient:
    """Records status updates."""

    def __init__(self) -> None:
        self.statuses: Dict[ResourceKey, CertificateStatus] = {}
        self.update_error: Optional[Exception] = None

    def update_status(self, key: ResourceKey, status: CertificateStatus) -> None:
        if self.update_error is not None:
            raise self.update_error
        self.statuses[key] = status


def make_mcrt(key: str, domains: List[str], certificate_name: str = "") -> ManagedCertificate:
    namespace, name = key.split("/")
    return ManagedCertificate(
        namespace=namespace,
        name=name,
        domains=domains,
        status=CertificateStatus(certificate_name=certificate_name),
    )


@pytest.fixture
def ssl_client() -> FakeSslClient:
    return FakeSslClient()


@pytest.fixture
def events() -> FakeEventRecorder:
    return FakeEventRecorder()


@pytest.fixture
def ssl_manager(ssl_client: FakeSslClient, events: FakeEventRecorder) -> SslCertificateManager:
    return SslCertificateManager(ssl_client, events)


@pytest.fixture
def state() -> CertificateState:
    return CertificateState()


@pytest.fixture
def lister() -> FakeLister:
    return FakeLister()


@pytest.fixture
def crd_client() -> FakeCrdClient:
    return FakeCrdClient()
