"""Tests for the CRD client and the event recorder."""

from unittest.mock import Mock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from conftest import make_mcrt
from managed_certs.crd_client import ManagedCertificateClient
from managed_certs.events import EventRecorder
from managed_certs.models import CertificateStatus, DomainStatus, ResourceKey

FOO = ResourceKey("ns", "foo")


@pytest.fixture
def custom_api() -> Mock:
    return Mock(spec=client.CustomObjectsApi)


def test_list_all_namespaces(custom_api: Mock) -> None:
    custom_api.list_cluster_custom_object.return_value = {
        "metadata": {"resourceVersion": "42"},
        "items": [{"metadata": {"name": "foo"}}],
    }

    items, resource_version = ManagedCertificateClient(custom_api).list_certificates()

    assert items == [{"metadata": {"name": "foo"}}]
    assert resource_version == "42"
    assert custom_api.list_cluster_custom_object.call_args[1]["plural"] == "managedcertificates"


def test_list_namespaced(custom_api: Mock) -> None:
    custom_api.list_namespaced_custom_object.return_value = {"items": []}

    assert ManagedCertificateClient(custom_api).list_certificates("ns") == ([], "")
    assert custom_api.list_namespaced_custom_object.call_args[1]["namespace"] == "ns"


def test_list_error_propagates(custom_api: Mock) -> None:
    custom_api.list_cluster_custom_object.side_effect = ApiException(status=403)
    with pytest.raises(ApiException):
        ManagedCertificateClient(custom_api).list_certificates()


def test_update_status(custom_api: Mock) -> None:
    status = CertificateStatus(
        certificate_name="mcrt-1",
        certificate_status="Active",
        domain_status=[DomainStatus("a.example.com", "Active")],
        expire_time="2026-01-01T00:00:00Z",
    )

    ManagedCertificateClient(custom_api).update_status(FOO, status)

    kwargs = custom_api.patch_namespaced_custom_object_status.call_args[1]
    assert kwargs["namespace"] == "ns"
    assert kwargs["name"] == "foo"
    assert kwargs["body"] == {
        "status": {
            "certificateName": "mcrt-1",
            "certificateStatus": "Active",
            "domainStatus": [{"domain": "a.example.com", "status": "Active"}],
            "expireTime": "2026-01-01T00:00:00Z",
        }
    }


def test_event_recorder() -> None:
    core_api = Mock(spec=client.CoreV1Api)
    recorder = EventRecorder(core_api)
    mcrt = make_mcrt("ns/foo", ["a.example.com"])

    recorder.create(mcrt, "mcrt-1")
    recorder.too_many_certificates(mcrt, Exception("quota"))

    first, second = [c[1] for c in core_api.create_namespaced_event.call_args_list]
    assert first["namespace"] == "ns"
    assert first["body"].reason == "Create"
    assert first["body"].type == "Normal"
    assert first["body"].involved_object.kind == "ManagedCertificate"
    assert first["body"].involved_object.name == "foo"
    assert second["body"].reason == "TooManyCertificates"
    assert second["body"].type == "Warning"


def test_event_recorder_failure_is_swallowed() -> None:
    core_api = Mock(spec=client.CoreV1Api)
    core_api.create_namespaced_event.side_effect = ApiException(status=403)

    EventRecorder(core_api).backend_error(make_mcrt("ns/foo", ["a.example.com"]), Exception("boom"))

    assert core_api.create_namespaced_event.called
