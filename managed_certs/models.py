"""Data types for ManagedCertificate objects and provisioned SslCertificates."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

from .config import DOMAIN_PATTERN, MAX_DOMAIN_LENGTH, MAX_DOMAINS

_DOMAIN_RE = re.compile(DOMAIN_PATTERN)

# Compute API status -> ManagedCertificate status
CERTIFICATE_STATUSES = {
    "ACTIVE": "Active",
    "MANAGED_CERTIFICATE_STATUS_UNSPECIFIED": "",
    "PROVISIONING": "Provisioning",
    "PROVISIONING_FAILED": "ProvisioningFailed",
    "PROVISIONING_FAILED_PERMANENTLY": "ProvisioningFailedPermanently",
    "RENEWAL_FAILED": "RenewalFailed",
}

DOMAIN_STATUSES = {
    "ACTIVE": "Active",
    "DOMAIN_STATUS_UNSPECIFIED": "",
    "FAILED_CAA_CHECKING": "FailedCaaChecking",
    "FAILED_CAA_FORBIDDEN": "FailedCaaForbidden",
    "FAILED_NOT_VISIBLE": "FailedNotVisible",
    "FAILED_RATE_LIMITED": "FailedRateLimited",
    "PROVISIONING": "Provisioning",
}


class ResourceKey(NamedTuple):
    """Identifies a ManagedCertificate by namespace and name."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, key: str) -> "ResourceKey":
        """Parse a "namespace/name" string."""
        namespace, sep, name = key.partition("/")
        if not sep or not namespace or not name:
            raise ValueError(f"Invalid resource key {key!r}")
        return cls(namespace, name)

    @classmethod
    def from_object(cls, crd_object: Dict[str, Any]) -> "ResourceKey":
        """Build the key from a raw CRD object's metadata."""
        metadata = crd_object.get("metadata", {})
        return cls(metadata.get("namespace", "default"), metadata.get("name", ""))


@dataclass
class DomainStatus:
    domain: str
    status: str

    def to_dict(self) -> Dict[str, str]:
        return {"domain": self.domain, "status": self.status}


@dataclass
class CertificateStatus:
    """Observed status of a ManagedCertificate."""
    certificate_name: str = ""
    certificate_status: str = ""
    domain_status: List[DomainStatus] = field(default_factory=list)
    expire_time: str = ""

    @classmethod
    def from_crd(cls, status: Dict[str, Any]) -> "CertificateStatus":
        return cls(
            certificate_name=status.get("certificateName", ""),
            certificate_status=status.get("certificateStatus", ""),
            domain_status=[
                DomainStatus(domain=d.get("domain", ""), status=d.get("status", ""))
                for d in status.get("domainStatus") or []
            ],
            expire_time=status.get("expireTime", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the CRD status block."""
        result: Dict[str, Any] = {
            "certificateName": self.certificate_name,
            "certificateStatus": self.certificate_status,
            "domainStatus": [d.to_dict() for d in self.domain_status],
        }
        if self.expire_time:
            result["expireTime"] = self.expire_time
        return result


@dataclass
class ManagedCertificate:
    """Parsed ManagedCertificate custom resource."""
    namespace: str
    name: str
    domains: List[str] = field(default_factory=list)
    status: CertificateStatus = field(default_factory=CertificateStatus)
    uid: str = ""

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)

    @classmethod
    def from_crd(cls, crd_object: Dict[str, Any]) -> "ManagedCertificate":
        """Create ManagedCertificate from CRD object."""
        metadata = crd_object.get("metadata", {})
        spec = crd_object.get("spec", {})

        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", ""),
            domains=list(spec.get("domains") or []),
            status=CertificateStatus.from_crd(crd_object.get("status") or {}),
            uid=metadata.get("uid", ""),
        )

    def validate(self) -> List[str]:
        """
        Check the domains against the CRD schema constraints.

        Returns:
            List of problems, empty if the resource is valid
        """
        problems = []
        if not self.domains:
            problems.append("no domains specified")
        elif len(self.domains) > MAX_DOMAINS:
            problems.append(f"too many domains: {len(self.domains)} > {MAX_DOMAINS}")

        for domain in self.domains:
            if len(domain) > MAX_DOMAIN_LENGTH:
                problems.append(f"domain {domain} is longer than {MAX_DOMAIN_LENGTH} characters")
            elif not _DOMAIN_RE.match(domain):
                problems.append(f"domain {domain} is not a valid DNS name")

        return problems


@dataclass
class SslCertificate:
    """Snapshot of a provisioned SslCertificate."""
    name: str
    domains: List[str] = field(default_factory=list)
    status: str = ""
    domain_status: Dict[str, str] = field(default_factory=dict)
    expire_time: str = ""

    @classmethod
    def from_api(cls, resource: Dict[str, Any]) -> "SslCertificate":
        """Create SslCertificate from a Compute API sslCertificates resource."""
        managed = resource.get("managed", {})
        return cls(
            name=resource.get("name", ""),
            domains=list(managed.get("domains") or []),
            status=managed.get("status", ""),
            domain_status=dict(managed.get("domainStatus") or {}),
            expire_time=resource.get("expireTime", ""),
        )

    def to_status(self) -> CertificateStatus:
        """Translate into the ManagedCertificate status representation."""
        return CertificateStatus(
            certificate_name=self.name,
            certificate_status=translate_status(CERTIFICATE_STATUSES, self.status),
            domain_status=[
                DomainStatus(domain=domain, status=translate_status(DOMAIN_STATUSES, status))
                for domain, status in sorted(self.domain_status.items())
            ],
            expire_time=self.expire_time,
        )


def translate_status(statuses: Dict[str, str], value: Optional[str]) -> str:
    """Map a Compute API status onto the CRD form, passing unknown values through."""
    if not value:
        return ""
    return statuses.get(value, value)
