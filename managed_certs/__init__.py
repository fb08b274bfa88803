"""Kubernetes controller provisioning SslCertificates for ManagedCertificate objects."""
