"""Configuration settings for the Managed Certificate Controller."""

import os

# CRD Settings
CRD_GROUP = "networking.gke.io"
CRD_VERSION = "v1beta1"
CRD_PLURAL = "managedcertificates"
CRD_KIND = "ManagedCertificate"

# Domain constraints enforced by the CRD schema
MAX_DOMAINS = 100
MAX_DOMAIN_LENGTH = 63
DOMAIN_PATTERN = r"^(([a-zA-Z0-9]+|[a-zA-Z0-9][-a-zA-Z0-9]*[a-zA-Z0-9])\.)+[a-zA-Z][-a-zA-Z0-9]*[a-zA-Z0-9]\.?$"

# Watch settings
WATCH_TIMEOUT_SECONDS = 30
WATCH_RETRY_SECONDS = 5
CACHE_SYNC_TIMEOUT_SECONDS = 60

# Controller loops
RESYNC_INTERVAL_SECONDS = 60
WORKER_COUNT = 1

# Work queue backoff
QUEUE_BASE_DELAY_SECONDS = 0.005
QUEUE_MAX_DELAY_SECONDS = 1000.0

# SslCertificate names created by this controller
CERTIFICATE_NAME_PREFIX = "mcrt-"

# Event reasons
EVENT_REASON_CREATE = "Create"
EVENT_REASON_DELETE = "Delete"
EVENT_REASON_TOO_MANY_CERTIFICATES = "TooManyCertificates"
EVENT_REASON_BACKEND_ERROR = "BackendError"
EVENT_COMPONENT = "managed-certificate-controller"

# Compute Engine API
GCE_PROJECT = os.getenv("GCE_PROJECT", "")
COMPUTE_API_URL = os.getenv("COMPUTE_API_URL", "https://compute.googleapis.com/compute/v1")
METADATA_URL = os.getenv("METADATA_URL", "http://metadata.google.internal/computeMetadata/v1")
HTTP_TIMEOUT_SECONDS = 30
