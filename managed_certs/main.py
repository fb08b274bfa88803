"""
Managed Certificate Controller - Entry Point

Watches ManagedCertificate objects and provisions a Compute Engine managed
SslCertificate for each of them.

Usage:
    managed-certificate-controller [--namespace NAMESPACE] [--in-cluster] [--project PROJECT]
"""

import argparse
import logging
import signal
import sys
import threading

from kubernetes import config

from .config import (
    CACHE_SYNC_TIMEOUT_SECONDS,
    GCE_PROJECT,
    RESYNC_INTERVAL_SECONDS,
    WORKER_COUNT,
)
from .controller import ManagedCertificateController
from .crd_client import ManagedCertificateClient
from .events import EventRecorder
from .exceptions import ManagedCertsException
from .informer import ManagedCertificateInformer
from .reconciler import Reconciler
from .ssl_client import ComputeSslCertificateClient
from .ssl_manager import SslCertificateManager
from .state import CertificateState
from .supervisor import Controller

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Managed Certificate Controller - Provision SslCertificates for ManagedCertificate objects"
    )
    parser.add_argument(
        "--namespace", "-n",
        default="",
        help="Namespace to watch (default: all namespaces)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--project",
        default=GCE_PROJECT,
        help="GCP project owning the SslCertificates (default: from the metadata server)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=WORKER_COUNT,
        help=f"Number of reconciliation workers (default: {WORKER_COUNT})"
    )
    parser.add_argument(
        "--resync-interval",
        type=float,
        default=RESYNC_INTERVAL_SECONDS,
        help=f"Seconds between full resyncs (default: {RESYNC_INTERVAL_SECONDS})"
    )
    parser.add_argument(
        "--cache-sync-timeout",
        type=float,
        default=CACHE_SYNC_TIMEOUT_SECONDS,
        help=f"Seconds to wait for the initial list (default: {CACHE_SYNC_TIMEOUT_SECONDS})"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    return parser.parse_args(argv)


def build_controller(args: argparse.Namespace) -> Controller:
    """Wire the informer, state, SslCertificate manager and loops together."""
    crd_client = ManagedCertificateClient()
    informer = ManagedCertificateInformer(crd_client, namespace=args.namespace)
    state = CertificateState()
    ssl_manager = SslCertificateManager(
        ComputeSslCertificateClient(project=args.project),
        EventRecorder(),
    )
    reconciler = Reconciler(informer, state, ssl_manager, crd_client)
    mcrt_controller = ManagedCertificateController(
        informer,
        state,
        ssl_manager,
        reconciler,
        workers=args.workers,
        resync_interval=args.resync_interval,
    )
    informer.add_handler(mcrt_controller.enqueue)

    return Controller(informer, [mcrt_controller], cache_sync_timeout=args.cache_sync_timeout)


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Load Kubernetes configuration
    try:
        if args.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
    except config.ConfigException as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        controller = build_controller(args)
        controller.run(stop_event)
    except ManagedCertsException as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)

    logger.info("Controller stopped")


if __name__ == "__main__":
    main()
