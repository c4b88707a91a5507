"""
Application Module

Wires configuration, the Kubernetes client, the metrics registry and one
polling thread per enabled checker.
"""

import logging
import signal
import threading
from typing import List, Optional

from kubernetes import client
from prometheus_client import CollectorRegistry, start_http_server

from certs_parser.decoders import DecodeFormat, get_decoder
from checkers import (
    CertificateChecker,
    CertRequestChecker,
    ConfigMapChecker,
    KeystoreChecker,
    SecretChecker,
    load_api_client,
)
from exporters import (
    CERTREQUEST_SCHEMA,
    CONFIGMAP_SCHEMA,
    KEYSTORE_SCHEMA,
    SECRET_SCHEMA,
    CertificateExporter,
)
from utils import Config, setup_logging
from utils.errors import ClientConstructionError

logger = logging.getLogger(__name__)


def build_checkers(config: Config, api_client: client.ApiClient,
                   registry: CollectorRegistry) -> List[CertificateChecker]:
    """
    Build the enabled checkers, each with its own exporter on the shared registry.

    Args:
        config: Exporter configuration
        api_client: Kubernetes API client
        registry: Metrics registry shared by all exporters

    Returns:
        List of checkers, not yet running
    """
    core_v1 = client.CoreV1Api(api_client)
    polling = {
        'namespaces': config.namespaces,
        'label_selector': config.label_selector,
        'polling_period': config.polling_period,
        'poll_on_start': config.poll_on_start,
    }
    pem_decoder = get_decoder(DecodeFormat.PEM)
    checkers: List[CertificateChecker] = []

    if config.enable_secrets:
        checkers.append(SecretChecker(
            core_v1,
            CertificateExporter(SECRET_SCHEMA, pem_decoder, registry),
            include_globs=config.secret_include_globs,
            exclude_globs=config.secret_exclude_globs,
            secret_types=config.secret_types,
            **polling,
        ))

    if config.enable_configmaps:
        checkers.append(ConfigMapChecker(
            core_v1,
            CertificateExporter(CONFIGMAP_SCHEMA, pem_decoder, registry),
            include_globs=config.configmap_include_globs,
            exclude_globs=config.configmap_exclude_globs,
            **polling,
        ))

    if config.enable_certrequests:
        checkers.append(CertRequestChecker(
            client.CustomObjectsApi(api_client),
            CertificateExporter(CERTREQUEST_SCHEMA, pem_decoder, registry),
            **polling,
        ))

    if config.enable_keystores:
        checkers.append(KeystoreChecker(
            core_v1,
            CertificateExporter(KEYSTORE_SCHEMA, get_decoder(config.keystore_format), registry),
            keystore_key=config.keystore_key,
            password_annotation=config.keystore_password_annotation,
            password_key=config.keystore_password_key,
            **polling,
        ))

    return checkers


class CertExporterApp:
    """Runs the certificate checkers until a termination signal arrives."""

    def __init__(self, config: Config, registry: Optional[CollectorRegistry] = None):
        self.config = config
        self.registry = registry or CollectorRegistry()
        self.stop_event = threading.Event()
        self.threads: List[threading.Thread] = []

    def run(self) -> int:
        """
        Run the exporter.

        Returns:
            Process exit code
        """
        setup_logging(self.config.log_level)

        problems = self.config.validate()
        if problems:
            for problem in problems:
                logger.error(f"❌ Invalid configuration: {problem}")
            return 1

        logger.info(f"🚀 Starting certificate exporter: {self.config.to_dict()}")

        try:
            api_client = load_api_client(self.config.kubeconfig_path)
        except ClientConstructionError as e:
            logger.error(f"❌ Cannot build Kubernetes client: {e}")
            return 1

        checkers = build_checkers(self.config, api_client, self.registry)

        start_http_server(self.config.metrics_port, registry=self.registry)
        logger.info(f"📊 Serving metrics on :{self.config.metrics_port}/metrics")

        self._install_signal_handlers()
        self.start(checkers)
        self.wait()
        return 0

    def start(self, checkers: List[CertificateChecker]) -> None:
        """Start one daemon thread per checker."""
        for checker in checkers:
            thread = threading.Thread(
                target=checker.run,
                args=(self.stop_event,),
                name=f"{checker.kind}-checker",
                daemon=True,
            )
            thread.start()
            self.threads.append(thread)

    def wait(self) -> None:
        """Block until the stop event is set and every checker thread has exited."""
        while not self.stop_event.wait(1.0):
            if not any(thread.is_alive() for thread in self.threads):
                logger.error("❌ All checkers have stopped")
                break
        for thread in self.threads:
            thread.join()
        logger.info("👋 Certificate exporter stopped")

    def stop(self, *_args) -> None:
        logger.info("🛑 Stop requested")
        self.stop_event.set()

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self.stop)
        signal.signal(signal.SIGINT, self.stop)
