"""
Secret Checker Module

Exports PEM certificates stored in secrets.
"""

import logging
from typing import Dict, Iterable, List, Optional

from kubernetes import client

from checkers.checker import PEMResourceChecker, SourceDescriptor
from checkers.kube import decode_base64_data
from exporters.exporter import CertificateExporter

logger = logging.getLogger(__name__)


def list_secrets(core_v1: client.CoreV1Api, namespace: Optional[str], label_selector: str):
    """List secrets in a namespace, or in all namespaces when namespace is None."""
    if namespace:
        return core_v1.list_namespaced_secret(namespace, label_selector=label_selector)
    return core_v1.list_secret_for_all_namespaces(label_selector=label_selector)


def secret_descriptor(secret: client.V1Secret, namespace: Optional[str] = None) -> SourceDescriptor:
    """Build a SourceDescriptor from a secret, decoding its base64 data."""
    metadata = secret.metadata
    return SourceDescriptor(
        kind='secret',
        namespace=metadata.namespace or namespace or '',
        name=metadata.name,
        data=decode_base64_data(secret.data),
        annotations=dict(metadata.annotations or {}),
    )


class SecretChecker(PEMResourceChecker):
    """Exports PEM certificates found in secrets."""

    kind = 'secret'

    def __init__(self, core_v1: client.CoreV1Api, exporter: CertificateExporter,
                 include_globs: Iterable[str] = ('*.crt',), exclude_globs: Iterable[str] = (),
                 secret_types: Iterable[str] = (), **kwargs):
        """
        Initialize the secret checker.

        Args:
            core_v1: CoreV1Api client
            exporter: Exporter for the secret gauge family
            include_globs: Data keys to decode
            exclude_globs: Data keys to ignore even when included
            secret_types: Only check secrets of these types (all types when empty)
            **kwargs: Polling settings, see CertificateChecker
        """
        super().__init__(exporter, include_globs=include_globs, exclude_globs=exclude_globs, **kwargs)
        self.core_v1 = core_v1
        self.secret_types = set(secret_types)

    def _list_resources(self, namespace: Optional[str]) -> List[SourceDescriptor]:
        try:
            secrets = list_secrets(self.core_v1, namespace, self.label_selector)
        except Exception as e:
            raise self._listing_error(namespace, e)

        descriptors = []
        for secret in secrets.items:
            if self.secret_types and secret.type not in self.secret_types:
                logger.debug(f"Ignoring secret {secret.metadata.namespace}/{secret.metadata.name} "
                             f"of type {secret.type}")
                continue
            descriptors.append(secret_descriptor(secret, namespace))
        return descriptors

    def _identity(self, resource: SourceDescriptor, key: str) -> Dict[str, str]:
        return {
            'key_name': key,
            'secret_name': resource.name,
            'secret_namespace': resource.namespace,
        }
