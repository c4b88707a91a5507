"""
ConfigMap Checker Module

Exports PEM certificates stored in config maps.
"""

import logging
from typing import Dict, Iterable, List, Optional

from kubernetes import client

from checkers.checker import PEMResourceChecker, SourceDescriptor
from checkers.kube import decode_base64_data
from exporters.exporter import CertificateExporter

logger = logging.getLogger(__name__)


def configmap_descriptor(configmap: client.V1ConfigMap, namespace: Optional[str] = None) -> SourceDescriptor:
    """Build a SourceDescriptor from a config map, merging data and binaryData."""
    metadata = configmap.metadata
    data = decode_base64_data(configmap.binary_data)
    for key, value in (configmap.data or {}).items():
        if value is not None:
            data[key] = value.encode('utf-8')

    return SourceDescriptor(
        kind='configmap',
        namespace=metadata.namespace or namespace or '',
        name=metadata.name,
        data=data,
        annotations=dict(metadata.annotations or {}),
    )


class ConfigMapChecker(PEMResourceChecker):
    """Exports PEM certificates found in config maps."""

    kind = 'configmap'

    def __init__(self, core_v1: client.CoreV1Api, exporter: CertificateExporter,
                 include_globs: Iterable[str] = ('*.crt',), exclude_globs: Iterable[str] = (),
                 **kwargs):
        super().__init__(exporter, include_globs=include_globs, exclude_globs=exclude_globs, **kwargs)
        self.core_v1 = core_v1

    def _list_resources(self, namespace: Optional[str]) -> List[SourceDescriptor]:
        try:
            if namespace:
                configmaps = self.core_v1.list_namespaced_config_map(
                    namespace, label_selector=self.label_selector)
            else:
                configmaps = self.core_v1.list_config_map_for_all_namespaces(
                    label_selector=self.label_selector)
        except Exception as e:
            raise self._listing_error(namespace, e)

        return [configmap_descriptor(configmap, namespace) for configmap in configmaps.items]

    def _identity(self, resource: SourceDescriptor, key: str) -> Dict[str, str]:
        return {
            'key_name': key,
            'configmap_name': resource.name,
            'configmap_namespace': resource.namespace,
        }
