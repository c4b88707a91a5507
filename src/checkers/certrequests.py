"""
CertificateRequest Checker Module

Exports certificates issued to cert-manager CertificateRequest objects.
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

from kubernetes import client

from checkers.checker import CertificateChecker, SourceDescriptor
from exporters.exporter import CertificateExporter
from utils.errors import DecodeError, MissingKeyError

logger = logging.getLogger(__name__)

CERT_MANAGER_GROUP = 'cert-manager.io'
CERT_MANAGER_VERSION = 'v1'
CERTIFICATE_REQUEST_PLURAL = 'certificaterequests'

CERTIFICATE_KEY = 'certificate'


def certrequest_descriptor(item: Dict[str, Any], namespace: Optional[str] = None) -> SourceDescriptor:
    """
    Build a SourceDescriptor from a CertificateRequest custom object.

    status.certificate is kept base64 encoded; it is decoded when the
    resource is checked so a bad value is reported against the request.
    """
    metadata = item.get('metadata') or {}
    status = item.get('status') or {}

    data = {}
    if status.get(CERTIFICATE_KEY):
        data[CERTIFICATE_KEY] = status[CERTIFICATE_KEY].encode('ascii', 'replace')

    return SourceDescriptor(
        kind='certrequest',
        namespace=metadata.get('namespace') or namespace or '',
        name=metadata.get('name', ''),
        data=data,
        annotations=dict(metadata.get('annotations') or {}),
    )


class CertRequestChecker(CertificateChecker):
    """Exports the certificates of issued cert-manager CertificateRequests."""

    kind = 'certrequest'

    def __init__(self, custom_objects: client.CustomObjectsApi, exporter: CertificateExporter,
                 **kwargs):
        super().__init__(exporter, **kwargs)
        self.custom_objects = custom_objects

    def _list_resources(self, namespace: Optional[str]) -> List[SourceDescriptor]:
        try:
            if namespace:
                response = self.custom_objects.list_namespaced_custom_object(
                    CERT_MANAGER_GROUP, CERT_MANAGER_VERSION, namespace, CERTIFICATE_REQUEST_PLURAL,
                    label_selector=self.label_selector,
                )
            else:
                response = self.custom_objects.list_cluster_custom_object(
                    CERT_MANAGER_GROUP, CERT_MANAGER_VERSION, CERTIFICATE_REQUEST_PLURAL,
                    label_selector=self.label_selector,
                )
        except Exception as e:
            raise self._listing_error(namespace, e)

        return [certrequest_descriptor(item, namespace) for item in response.get('items', [])]

    def _check_resource(self, resource: SourceDescriptor) -> int:
        encoded = resource.data.get(CERTIFICATE_KEY)
        if not encoded:
            raise MissingKeyError("status.certificate is empty, request not issued yet",
                                  key=CERTIFICATE_KEY)

        try:
            pem = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"status.certificate is not valid base64: {e}", key=CERTIFICATE_KEY)

        return self.exporter.export_metrics(
            pem,
            cert_request=resource.name,
            certrequest_namespace=resource.namespace,
        )
