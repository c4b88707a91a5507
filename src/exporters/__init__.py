"""
Exporters Module

Prometheus exporters for certificate facts.
"""

from .exporter import CertificateExporter
from .schema import (
    CERTREQUEST_SCHEMA,
    CONFIGMAP_SCHEMA,
    KEYSTORE_SCHEMA,
    SECRET_SCHEMA,
    MetricSchema,
)

__all__ = [
    'CertificateExporter',
    'MetricSchema',
    'SECRET_SCHEMA',
    'CONFIGMAP_SCHEMA',
    'CERTREQUEST_SCHEMA',
    'KEYSTORE_SCHEMA',
]
