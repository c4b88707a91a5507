"""
Metric Schema Module

Gauge names and label tuples for each source kind.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from certs_parser.facts import CertificateFact

METRIC_NAMESPACE = 'cert_exporter'

ISSUER_LABEL = 'issuer'
CN_LABEL = 'cn'

EXPIRES_IN_SECONDS = 'expires_in_seconds'
NOT_AFTER_TIMESTAMP = 'not_after_timestamp'
NOT_BEFORE_TIMESTAMP = 'not_before_timestamp'
ERRORS_TOTAL = 'errors'


@dataclass(frozen=True)
class MetricSchema:
    """
    Label schema of one source kind.

    Attributes:
        source_kind: Kind name used in metric names (secret, configmap, ...)
        label_names: Ordered label names, always including issuer and cn
        description: Human readable name of the source kind
    """

    source_kind: str
    label_names: Tuple[str, ...]
    description: str

    def __post_init__(self):
        missing = {ISSUER_LABEL, CN_LABEL} - set(self.label_names)
        if missing:
            raise ValueError(f"schema '{self.source_kind}' lacks labels: {sorted(missing)}")

    @property
    def identity_labels(self) -> Tuple[str, ...]:
        """Labels identifying the resource, supplied by the checker."""
        return tuple(name for name in self.label_names if name not in (ISSUER_LABEL, CN_LABEL))

    def metric_name(self, suffix: str) -> str:
        return f"{METRIC_NAMESPACE}_{self.source_kind}_{suffix}"

    def label_values(self, fact: CertificateFact, identity: Dict[str, str]) -> Dict[str, str]:
        """
        Build the full label set for a fact.

        Args:
            fact: Certificate fact providing issuer and cn
            identity: Resource identity labels

        Returns:
            Mapping of every label name to its value

        Raises:
            ValueError: If identity labels are missing or unknown
        """
        expected = set(self.identity_labels)
        given = set(identity)
        if given != expected:
            raise ValueError(
                f"schema '{self.source_kind}' expects labels {sorted(expected)}, got {sorted(given)}"
            )

        labels = {name: str(value) for name, value in identity.items()}
        labels[ISSUER_LABEL] = fact.issuer_common_name
        labels[CN_LABEL] = fact.common_name
        return labels


SECRET_SCHEMA = MetricSchema(
    'secret',
    ('key_name', ISSUER_LABEL, CN_LABEL, 'secret_name', 'secret_namespace'),
    'PEM certificates in secrets',
)

CONFIGMAP_SCHEMA = MetricSchema(
    'configmap',
    ('key_name', ISSUER_LABEL, CN_LABEL, 'configmap_name', 'configmap_namespace'),
    'PEM certificates in config maps',
)

CERTREQUEST_SCHEMA = MetricSchema(
    'certrequest',
    (ISSUER_LABEL, CN_LABEL, 'cert_request', 'certrequest_namespace'),
    'cert-manager certificate requests',
)

KEYSTORE_SCHEMA = MetricSchema(
    'keystore',
    ('key_name', ISSUER_LABEL, CN_LABEL, 'secret_name', 'secret_namespace'),
    'keystores in secrets',
)
