"""
Certificate Exporter Module

Publishes certificate facts as Prometheus gauges, one gauge family per source kind.
"""

import logging
import time
from typing import Callable, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge

from certs_parser.decoders import Decoder
from certs_parser.facts import CertificateFact, error_fact, parse_fact
from exporters.schema import (
    ERRORS_TOTAL,
    EXPIRES_IN_SECONDS,
    NOT_AFTER_TIMESTAMP,
    NOT_BEFORE_TIMESTAMP,
    MetricSchema,
)
from utils.errors import CertExporterError, ParseError

logger = logging.getLogger(__name__)


class CertificateExporter:
    """Owns the gauges of one source kind and their reset-then-populate lifecycle."""

    def __init__(self, schema: MetricSchema, decoder: Decoder, registry: CollectorRegistry,
                 clock: Callable[[], float] = time.time):
        """
        Initialize the exporter and register its metrics.

        Args:
            schema: Label schema of the source kind
            decoder: Decoder for the payload format of the source kind
            registry: Registry the metrics are registered in
            clock: Returns the current unix time, used for expiry durations
        """
        self.schema = schema
        self.decoder = decoder
        self.clock = clock

        label_names = list(schema.label_names)
        self.expires_in_seconds = Gauge(
            schema.metric_name(EXPIRES_IN_SECONDS),
            f"Number of seconds until the certificate expires ({schema.description})",
            label_names,
            registry=registry,
        )
        self.not_after_timestamp = Gauge(
            schema.metric_name(NOT_AFTER_TIMESTAMP),
            f"Unix timestamp of the certificate not-after date ({schema.description})",
            label_names,
            registry=registry,
        )
        self.not_before_timestamp = Gauge(
            schema.metric_name(NOT_BEFORE_TIMESTAMP),
            f"Unix timestamp of the certificate not-before date ({schema.description})",
            label_names,
            registry=registry,
        )
        self.errors = Counter(
            schema.metric_name(ERRORS_TOTAL),
            f"Errors while discovering or decoding certificates ({schema.description})",
            ['error_type'],
            registry=registry,
        )

    @property
    def gauges(self) -> Tuple[Gauge, Gauge, Gauge]:
        return (self.expires_in_seconds, self.not_after_timestamp, self.not_before_timestamp)

    def decode(self, data: bytes, passphrase: Optional[str] = None) -> List[CertificateFact]:
        """
        Decode a payload into certificate facts without touching any metric.

        Args:
            data: Raw payload bytes
            passphrase: Passphrase for keystore formats

        Returns:
            Facts in payload order; facts of undecodable certificates carry decode_error

        Raises:
            DecodeError: If the payload cannot be decoded at all
            ParseError: If a certificate is malformed and the decoder is strict
        """
        facts = []
        for raw in self.decoder.decode(data, passphrase):
            if raw.error is not None:
                facts.append(error_fact(raw.location, raw.error))
                continue
            try:
                facts.append(parse_fact(raw.der, raw.location))
            except ParseError as e:
                if self.decoder.strict:
                    raise
                facts.append(error_fact(raw.location, e.message))
        return facts

    def publish(self, facts: List[CertificateFact], **identity: str) -> int:
        """
        Set one sample per fact on every gauge.

        Args:
            facts: Facts to publish, undecodable ones are logged and counted
            **identity: Identity labels of the resource (see MetricSchema.identity_labels)

        Returns:
            Number of facts published
        """
        now = self.clock()
        published = 0

        for fact in facts:
            if not fact.ok:
                logger.warning(f"⚠️ Skipping undecodable certificate at {fact.location} "
                               f"({self._describe(identity)}): {fact.decode_error}")
                self.errors.labels(error_type=ParseError.error_type).inc()
                continue

            labels = self.schema.label_values(fact, identity)
            self.expires_in_seconds.labels(**labels).set(fact.seconds_until_expiry(now))
            self.not_after_timestamp.labels(**labels).set(fact.not_after_timestamp())
            self.not_before_timestamp.labels(**labels).set(fact.not_before_timestamp())
            published += 1

            logger.debug(f"Exported {self.schema.source_kind} certificate cn='{fact.common_name}' "
                         f"issuer='{fact.issuer_common_name}' serial={fact.serial_number} "
                         f"not_after={fact.not_after.isoformat()} ({self._describe(identity)})")

        return published

    def export_metrics(self, data: bytes, passphrase: Optional[str] = None, **identity: str) -> int:
        """
        Decode a payload and publish its certificates.

        Args:
            data: Raw payload bytes
            passphrase: Passphrase for keystore formats
            **identity: Identity labels of the resource

        Returns:
            Number of samples set per gauge

        Raises:
            DecodeError: If the payload cannot be decoded
            ParseError: If a certificate is malformed and the decoder is strict
        """
        return self.publish(self.decode(data, passphrase), **identity)

    def reset_metrics(self) -> None:
        """Drop every label combination previously set on this exporter's gauges."""
        for gauge in self.gauges:
            gauge.clear()

    def record_error(self, error: CertExporterError) -> None:
        """Count a non-fatal error against this source kind."""
        self.errors.labels(error_type=error.error_type).inc()

    @staticmethod
    def _describe(identity) -> str:
        return ', '.join(f"{name}={value}" for name, value in sorted(identity.items()))
