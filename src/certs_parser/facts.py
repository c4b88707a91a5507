"""
Certificate Facts Module

Turns raw DER certificates into the identity and validity facts we export.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID

from utils.errors import ParseError


@dataclass(frozen=True)
class CertificateFact:
    """
    Point-in-time facts about one certificate.

    Attributes:
        common_name: Subject CN (empty when the subject has none)
        issuer_common_name: Issuer CN (empty when the issuer has none)
        serial_number: Serial number in decimal
        not_before: Start of the validity window (UTC)
        not_after: End of the validity window (UTC)
        subject_alt_names: DNS names followed by IP addresses
        location: Where in the payload the certificate came from
        decode_error: Set when the certificate could not be decoded
    """

    common_name: str = ''
    issuer_common_name: str = ''
    serial_number: str = ''
    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    subject_alt_names: Tuple[str, ...] = ()
    location: str = ''
    decode_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.decode_error is None

    def seconds_until_expiry(self, now: float) -> float:
        """
        Seconds between now and not_after, negative once expired.

        Args:
            now: Current time as a unix timestamp
        """
        return self.not_after.timestamp() - now

    def not_after_timestamp(self) -> float:
        return self.not_after.timestamp()

    def not_before_timestamp(self) -> float:
        return self.not_before.timestamp()


def error_fact(location: str, error: str) -> CertificateFact:
    """Build a fact recording a certificate that could not be decoded."""
    return CertificateFact(location=location, decode_error=error)


def load_certificate(der: bytes, location: str = '') -> x509.Certificate:
    """
    Load a DER encoded X.509 certificate.

    Raises:
        ParseError: If the bytes are not a valid certificate
    """
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise ParseError(f"invalid certificate at {location or 'payload'}: {e}")


def _common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return ''
    value = attributes[0].value
    return value.decode('utf-8', 'replace') if isinstance(value, bytes) else str(value)


def _subject_alt_names(cert: x509.Certificate) -> Tuple[str, ...]:
    try:
        extension = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return ()

    names: List[str] = list(extension.value.get_values_for_type(x509.DNSName))
    names.extend(str(ip) for ip in extension.value.get_values_for_type(x509.IPAddress))
    return tuple(names)


def extract_fact(cert: x509.Certificate, location: str = '') -> CertificateFact:
    """
    Extract the exported fields from a parsed certificate.

    Args:
        cert: Parsed certificate
        location: Where the certificate came from (block or alias)

    Returns:
        CertificateFact for the certificate

    Raises:
        ParseError: If a field of the certificate is malformed
    """
    try:
        return CertificateFact(
            common_name=_common_name(cert.subject),
            issuer_common_name=_common_name(cert.issuer),
            serial_number=str(cert.serial_number),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            subject_alt_names=_subject_alt_names(cert),
            location=location,
        )
    except ValueError as e:
        # cryptography parses lazily, malformed fields surface on access
        raise ParseError(f"malformed certificate at {location or 'payload'}: {e}")


def parse_fact(der: bytes, location: str = '') -> CertificateFact:
    """Load a DER certificate and extract its facts in one step."""
    return extract_fact(load_certificate(der, location), location)
