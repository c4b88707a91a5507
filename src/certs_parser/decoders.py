"""
Certificate Decoders Module

Format-specific decoders turning raw payload bytes into DER certificates.
PEM bundles are decoded block by block; keystores are all-or-nothing.
"""

import base64
import binascii
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, assert_never

import jks
from cryptography.hazmat.primitives.serialization import Encoding, pkcs12

from utils.errors import DecodeError

logger = logging.getLogger(__name__)

PEM_CERTIFICATE_PATTERN = re.compile(
    rb'-----BEGIN CERTIFICATE-----(.*?)-----END CERTIFICATE-----',
    re.DOTALL
)


class DecodeFormat(Enum):
    """Payload encodings we know how to decode."""

    PEM = 'PEM'
    JKS = 'JKS'
    PKCS12 = 'PKCS12'


class EntryKind(Enum):
    """What a keystore entry carries."""

    CERTIFICATE_CHAIN = 'certificate-chain'
    TRUST_ANCHOR = 'trust-anchor'
    SECRET_KEY = 'secret-key'


@dataclass
class RawCertificate:
    """A DER certificate cut out of a payload, or the reason it could not be."""

    location: str
    der: Optional[bytes] = None
    error: Optional[str] = None


@dataclass
class KeystoreEntry:
    """One keystore alias with the certificates it carries (DER)."""

    alias: str
    kind: EntryKind
    certificates: List[bytes] = field(default_factory=list)


class Decoder(ABC):
    """Base class for payload decoders."""

    format: DecodeFormat
    requires_passphrase = False
    # Strict decoders abort the whole payload on a single bad certificate
    strict = False

    @abstractmethod
    def decode(self, data: bytes, passphrase: Optional[str] = None) -> List[RawCertificate]:
        """
        Decode a payload into raw certificates.

        Args:
            data: Payload bytes
            passphrase: Passphrase for protected formats

        Returns:
            List of RawCertificate, in payload order

        Raises:
            DecodeError: If the payload as a whole cannot be decoded
        """


class PEMDecoder(Decoder):
    """Decodes concatenated PEM certificate blocks."""

    format = DecodeFormat.PEM

    def decode(self, data: bytes, passphrase: Optional[str] = None) -> List[RawCertificate]:
        if isinstance(data, str):
            data = data.encode('utf-8')

        blocks = PEM_CERTIFICATE_PATTERN.findall(data)
        if not blocks:
            logger.debug("No PEM certificate blocks in payload")
            return []

        certificates = []
        for index, body in enumerate(blocks):
            location = f"block {index}"
            try:
                der = base64.b64decode(b''.join(body.split()), validate=True)
            except (binascii.Error, ValueError) as e:
                logger.debug(f"Malformed PEM {location}: {e}")
                certificates.append(RawCertificate(location, error=f"malformed PEM block: {e}"))
                continue
            certificates.append(RawCertificate(location, der=der))

        return certificates


class KeystoreDecoder(Decoder):
    """Base class for passphrase protected keystores."""

    requires_passphrase = True
    strict = True

    @abstractmethod
    def load(self, data: bytes, passphrase: str) -> Dict[str, KeystoreEntry]:
        """
        Open the keystore and verify its integrity.

        Returns:
            Mapping of alias to KeystoreEntry

        Raises:
            DecodeError: Wrong passphrase or corrupt container
        """

    def decode(self, data: bytes, passphrase: Optional[str] = None) -> List[RawCertificate]:
        if passphrase is None:
            raise DecodeError(f"{self.format.value} keystore requires a passphrase")

        entries = self.load(data, passphrase)
        return chain_certificates(entries)


def chain_certificates(entries: Dict[str, KeystoreEntry]) -> List[RawCertificate]:
    """
    Walk keystore entries and collect the certificates of chain-bearing ones.

    Args:
        entries: Mapping of alias to KeystoreEntry

    Returns:
        RawCertificate per chain certificate, located as 'alias[index]'
    """
    certificates = []
    for alias in sorted(entries):
        entry = entries[alias]
        if entry.kind is EntryKind.CERTIFICATE_CHAIN:
            for index, der in enumerate(entry.certificates):
                certificates.append(RawCertificate(f"{alias}[{index}]", der=der))
        elif entry.kind is EntryKind.TRUST_ANCHOR:
            logger.debug(f"Skipping trusted certificate entry '{alias}'")
        elif entry.kind is EntryKind.SECRET_KEY:
            logger.debug(f"Skipping secret key entry '{alias}'")
        else:
            assert_never(entry.kind)
    return certificates


class JKSDecoder(KeystoreDecoder):
    """Decodes Java keystores (JKS and JCEKS)."""

    format = DecodeFormat.JKS

    def load(self, data: bytes, passphrase: str) -> Dict[str, KeystoreEntry]:
        try:
            # Only certificates are needed, private keys stay encrypted
            keystore = jks.KeyStore.loads(data, passphrase, try_decrypt_keys=False)
        except jks.util.KeystoreSignatureException as e:
            raise DecodeError(f"keystore integrity check failed, wrong passphrase? ({e})")
        except jks.util.KeystoreException as e:
            raise DecodeError(f"corrupt keystore: {e}")
        except Exception as e:
            raise DecodeError(f"could not load keystore: {e}")

        entries: Dict[str, KeystoreEntry] = {}
        for alias, entry in keystore.private_keys.items():
            entries[alias] = KeystoreEntry(
                alias, EntryKind.CERTIFICATE_CHAIN,
                [cert for _, cert in entry.cert_chain]
            )
        for alias, entry in keystore.certs.items():
            entries[alias] = KeystoreEntry(alias, EntryKind.TRUST_ANCHOR, [entry.cert])
        for alias in keystore.secret_keys:
            entries[alias] = KeystoreEntry(alias, EntryKind.SECRET_KEY)

        return entries


class PKCS12Decoder(KeystoreDecoder):
    """Decodes PKCS#12 bundles."""

    format = DecodeFormat.PKCS12

    def load(self, data: bytes, passphrase: str) -> Dict[str, KeystoreEntry]:
        password = passphrase.encode('utf-8') if passphrase else None
        try:
            bundle = pkcs12.load_pkcs12(data, password)
        except (ValueError, TypeError) as e:
            raise DecodeError(f"could not load PKCS#12 bundle, wrong passphrase? ({e})")

        entries: Dict[str, KeystoreEntry] = {}
        additional = [c.certificate for c in bundle.additional_certs]

        if bundle.key is not None and bundle.cert is not None:
            alias = _friendly_name(bundle.cert, '1')
            chain = [bundle.cert.certificate] + additional
            entries[alias] = KeystoreEntry(
                alias, EntryKind.CERTIFICATE_CHAIN,
                [cert.public_bytes(Encoding.DER) for cert in chain]
            )
            return entries

        anchors = list(bundle.additional_certs)
        if bundle.cert is not None:
            anchors.insert(0, bundle.cert)
        for index, anchor in enumerate(anchors):
            alias = _friendly_name(anchor, str(index + 1))
            entries[alias] = KeystoreEntry(
                alias, EntryKind.TRUST_ANCHOR,
                [anchor.certificate.public_bytes(Encoding.DER)]
            )
        return entries


def _friendly_name(cert: pkcs12.PKCS12Certificate, default: str) -> str:
    if cert.friendly_name:
        return cert.friendly_name.decode('utf-8', 'replace')
    return default


_DECODERS = {
    DecodeFormat.PEM: PEMDecoder,
    DecodeFormat.JKS: JKSDecoder,
    DecodeFormat.PKCS12: PKCS12Decoder,
}


def get_decoder(decode_format) -> Decoder:
    """
    Return a decoder for a format.

    Args:
        decode_format: DecodeFormat or its name ('PEM', 'JKS', 'PKCS12')
    """
    if not isinstance(decode_format, DecodeFormat):
        decode_format = DecodeFormat(str(decode_format).upper())
    return _DECODERS[decode_format]()
