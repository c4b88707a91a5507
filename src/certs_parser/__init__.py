"""
Certificate Parser Module

Decodes certificate payloads and extracts their facts.
"""

from .decoders import (
    DecodeFormat,
    Decoder,
    EntryKind,
    JKSDecoder,
    KeystoreEntry,
    PEMDecoder,
    PKCS12Decoder,
    RawCertificate,
    get_decoder,
)
from .facts import CertificateFact, extract_fact, load_certificate, parse_fact

__all__ = [
    'CertificateFact',
    'DecodeFormat',
    'Decoder',
    'EntryKind',
    'JKSDecoder',
    'KeystoreEntry',
    'PEMDecoder',
    'PKCS12Decoder',
    'RawCertificate',
    'extract_fact',
    'get_decoder',
    'load_certificate',
    'parse_fact',
]
