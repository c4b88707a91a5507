"""
Errors Module

Error taxonomy shared by decoders, exporters and checkers.
"""

from typing import Optional


class CertExporterError(Exception):
    """Base class for every error raised while discovering certificates."""

    error_type = 'unknown'

    def __init__(self, message: str, namespace: Optional[str] = None,
                 name: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.namespace = namespace
        self.name = name
        self.key = key

    def locate(self, namespace: Optional[str] = None, name: Optional[str] = None,
               key: Optional[str] = None) -> 'CertExporterError':
        """Fill in missing resource context and return the error."""
        self.namespace = self.namespace or namespace
        self.name = self.name or name
        self.key = self.key or key
        return self

    def context(self) -> str:
        """Return a 'namespace/name[key]' string locating the offending resource."""
        location = '/'.join(part for part in (self.namespace, self.name) if part)
        if self.key:
            location = f"{location}[{self.key}]" if location else f"[{self.key}]"
        return location

    def __str__(self) -> str:
        location = self.context()
        return f"{location}: {self.message}" if location else self.message


class ListingError(CertExporterError):
    """Listing resources in a namespace failed; the namespace is skipped."""

    error_type = 'listing'


class MissingKeyError(CertExporterError):
    """The resource holds no data key we know how to decode."""

    error_type = 'missing_key'


class MissingAnnotationError(CertExporterError):
    """The passphrase reference annotation is missing or empty."""

    error_type = 'missing_annotation'


class FetchError(CertExporterError):
    """A referenced resource could not be fetched."""

    error_type = 'fetch'


class DecodeError(CertExporterError):
    """The payload could not be decoded (bad passphrase, corrupt container)."""

    error_type = 'decode'


class ParseError(CertExporterError):
    """A certificate inside a decoded payload is not valid X.509."""

    error_type = 'parse'


class ClientConstructionError(CertExporterError):
    """The Kubernetes API client could not be built. Fatal."""

    error_type = 'client'
