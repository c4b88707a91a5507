"""
Keystore Checker Module

Exports certificates from passphrase protected keystores (JKS, PKCS#12)
stored in secrets. The passphrase lives in a second secret named by an
annotation on the keystore secret, looked up again on every poll.
"""

import logging
from typing import List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from checkers.checker import CertificateChecker, SourceDescriptor
from checkers.kube import decode_base64_data
from checkers.secrets import list_secrets, secret_descriptor
from exporters.exporter import CertificateExporter
from utils.errors import CertExporterError, FetchError, MissingAnnotationError, MissingKeyError

logger = logging.getLogger(__name__)


class KeystoreChecker(CertificateChecker):
    """Exports certificates of keystores held in secrets."""

    kind = 'keystore'

    def __init__(self, core_v1: client.CoreV1Api, exporter: CertificateExporter,
                 keystore_key: str = 'keystore.jks',
                 password_annotation: str = 'password-secret-ref',
                 password_key: str = 'password', **kwargs):
        """
        Initialize the keystore checker.

        Args:
            core_v1: CoreV1Api client
            exporter: Exporter built with a keystore decoder
            keystore_key: Data key holding the keystore
            password_annotation: Annotation naming the passphrase secret
            password_key: Data key of the passphrase in that secret
            **kwargs: Polling settings, see CertificateChecker
        """
        super().__init__(exporter, **kwargs)
        self.core_v1 = core_v1
        self.keystore_key = keystore_key
        self.password_annotation = password_annotation
        self.password_key = password_key

    def _list_resources(self, namespace: Optional[str]) -> List[SourceDescriptor]:
        try:
            secrets = list_secrets(self.core_v1, namespace, self.label_selector)
        except Exception as e:
            raise self._listing_error(namespace, e)

        return [secret_descriptor(secret, namespace) for secret in secrets.items]

    def _check_resource(self, resource: SourceDescriptor) -> int:
        keystore = resource.data.get(self.keystore_key)
        if keystore is None:
            raise MissingKeyError(f"no '{self.keystore_key}' key", key=self.keystore_key)

        passphrase = self.resolve_passphrase(resource)

        try:
            return self.exporter.export_metrics(
                keystore,
                passphrase,
                key_name=self.keystore_key,
                secret_name=resource.name,
                secret_namespace=resource.namespace,
            )
        except CertExporterError as e:
            raise e.locate(resource.namespace, resource.name, self.keystore_key)

    def resolve_passphrase(self, resource: SourceDescriptor) -> str:
        """
        Fetch the keystore passphrase named by the resource's annotation.

        Args:
            resource: Keystore secret

        Returns:
            Passphrase text

        Raises:
            MissingAnnotationError: The annotation is missing or empty
            FetchError: The passphrase secret or its key could not be read
        """
        reference = (resource.annotations.get(self.password_annotation) or '').strip()
        if not reference:
            raise MissingAnnotationError(f"missing annotation '{self.password_annotation}'")

        try:
            secret = self.core_v1.read_namespaced_secret(reference, resource.namespace)
        except ApiException as e:
            raise FetchError(f"failed to get password secret '{reference}': {e.status} {e.reason}")
        except Exception as e:
            raise FetchError(f"failed to get password secret '{reference}': {e}")

        data = decode_base64_data(secret.data)
        if self.password_key not in data:
            raise FetchError(f"password secret '{reference}' has no '{self.password_key}' key")

        try:
            return data[self.password_key].decode('utf-8')
        except UnicodeDecodeError as e:
            raise FetchError(f"password in secret '{reference}' is not UTF-8: {e}")
