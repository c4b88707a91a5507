"""
Shared test fixtures.

Certificates are generated at test time with cryptography, keystores are
written with pyjks, and the Kubernetes API is replaced by FakeCoreV1 /
FakeCustomObjects which return real kubernetes.client model objects.
"""

import base64
import ipaddress
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import jks
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from kubernetes import client
from kubernetes.client.rest import ApiException
from prometheus_client import CollectorRegistry

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
NOT_BEFORE = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
NOT_AFTER = datetime(2027, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Certificate material
# ---------------------------------------------------------------------------


def make_key():
    return ec.generate_private_key(ec.SECP256R1())


def make_certificate(cn: Optional[str], issuer_cn: Optional[str] = None,
                     not_before: datetime = NOT_BEFORE, not_after: datetime = NOT_AFTER,
                     dns_names: Sequence[str] = (), ip_addresses: Sequence[str] = (),
                     key=None, issuer_key=None, serial: Optional[int] = None):
    """Build a certificate signed by issuer_key (self-signed when omitted)."""
    key = key or make_key()
    issuer_key = issuer_key or key
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)] if cn else
                        [x509.NameAttribute(NameOID.ORGANIZATION_NAME, 'No CN Inc')])
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn or cn or 'self')])

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(serial or x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    names: List[x509.GeneralName] = [x509.DNSName(name) for name in dns_names]
    names.extend(x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses)
    if names:
        builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)

    return builder.sign(issuer_key, hashes.SHA256()), key


def pem(*certs) -> bytes:
    return b''.join(cert.public_bytes(serialization.Encoding.PEM) for cert in certs)


def der(cert) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def pkcs8(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def make_jks(password: str, chains: Optional[Dict[str, tuple]] = None,
             trusted: Optional[Dict[str, object]] = None) -> bytes:
    """
    Write a JKS keystore.

    Args:
        password: Store password
        chains: alias -> (key, [cert or raw DER bytes, ...]) private key entries
        trusted: alias -> cert trusted certificate entries
    """
    entries = []
    for alias, (key, certs) in (chains or {}).items():
        chain = [c if isinstance(c, bytes) else der(c) for c in certs]
        entries.append(jks.PrivateKeyEntry.new(alias, chain, pkcs8(key), 'pkcs8'))
    for alias, cert in (trusted or {}).items():
        entries.append(jks.TrustedCertEntry.new(alias, der(cert)))
    return jks.KeyStore.new('jks', entries).saves(password)


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


# ---------------------------------------------------------------------------
# Kubernetes fakes
# ---------------------------------------------------------------------------


def make_secret(name: str, namespace: str, data: Dict[str, bytes],
                annotations: Optional[Dict[str, str]] = None, labels: Optional[Dict[str, str]] = None,
                secret_type: str = 'Opaque') -> client.V1Secret:
    return client.V1Secret(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace,
                                     annotations=annotations, labels=labels),
        data={key: b64(value) for key, value in data.items()},
        type=secret_type,
    )


def make_configmap(name: str, namespace: str, data: Optional[Dict[str, str]] = None,
                   binary_data: Optional[Dict[str, bytes]] = None,
                   labels: Optional[Dict[str, str]] = None) -> client.V1ConfigMap:
    return client.V1ConfigMap(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
        data=data,
        binary_data={key: b64(value) for key, value in (binary_data or {}).items()} or None,
    )


def _matches(labels: Optional[Dict[str, str]], selector: str) -> bool:
    if not selector:
        return True
    labels = labels or {}
    for term in selector.split(','):
        key, _, value = term.partition('=')
        if labels.get(key.strip()) != value.strip():
            return False
    return True


class FakeCoreV1:
    """In-memory stand-in for CoreV1Api."""

    def __init__(self):
        self.secrets: Dict[str, Dict[str, client.V1Secret]] = {}
        self.configmaps: Dict[str, Dict[str, client.V1ConfigMap]] = {}
        self.failing_namespaces = set()
        self.list_hook = None
        self.calls: List[tuple] = []

    def add_secret(self, secret: client.V1Secret) -> None:
        self.secrets.setdefault(secret.metadata.namespace, {})[secret.metadata.name] = secret

    def delete_secret(self, namespace: str, name: str) -> None:
        del self.secrets[namespace][name]

    def add_configmap(self, configmap: client.V1ConfigMap) -> None:
        self.configmaps.setdefault(configmap.metadata.namespace, {})[configmap.metadata.name] = configmap

    def _check(self, namespace: str) -> None:
        if self.list_hook is not None:
            self.list_hook(namespace)
        if namespace in self.failing_namespaces:
            raise ApiException(status=403, reason='Forbidden')

    def list_namespaced_secret(self, namespace, label_selector=''):
        self.calls.append(('list_namespaced_secret', namespace, label_selector))
        self._check(namespace)
        items = [s for s in self.secrets.get(namespace, {}).values()
                 if _matches(s.metadata.labels, label_selector)]
        return client.V1SecretList(items=items)

    def list_secret_for_all_namespaces(self, label_selector=''):
        self.calls.append(('list_secret_for_all_namespaces', None, label_selector))
        items = [s for ns in self.secrets.values() for s in ns.values()
                 if _matches(s.metadata.labels, label_selector)]
        return client.V1SecretList(items=items)

    def read_namespaced_secret(self, name, namespace):
        self.calls.append(('read_namespaced_secret', namespace, name))
        try:
            return self.secrets[namespace][name]
        except KeyError:
            raise ApiException(status=404, reason='Not Found')

    def list_namespaced_config_map(self, namespace, label_selector=''):
        self.calls.append(('list_namespaced_config_map', namespace, label_selector))
        self._check(namespace)
        items = [c for c in self.configmaps.get(namespace, {}).values()
                 if _matches(c.metadata.labels, label_selector)]
        return client.V1ConfigMapList(items=items)

    def list_config_map_for_all_namespaces(self, label_selector=''):
        self.calls.append(('list_config_map_for_all_namespaces', None, label_selector))
        items = [c for ns in self.configmaps.values() for c in ns.values()
                 if _matches(c.metadata.labels, label_selector)]
        return client.V1ConfigMapList(items=items)


class FakeCustomObjects:
    """In-memory stand-in for CustomObjectsApi serving CertificateRequests."""

    def __init__(self):
        self.items: List[dict] = []
        self.failing_namespaces = set()
        self.calls: List[tuple] = []

    def add_request(self, name: str, namespace: str, certificate: Optional[str],
                    labels: Optional[Dict[str, str]] = None) -> None:
        item = {
            'apiVersion': 'cert-manager.io/v1',
            'kind': 'CertificateRequest',
            'metadata': {'name': name, 'namespace': namespace, 'labels': labels or {}},
            'status': {},
        }
        if certificate is not None:
            item['status']['certificate'] = certificate
        self.items.append(item)

    def list_namespaced_custom_object(self, group, version, namespace, plural, label_selector=''):
        self.calls.append((group, version, namespace, plural, label_selector))
        if namespace in self.failing_namespaces:
            raise ApiException(status=500, reason='Internal Server Error')
        return {'items': [i for i in self.items
                          if i['metadata']['namespace'] == namespace
                          and _matches(i['metadata']['labels'], label_selector)]}

    def list_cluster_custom_object(self, group, version, plural, label_selector=''):
        self.calls.append((group, version, None, plural, label_selector))
        return {'items': [i for i in self.items if _matches(i['metadata']['labels'], label_selector)]}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry():
    """Isolated metrics registry per test."""
    return CollectorRegistry()


@pytest.fixture
def clock():
    return lambda: NOW.timestamp()


@pytest.fixture
def core_v1():
    return FakeCoreV1()


@pytest.fixture
def custom_objects():
    return FakeCustomObjects()


@pytest.fixture(scope='session')
def ca():
    """A CA key and certificate named 'Example CA'."""
    cert, key = make_certificate('Example CA')
    return cert, key


@pytest.fixture(scope='session')
def leaf(ca):
    """A leaf certificate for api.example.com issued by Example CA."""
    ca_cert, ca_key = ca
    cert, key = make_certificate(
        'api.example.com', issuer_cn='Example CA',
        dns_names=['api.example.com', 'www.example.com'], ip_addresses=['10.0.0.1'],
        issuer_key=ca_key,
    )
    return cert, key


def sample_count(registry: CollectorRegistry, metric_name: str) -> int:
    """Number of samples currently exposed under a metric family name."""
    for metric in registry.collect():
        if metric.name == metric_name:
            return len(metric.samples)
    return 0
