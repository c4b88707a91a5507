"""
Checkers Module

Polling checkers, one per source kind.
"""

from .certrequests import CertRequestChecker
from .checker import CertificateChecker, CheckerState, PollResult, SourceDescriptor
from .configmaps import ConfigMapChecker
from .keystores import KeystoreChecker
from .kube import load_api_client
from .secrets import SecretChecker

__all__ = [
    'CertificateChecker',
    'CertRequestChecker',
    'CheckerState',
    'ConfigMapChecker',
    'KeystoreChecker',
    'PollResult',
    'SecretChecker',
    'SourceDescriptor',
    'load_api_client',
]
