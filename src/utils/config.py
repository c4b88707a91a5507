"""
Configuration Module

Environment driven configuration for the certificate exporter.
"""

import os
import re
from typing import Dict, List, Mapping, Optional

_DURATION_PATTERN = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h|d)')
_DURATION_UNITS = {
    'ms': 0.001,
    's': 1,
    'm': 60,
    'h': 3600,
    'd': 86400,
}

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}

KEYSTORE_FORMATS = ('JKS', 'PKCS12')


def parse_duration(value: str) -> float:
    """
    Parse a duration such as '30s', '5m', '1h30m' or a plain number of seconds.

    Args:
        value: Duration string

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = str(value).strip().lower()
    if not text:
        raise ValueError("empty duration")

    try:
        return float(text)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PATTERN.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration: {value!r}")
    return total


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == '':
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


class Config:
    """Exporter configuration read from environment variables."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration.

        Args:
            environ: Mapping to read settings from (defaults to os.environ)
        """
        env = os.environ if environ is None else environ
        self.errors: List[str] = []

        self.polling_period_raw = env.get('POLLING_PERIOD', '1h')
        self.polling_period = self._duration('POLLING_PERIOD', self.polling_period_raw, 3600.0)
        self.poll_on_start = self._bool(env, 'POLL_ON_START', True)

        self.label_selector = env.get('LABEL_SELECTOR', '')
        self.namespaces = _split_list(env.get('NAMESPACES'))
        self.kubeconfig_path = env.get('KUBECONFIG') or None

        self.metrics_port = self._int(env, 'METRICS_PORT', 8080)
        self.log_level = env.get('LOG_LEVEL', 'INFO').upper()

        self.enable_secrets = self._bool(env, 'ENABLE_SECRETS', True)
        self.enable_configmaps = self._bool(env, 'ENABLE_CONFIGMAPS', False)
        self.enable_certrequests = self._bool(env, 'ENABLE_CERTREQUESTS', False)
        self.enable_keystores = self._bool(env, 'ENABLE_KEYSTORES', False)

        self.secret_include_globs = _split_list(env.get('SECRET_INCLUDE_GLOBS', '*.crt'))
        self.secret_exclude_globs = _split_list(env.get('SECRET_EXCLUDE_GLOBS'))
        self.secret_types = _split_list(env.get('SECRET_TYPES'))

        self.configmap_include_globs = _split_list(env.get('CONFIGMAP_INCLUDE_GLOBS', '*.crt'))
        self.configmap_exclude_globs = _split_list(env.get('CONFIGMAP_EXCLUDE_GLOBS'))

        self.keystore_key = env.get('KEYSTORE_KEY', 'keystore.jks')
        self.keystore_format = env.get('KEYSTORE_FORMAT', 'JKS').upper()
        self.keystore_password_annotation = env.get('KEYSTORE_PASSWORD_ANNOTATION', 'password-secret-ref')
        self.keystore_password_key = env.get('KEYSTORE_PASSWORD_KEY', 'password')

    def _duration(self, name: str, value: str, default: float) -> float:
        try:
            return parse_duration(value)
        except ValueError as e:
            self.errors.append(f"{name}: {e}")
            return default

    def _bool(self, env: Mapping[str, str], name: str, default: bool) -> bool:
        try:
            return _parse_bool(env.get(name), default)
        except ValueError as e:
            self.errors.append(f"{name}: {e}")
            return default

    def _int(self, env: Mapping[str, str], name: str, default: int) -> int:
        value = env.get(name)
        if value is None or value.strip() == '':
            return default
        try:
            return int(value)
        except ValueError:
            self.errors.append(f"{name}: invalid integer: {value!r}")
            return default

    def validate(self) -> List[str]:
        """
        Check the configuration for invalid values.

        Returns:
            List of problems, empty when the configuration is usable
        """
        problems = list(self.errors)

        if self.polling_period <= 0:
            problems.append("POLLING_PERIOD must be positive")
        if not 0 < self.metrics_port < 65536:
            problems.append(f"METRICS_PORT out of range: {self.metrics_port}")
        if self.keystore_format not in KEYSTORE_FORMATS:
            problems.append(f"KEYSTORE_FORMAT must be one of {', '.join(KEYSTORE_FORMATS)}")
        if self.enable_keystores and not self.keystore_password_annotation:
            problems.append("KEYSTORE_PASSWORD_ANNOTATION must be set when keystores are enabled")
        if not any((self.enable_secrets, self.enable_configmaps,
                    self.enable_certrequests, self.enable_keystores)):
            problems.append("no checker enabled")

        return problems

    def to_dict(self) -> Dict[str, object]:
        """Return the effective settings, for startup logging."""
        return {
            'polling_period': self.polling_period_raw,
            'poll_on_start': self.poll_on_start,
            'label_selector': self.label_selector,
            'namespaces': self.namespaces or ['<all>'],
            'metrics_port': self.metrics_port,
            'enable_secrets': self.enable_secrets,
            'enable_configmaps': self.enable_configmaps,
            'enable_certrequests': self.enable_certrequests,
            'enable_keystores': self.enable_keystores,
            'keystore_format': self.keystore_format,
        }
