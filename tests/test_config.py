"""Tests for utils/config.py."""

import pytest

from utils.config import Config, parse_duration


class TestParseDuration:

    @pytest.mark.parametrize('text,seconds', [
        ('30s', 30),
        ('5m', 300),
        ('1h', 3600),
        ('1h30m', 5400),
        ('2d', 172800),
        ('500ms', 0.5),
        ('90', 90),
        ('1.5', 1.5),
    ])
    def test_valid(self, text, seconds):
        assert parse_duration(text) == seconds

    @pytest.mark.parametrize('text', ['', 'soon', '5x', '1h-', 'm5'])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)


class TestConfig:

    def test_defaults(self):
        config = Config(environ={})

        assert config.polling_period == 3600
        assert config.poll_on_start is True
        assert config.namespaces == []
        assert config.label_selector == ''
        assert config.enable_secrets and not config.enable_keystores
        assert config.secret_include_globs == ['*.crt']
        assert config.keystore_key == 'keystore.jks'
        assert config.keystore_password_annotation == 'password-secret-ref'
        assert config.keystore_password_key == 'password'
        assert config.validate() == []

    def test_reads_environment(self):
        config = Config(environ={
            'POLLING_PERIOD': '30s',
            'NAMESPACES': 'prod, staging ,',
            'LABEL_SELECTOR': 'cert-exporter=true',
            'ENABLE_KEYSTORES': 'yes',
            'KEYSTORE_FORMAT': 'pkcs12',
            'SECRET_EXCLUDE_GLOBS': 'ca.crt,*.old',
            'METRICS_PORT': '9100',
        })

        assert config.polling_period == 30
        assert config.namespaces == ['prod', 'staging']
        assert config.label_selector == 'cert-exporter=true'
        assert config.enable_keystores
        assert config.keystore_format == 'PKCS12'
        assert config.secret_exclude_globs == ['ca.crt', '*.old']
        assert config.metrics_port == 9100
        assert config.validate() == []

    def test_invalid_values_are_reported(self):
        config = Config(environ={
            'POLLING_PERIOD': 'often',
            'METRICS_PORT': 'http',
            'ENABLE_SECRETS': 'maybe',
            'KEYSTORE_FORMAT': 'BKS',
        })

        problems = config.validate()

        assert any(p.startswith('POLLING_PERIOD') for p in problems)
        assert any(p.startswith('METRICS_PORT') for p in problems)
        assert any(p.startswith('ENABLE_SECRETS') for p in problems)
        assert any(p.startswith('KEYSTORE_FORMAT') for p in problems)

    def test_no_checker_enabled(self):
        config = Config(environ={'ENABLE_SECRETS': 'false'})
        assert 'no checker enabled' in config.validate()
