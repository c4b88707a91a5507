"""
Utilities Module

Common utilities for the certificate exporter application.
"""

from .config import Config, parse_duration
from .logger import setup_logging

__all__ = ['Config', 'parse_duration', 'setup_logging']
