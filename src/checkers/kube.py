"""
Kubernetes Client Module

Builds the Kubernetes API client and normalizes resource payloads.
"""

import base64
import binascii
import logging
from typing import Dict, Optional

from kubernetes import client, config

from utils.errors import ClientConstructionError

logger = logging.getLogger(__name__)


def load_api_client(kubeconfig_path: Optional[str] = None) -> client.ApiClient:
    """
    Build a Kubernetes API client.

    An explicit kubeconfig path wins; otherwise in-cluster configuration is
    tried first and the default kubeconfig second.

    Args:
        kubeconfig_path: Optional kubeconfig file

    Returns:
        Configured ApiClient

    Raises:
        ClientConstructionError: If no configuration could be loaded
    """
    if kubeconfig_path:
        try:
            config.load_kube_config(config_file=kubeconfig_path)
            logger.info(f"✅ Loaded kubeconfig from {kubeconfig_path}")
        except Exception as e:
            raise ClientConstructionError(f"could not load kubeconfig {kubeconfig_path}: {e}")
        return client.ApiClient()

    try:
        # Try in-cluster config first (when running in a pod)
        config.load_incluster_config()
        logger.info("✅ Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        # Fall back to kubeconfig (for local testing)
        try:
            config.load_kube_config()
            logger.info("✅ Loaded kubeconfig from default location")
        except Exception as e:
            raise ClientConstructionError(f"could not load Kubernetes configuration: {e}")

    return client.ApiClient()


def decode_base64_data(data: Optional[Dict[str, str]]) -> Dict[str, bytes]:
    """
    Decode the base64 values of a secret's data (or a config map's binaryData).

    Values that are not valid base64 are dropped with a warning.
    """
    decoded = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        try:
            decoded[key] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"⚠️ Dropping key '{key}' with invalid base64 data: {e}")
    return decoded
